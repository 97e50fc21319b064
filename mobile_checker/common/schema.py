"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from mobile_checker.common.errors import ConfigError


def _assert_mapping(obj: object, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_number(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_datasets_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    known = {"default_edition", "download_timeout_seconds", "insert_batch_size", "editions"}
    _assert_mapping(cfg, "datasets")
    _assert_required_keys(cfg, known, "datasets")
    _assert_no_unknown_keys(cfg, known, "datasets", allow_unknown)
    _assert_positive_number(cfg["download_timeout_seconds"], "datasets.download_timeout_seconds")
    _assert_positive_number(cfg["insert_batch_size"], "datasets.insert_batch_size")

    editions = _assert_mapping(cfg["editions"], "datasets.editions")
    if not editions:
        raise ConfigError("datasets.editions must be a non-empty mapping")
    for edition, entry in editions.items():
        ctx = f"datasets.editions.{edition}"
        _assert_mapping(entry, ctx)
        _assert_required_keys(entry, {"url"}, ctx)
        _assert_no_unknown_keys(entry, {"url"}, ctx, allow_unknown)
        if not isinstance(entry["url"], str) or not entry["url"].strip():
            raise ConfigError(f"{ctx}.url must be a non-empty string")

    if str(cfg["default_edition"]) not in {str(key) for key in editions}:
        raise ConfigError(f"datasets.default_edition {cfg['default_edition']!r} is not a configured edition")
    return cfg


def validate_geocoder_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    known = {"base_url", "timeout_seconds", "max_attempts"}
    _assert_mapping(cfg, "geocoder")
    _assert_required_keys(cfg, known, "geocoder")
    _assert_no_unknown_keys(cfg, known, "geocoder", allow_unknown)
    _assert_positive_number(cfg["timeout_seconds"], "geocoder.timeout_seconds")
    _assert_positive_number(cfg["max_attempts"], "geocoder.max_attempts")
    return cfg


def validate_api_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    known = {"max_bulk_postcodes"}
    _assert_mapping(cfg, "api")
    _assert_required_keys(cfg, known, "api")
    _assert_no_unknown_keys(cfg, known, "api", allow_unknown)
    _assert_positive_number(cfg["max_bulk_postcodes"], "api.max_bulk_postcodes")
    return cfg


def validate_app_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"datasets", "geocoder", "api"}
    _assert_mapping(cfg, "config")
    _assert_required_keys(cfg, top_required, "config")
    _assert_no_unknown_keys(cfg, top_required, "config", allow_unknown)

    validate_datasets_config(cfg["datasets"], allow_unknown=allow_unknown)
    validate_geocoder_config(cfg["geocoder"], allow_unknown=allow_unknown)
    validate_api_config(cfg["api"], allow_unknown=allow_unknown)
    return cfg
