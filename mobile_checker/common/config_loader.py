"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mobile_checker.common.errors import ConfigError
from mobile_checker.common.fs import read_yaml
from mobile_checker.common.schema import validate_app_config

CONFIG_FILENAME = "mobile_checker.yml"


@dataclass(frozen=True)
class DatasetConfig:
    editions: dict[str, str]
    default_edition: str = "2023"
    download_timeout_seconds: float = 300.0
    insert_batch_size: int = 50_000

    def url_for(self, edition: str) -> str:
        try:
            return self.editions[edition]
        except KeyError:
            available = ", ".join(sorted(self.editions))
            raise ConfigError(f"No URL for edition {edition!r}, available: {available}") from None


@dataclass(frozen=True)
class GeocoderConfig:
    base_url: str = "https://api.postcodes.io"
    timeout_seconds: float = 10.0
    max_attempts: int = 3


@dataclass(frozen=True)
class AppConfig:
    datasets: DatasetConfig
    geocoder: GeocoderConfig = field(default_factory=GeocoderConfig)
    max_bulk_postcodes: int = 50


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path) or {}
    return _deep_merge(base, overlay)


def build_app_config(cfg: dict) -> AppConfig:
    datasets = cfg["datasets"]
    geocoder = cfg["geocoder"]
    return AppConfig(
        datasets=DatasetConfig(
            # YAML reads unquoted years as ints.
            editions={str(edition): entry["url"].strip() for edition, entry in datasets["editions"].items()},
            default_edition=str(datasets["default_edition"]),
            download_timeout_seconds=float(datasets["download_timeout_seconds"]),
            insert_batch_size=int(datasets["insert_batch_size"]),
        ),
        geocoder=GeocoderConfig(
            base_url=str(geocoder["base_url"]).rstrip("/"),
            timeout_seconds=float(geocoder["timeout_seconds"]),
            max_attempts=int(geocoder["max_attempts"]),
        ),
        max_bulk_postcodes=int(cfg["api"]["max_bulk_postcodes"]),
    )


def load_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> AppConfig:
    overlay_path = overlay_config_dir / CONFIG_FILENAME if overlay_config_dir is not None else None
    cfg = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    validate_app_config(cfg, allow_unknown=allow_unknown)
    return build_app_config(cfg)
