from pathlib import Path

import pytest

from mobile_checker.common.config_loader import DatasetConfig, load_config
from mobile_checker.common.constants import DEFAULT_CONFIG_DIR
from mobile_checker.common.errors import ConfigError

BASE_CONFIG = """datasets:
  default_edition: "2023"
  download_timeout_seconds: 300
  insert_batch_size: 50000
  editions:
    "2023":
      url: "https://example.test/2023.zip"
    2022:
      url: "https://example.test/2022.zip"
geocoder:
  base_url: "https://api.postcodes.io/"
  timeout_seconds: 10
  max_attempts: 3
api:
  max_bulk_postcodes: 50
"""


def _write(directory: Path, content: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "mobile_checker.yml").write_text(content, encoding="utf-8")
    return directory


def test_load_config_from_repo_config_dir():
    config = load_config(DEFAULT_CONFIG_DIR)

    assert {"2022", "2023"} <= set(config.datasets.editions)
    assert config.datasets.default_edition == "2023"
    assert config.datasets.insert_batch_size == 50_000
    assert config.datasets.download_timeout_seconds == 300
    assert config.geocoder.timeout_seconds == 10
    assert config.max_bulk_postcodes == 50


def test_load_config_stringifies_edition_keys_and_trims_base_url(tmp_path: Path):
    config = load_config(_write(tmp_path / "base", BASE_CONFIG))

    assert config.datasets.editions["2022"] == "https://example.test/2022.zip"
    assert config.geocoder.base_url == "https://api.postcodes.io"


def test_load_config_applies_overlay_values(tmp_path: Path):
    base = _write(tmp_path / "base", BASE_CONFIG)
    overlay = _write(
        tmp_path / "overlay",
        """datasets:
  insert_batch_size: 10
  editions:
    "2024":
      url: "https://example.test/2024.zip"
api:
  max_bulk_postcodes: 5
""",
    )

    config = load_config(base, overlay_config_dir=overlay)

    assert config.datasets.insert_batch_size == 10
    assert set(config.datasets.editions) == {"2022", "2023", "2024"}
    assert config.max_bulk_postcodes == 5


def test_load_config_rejects_unknown_keys(tmp_path: Path):
    config_dir = _write(tmp_path / "bad", BASE_CONFIG + "extra: true\n")

    with pytest.raises(ConfigError, match="Unknown keys"):
        load_config(config_dir)

    assert load_config(config_dir, allow_unknown=True).max_bulk_postcodes == 50


def test_load_config_rejects_missing_keys(tmp_path: Path):
    config_dir = _write(tmp_path / "bad", BASE_CONFIG.replace("  max_attempts: 3\n", ""))

    with pytest.raises(ConfigError, match="max_attempts"):
        load_config(config_dir)


def test_load_config_rejects_default_edition_without_url(tmp_path: Path):
    config_dir = _write(tmp_path / "bad", BASE_CONFIG.replace('default_edition: "2023"', 'default_edition: "2030"'))

    with pytest.raises(ConfigError, match="default_edition"):
        load_config(config_dir)


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path)


def test_dataset_config_unknown_edition_lists_available():
    config = DatasetConfig(editions={"2023": "https://example.test/a.zip", "2022": "https://example.test/b.zip"})

    assert config.url_for("2023") == "https://example.test/a.zip"
    with pytest.raises(ConfigError, match="available: 2022, 2023"):
        config.url_for("1999")


def test_dataset_configs_are_independent():
    first = DatasetConfig(editions={"2023": "https://example.test/a.zip"})
    second = DatasetConfig(editions={"2022": "https://example.test/b.zip"})

    assert "2022" not in first.editions
    assert "2023" not in second.editions
