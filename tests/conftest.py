from __future__ import annotations

import csv
import io
import zipfile
from pathlib import Path

import pytest

from mobile_checker.common.config_loader import DatasetConfig
from mobile_checker.common.errors import CoverageCheckError
from mobile_checker.common.models import GeographicInfo
from mobile_checker.geo.postcodes_io import InvalidPostcodeError

SAMPLE_HEADERS = [
    "PostCode",
    "EE 4G",
    "O2 4G",
    "Three 4G",
    "Vodafone 4G",
    "EE 5G",
    "O2 5G",
    "Three 5G",
    "Vodafone 5G",
    "EE Voice",
    "O2 Voice",
    "Three Voice",
    "Vodafone Voice",
]

SAMPLE_ROWS = [
    ["SW1A 1AA", "1.0", "0.95", "0.88", "0.72", "0.60", "0.0", "0.0", "0.55", "1.0", "1.0", "0.90", "0.85"],
    ["ec1a 1bb", "0.3", "0.8", "", "", "", "", "", "", "", "", "", ""],
    ["LS1 1AA", "0.1", "0.2", "0.3", "0.4", "", "", "", "", "0.5", "0.5", "0.5", "0.5"],
]


def write_csv(path: Path, headers: list[str], rows: list[list[str]]) -> Path:
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(headers)
        writer.writerows(rows)
    return path


def zip_bytes(members: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def csv_text(headers: list[str], rows: list[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


class FakeDownloader:
    """Stands in for ``HttpClient.download`` by writing canned archive bytes."""

    def __init__(self, payload: bytes) -> None:
        self.payload = payload
        self.calls: list[str] = []

    def download(self, url: str, target_path: Path, *, timeout=None) -> int:
        self.calls.append(url)
        target_path.write_bytes(self.payload)
        return len(self.payload)


class FakeGeocoder:
    def __init__(self, invalid: set[str] | None = None, error: CoverageCheckError | None = None) -> None:
        self.invalid = invalid or set()
        self.error = error
        self.calls: list[str] = []

    def lookup(self, postcode: str) -> GeographicInfo:
        self.calls.append(postcode)
        key = postcode.replace(" ", "").upper()
        if self.error is not None:
            raise self.error
        if key in self.invalid:
            raise InvalidPostcodeError(f"postcode {postcode!r} not found or invalid")
        return GeographicInfo(
            postcode=key,
            country="England",
            region="London",
            admin_district="Westminster",
            latitude=51.501009,
            longitude=-0.141588,
        )


@pytest.fixture
def dataset_config() -> DatasetConfig:
    return DatasetConfig(
        editions={"2023": "https://example.test/2023_mobile_pc.zip", "2022": "https://example.test/2022_mobile_pc.zip"},
        default_edition="2023",
        download_timeout_seconds=300.0,
        insert_batch_size=2,
    )


@pytest.fixture
def sample_csv(tmp_path: Path) -> Path:
    return write_csv(tmp_path / "ofcom_mobile_2023.csv", SAMPLE_HEADERS, SAMPLE_ROWS)
