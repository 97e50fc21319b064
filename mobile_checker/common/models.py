"""Data models shared by the dataset, checker and adapters."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class OperatorCoverage:
    name: str
    voice: str
    four_g: str
    five_g: str
    has_voice: bool
    has_four_g: bool
    has_five_g: bool


@dataclass(frozen=True)
class OverallCoverage:
    any_operator: str
    four_g_count: int
    five_g_count: int


@dataclass(frozen=True)
class MobileSummary:
    postcode: str
    operators: list[OperatorCoverage]
    overall: OverallCoverage

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GeographicInfo:
    postcode: str
    country: str | None = None
    region: str | None = None
    admin_district: str | None = None
    parliamentary_constituency: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    eastings: int | None = None
    northings: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CheckResult:
    postcode: str
    valid: bool = False
    geographic: GeographicInfo | None = None
    mobile: MobileSummary | None = None
    error: str | None = None
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise for JSON output, leaving out optionals that are unset."""
        payload: dict[str, Any] = {"postcode": self.postcode, "valid": self.valid}
        if self.geographic is not None:
            payload["geographic"] = self.geographic.to_dict()
        if self.mobile is not None:
            payload["mobile"] = self.mobile.to_dict()
        if self.error:
            payload["error"] = self.error
        if self.note:
            payload["note"] = self.note
        return payload


@dataclass(frozen=True)
class SetupReport:
    edition: str
    csv_path: Path
    db_path: Path
    downloaded: bool = False
    built: bool = False
    rows_inserted: int = 0
    rows_skipped: int = 0
    warnings: list[str] = field(default_factory=list)
