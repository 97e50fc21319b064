"""Client for postcodes.io, the free UK postcode lookup API.

Docs: https://postcodes.io. No API key required.
"""

from __future__ import annotations

from typing import Any, Protocol
from urllib.parse import quote

from mobile_checker.common.config_loader import GeocoderConfig
from mobile_checker.common.errors import TransportError, ValidationError
from mobile_checker.common.http import HttpClient, HttpRequestError, RetryConfig, TimeoutConfig
from mobile_checker.common.models import GeographicInfo
from mobile_checker.common.postcode import normalise_postcode


class InvalidPostcodeError(ValidationError):
    error_code = "INVALID_POSTCODE"


class GeoLookup(Protocol):
    def lookup(self, postcode: str) -> GeographicInfo:  # pragma: no cover - runtime protocol
        """Resolve a postcode or raise ``InvalidPostcodeError`` / ``TransportError``."""


def _optional_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _optional_int(value: Any) -> int | None:
    return int(value) if value is not None else None


def parse_result(payload: dict[str, Any]) -> GeographicInfo:
    return GeographicInfo(
        postcode=payload.get("postcode") or "",
        country=payload.get("country"),
        region=payload.get("region"),
        admin_district=payload.get("admin_district"),
        parliamentary_constituency=payload.get("parliamentary_constituency"),
        latitude=_optional_float(payload.get("latitude")),
        longitude=_optional_float(payload.get("longitude")),
        eastings=_optional_int(payload.get("eastings")),
        northings=_optional_int(payload.get("northings")),
    )


class PostcodesIoClient:
    def __init__(self, config: GeocoderConfig | None = None, *, http_client: HttpClient | None = None) -> None:
        self.config = config or GeocoderConfig()
        self.http_client = http_client or HttpClient(
            timeout=TimeoutConfig(connect=self.config.timeout_seconds, read=self.config.timeout_seconds),
            retry=RetryConfig(max_attempts=self.config.max_attempts),
        )

    def close(self) -> None:
        self.http_client.close()

    def lookup(self, postcode: str) -> GeographicInfo:
        key = normalise_postcode(postcode)
        if not key:
            raise InvalidPostcodeError("postcode is empty")

        url = f"{self.config.base_url}/postcodes/{quote(key, safe='')}"
        try:
            payload = self.http_client.get_json(url)
        except HttpRequestError as exc:
            if exc.status_code == 404:
                raise InvalidPostcodeError(f"postcode {postcode!r} not found or invalid") from exc
            raise

        if not isinstance(payload, dict):
            raise TransportError(f"unexpected response shape from {url}")
        result = payload.get("result")
        if not isinstance(result, dict):
            raise InvalidPostcodeError(f"postcode {postcode!r} returned no data")
        try:
            return parse_result(result)
        except (TypeError, ValueError) as exc:
            raise TransportError(f"failed to parse response for {postcode!r}: {exc}") from exc
