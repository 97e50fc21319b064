"""Combine postcodes.io lookups with the Ofcom mobile dataset."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Mapping, Sequence

from mobile_checker.common.config_loader import AppConfig
from mobile_checker.common.errors import CoverageCheckError, NotFoundError, UnavailableError
from mobile_checker.common.logging import get_logger, log_event
from mobile_checker.common.models import CheckResult, MobileSummary, SetupReport
from mobile_checker.common.postcode import normalise_postcode
from mobile_checker.coverage.dataset import DatasetManager
from mobile_checker.coverage.interpret import interpret
from mobile_checker.geo.postcodes_io import GeoLookup, PostcodesIoClient

NOT_IN_DATASET_NOTE = "Postcode not found in Ofcom mobile dataset."


class Checker:
    """Performs mobile coverage checks for single postcodes and batches."""

    def __init__(
        self,
        geocoder: GeoLookup,
        dataset: DatasetManager,
        *,
        interpreter: Callable[[Mapping[str, str]], MobileSummary] = interpret,
        logger: logging.Logger | None = None,
    ) -> None:
        self.geocoder = geocoder
        self.dataset = dataset
        self.interpreter = interpreter
        self.logger = logger or get_logger("checker")

    @classmethod
    def from_config(cls, config: AppConfig, data_dir: Path) -> "Checker":
        return cls(PostcodesIoClient(config.geocoder), DatasetManager(data_dir, config.datasets))

    def setup(self, edition: str, force: bool = False) -> SetupReport:
        return self.dataset.setup(edition, force=force)

    def _query_dataset(self, postcode: str) -> dict[str, str]:
        row = self.dataset.query_postcode(postcode)
        if row is None:
            raise NotFoundError(NOT_IN_DATASET_NOTE)
        return row

    def check(self, postcode: str) -> CheckResult:
        """Check one postcode. Geocoding failures return an invalid result
        without touching the dataset; dataset problems only add a note."""
        normalised = normalise_postcode(postcode)
        result = CheckResult(postcode=normalised)

        try:
            result.geographic = self.geocoder.lookup(postcode)
        except CoverageCheckError as exc:
            result.error = f"Postcode lookup failed: {exc}"
            log_event(
                self.logger,
                result.error,
                level=logging.WARNING,
                stage="check",
                postcode=normalised,
                event="GEOCODE_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            return result
        result.valid = True

        try:
            row = self._query_dataset(normalised)
        except UnavailableError as exc:
            result.note = f"Mobile data unavailable: {exc}"
            log_event(self.logger, result.note, level=logging.WARNING, stage="check", postcode=normalised, event="DATASET_UNAVAILABLE", status="warning", error_code=exc.error_code)
            return result
        except NotFoundError as exc:
            result.note = str(exc)
            log_event(self.logger, result.note, stage="check", postcode=normalised, event="DATASET_MISS", status="ok", error_code=exc.error_code)
            return result

        result.mobile = self.interpreter(row)
        return result

    def _check_isolated(self, postcode: str) -> CheckResult:
        try:
            return self.check(postcode)
        except Exception as exc:
            self.logger.exception("Unexpected failure checking %s", postcode)
            return CheckResult(postcode=normalise_postcode(postcode), error=f"Check failed: {exc}")

    def check_multiple(self, postcodes: Sequence[str]) -> list[CheckResult]:
        """Check every postcode concurrently, returning results in input order.

        Each postcode gets its own worker and its own output slot, so
        completion order has no effect on the returned list and one failing
        item never affects the others.
        """
        if not postcodes:
            return []

        results: list[CheckResult | None] = [None] * len(postcodes)
        with ThreadPoolExecutor(max_workers=len(postcodes)) as executor:
            futures: dict[Future[CheckResult], int] = {
                executor.submit(self._check_isolated, postcode): index for index, postcode in enumerate(postcodes)
            }
            wait(futures)
        for future, index in futures.items():
            results[index] = future.result()
        return [result for result in results if result is not None]
