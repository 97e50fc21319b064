"""Download, store and query the Ofcom Connected Nations mobile postcode data."""

from __future__ import annotations

import csv
import logging
import re
import shutil
import sqlite3
import tempfile
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from sqlalchemy import URL, Column, Index, MetaData, Table, Text, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from mobile_checker.common.config_loader import DatasetConfig
from mobile_checker.common.constants import POSTCODE_COLUMN, STORE_FILENAME, STORE_TABLE
from mobile_checker.common.errors import AcquisitionError, IngestError, ParseError, UnavailableError
from mobile_checker.common.fs import ensure_dir, remove_if_exists, replace_file
from mobile_checker.common.http import HttpClient, RetryConfig, TimeoutConfig
from mobile_checker.common.logging import get_logger, log_event
from mobile_checker.common.models import SetupReport
from mobile_checker.common.postcode import normalise_postcode
from mobile_checker.common.time_utils import elapsed_ms

# Header names an edition may use for the postcode column, after normalisation.
POSTCODE_COLUMN_CANDIDATES = ("postcode", "pcds", "pcd", "postcode_space")
DOWNLOAD_CONNECT_TIMEOUT = 20.0
INDEX_NAME = "idx_postcode"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class IngestStats:
    columns: list[str]
    rows_inserted: int
    rows_skipped: int


def normalise_column_name(name: str, position: int) -> str:
    cleaned = _NON_ALNUM_RE.sub("_", name.strip().lower()).strip("_")
    return cleaned or f"column_{position}"


def normalise_headers(headers: Iterable[str]) -> list[str]:
    """Normalise CSV headers into unique store column names.

    ``"EE 4G"`` and ``"ee-4g"`` both become ``ee_4g`` so the store schema
    stays the same when Ofcom changes spelling between editions. Repeated
    names get a numeric suffix.
    """
    columns: list[str] = []
    seen: set[str] = set()
    for position, header in enumerate(headers):
        name = normalise_column_name(header, position)
        candidate = name
        suffix = 2
        while candidate in seen:
            candidate = f"{name}_{suffix}"
            suffix += 1
        seen.add(candidate)
        columns.append(candidate)
    return columns


def find_postcode_column(columns: list[str]) -> int:
    for candidate in POSTCODE_COLUMN_CANDIDATES:
        if candidate in columns:
            return columns.index(candidate)
    raise IngestError(f"No postcode column among CSV headers: {', '.join(columns)}")


def parse_record(record: list[str], columns: list[str], postcode_index: int) -> dict[str, str | None]:
    if len(record) != len(columns):
        raise ParseError(f"Expected {len(columns)} fields, got {len(record)}")
    postcode = normalise_postcode(record[postcode_index])
    if not postcode:
        raise ParseError("Row has an empty postcode")
    values: dict[str, str | None] = {}
    for index, (column, value) in enumerate(zip(columns, record)):
        if index == postcode_index:
            values[column] = postcode
        else:
            stripped = value.strip()
            values[column] = stripped or None
    return values


def extract_csv(archive_path: Path, target_path: Path) -> list[str]:
    """Extract the first CSV member of ``archive_path`` to ``target_path``.

    Returns the names of all CSV members found, the extracted one first.
    """
    try:
        with zipfile.ZipFile(archive_path) as zf:
            members = [
                info for info in zf.infolist() if not info.is_dir() and info.filename.lower().endswith(".csv")
            ]
            if not members:
                raise AcquisitionError("No CSV found inside Ofcom ZIP")
            with zf.open(members[0]) as src, target_path.open("wb") as dst:
                shutil.copyfileobj(src, dst)
    except zipfile.BadZipFile as exc:
        raise AcquisitionError(f"Failed to open ZIP {archive_path.name}: {exc}") from exc
    return [info.filename for info in members]


def _writable_engine(path: Path) -> Engine:
    return create_engine(URL.create("sqlite", database=str(path.resolve())), poolclass=NullPool)


def _read_only_engine(path: Path) -> Engine:
    # as_uri() percent-encodes "#", "%" and "?" in the data directory.
    uri = f"{path.resolve().as_uri()}?mode=ro"
    return create_engine(
        "sqlite://",
        creator=lambda: sqlite3.connect(uri, uri=True, check_same_thread=False),
        poolclass=NullPool,
    )


class DatasetManager:
    """Owns the local coverage dataset: one CSV per edition and one indexed store."""

    def __init__(
        self,
        data_dir: Path,
        config: DatasetConfig,
        *,
        http_client: HttpClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.config = config
        self.db_path = self.data_dir / STORE_FILENAME
        self.http_client = http_client or HttpClient(retry=RetryConfig(max_attempts=2))
        self.logger = logger or get_logger("dataset")

    def csv_path_for(self, edition: str) -> Path:
        return self.data_dir / f"ofcom_mobile_{edition}.csv"

    def is_ready(self) -> bool:
        return self.db_path.exists()

    def setup(self, edition: str, force: bool = False) -> SetupReport:
        """Make ``edition`` queryable, downloading and ingesting as needed.

        Each step is skipped when its output already exists, unless ``force``
        is set. Failures propagate; there is no usable partial dataset.
        """
        url = self.config.url_for(edition)
        try:
            ensure_dir(self.data_dir)
        except OSError as exc:
            raise AcquisitionError(f"Cannot create data directory {self.data_dir}: {exc}") from exc
        csv_path = self.csv_path_for(edition)
        warnings: list[str] = []

        downloaded = False
        if force or not csv_path.exists():
            warnings.extend(self.acquire(edition, url, csv_path))
            downloaded = True
        else:
            log_event(
                self.logger,
                f"mobile CSV already exists at {csv_path}, skipping download",
                stage="acquire",
                edition=edition,
                event="ACQUIRE_SKIPPED",
                status="ok",
            )

        stats = None
        if force or not self.db_path.exists():
            stats = self.ingest(csv_path, edition=edition)
        else:
            log_event(
                self.logger,
                f"mobile database already exists at {self.db_path}",
                stage="ingest",
                edition=edition,
                event="INGEST_SKIPPED",
                status="ok",
            )

        return SetupReport(
            edition=edition,
            csv_path=csv_path,
            db_path=self.db_path,
            downloaded=downloaded,
            built=stats is not None,
            rows_inserted=stats.rows_inserted if stats else 0,
            rows_skipped=stats.rows_skipped if stats else 0,
            warnings=warnings,
        )

    def acquire(self, edition: str, url: str, csv_path: Path) -> list[str]:
        started_at = time.monotonic()
        log_event(self.logger, f"downloading Ofcom mobile {edition} dataset", stage="acquire", edition=edition, event="DOWNLOAD_START", status="ok")
        timeout = TimeoutConfig(connect=DOWNLOAD_CONNECT_TIMEOUT, read=self.config.download_timeout_seconds)
        warnings: list[str] = []

        try:
            with tempfile.TemporaryDirectory(dir=self.data_dir, prefix=".download-") as tmp:
                archive_path = Path(tmp) / "archive.zip"
                size = self.http_client.download(url, archive_path, timeout=timeout)
                extracted_path = Path(tmp) / csv_path.name
                members = extract_csv(archive_path, extracted_path)
                if len(members) > 1:
                    warnings.append("MULTIPLE_CSV_IN_ARCHIVE")
                    log_event(
                        self.logger,
                        f"archive holds {len(members)} CSV files, using {members[0]}",
                        level=logging.WARNING,
                        stage="acquire",
                        edition=edition,
                        event="MULTIPLE_CSV",
                        status="warning",
                    )
                replace_file(extracted_path, csv_path)
        except OSError as exc:
            raise AcquisitionError(f"Failed to store Ofcom {edition} download: {exc}") from exc

        log_event(
            self.logger,
            f"download complete ({size} bytes), extracted {members[0]}",
            stage="acquire",
            edition=edition,
            event="DOWNLOAD_END",
            status="ok",
            duration_ms=elapsed_ms(started_at),
        )
        return warnings

    def ingest(self, csv_path: Path, *, edition: str | None = None) -> IngestStats:
        """Build the indexed store from ``csv_path``, replacing any existing one.

        The store is written to a scratch file and renamed into place once the
        index exists, so a failed build leaves the previous store untouched.
        """
        started_at = time.monotonic()
        log_event(self.logger, "building mobile database from Ofcom data", stage="ingest", edition=edition, event="INGEST_START", status="ok")
        build_path = self.db_path.with_name(f"{self.db_path.name}.building")
        remove_if_exists(build_path)

        try:
            stats = self._build(build_path, csv_path, edition)
            replace_file(build_path, self.db_path)
        except OSError as exc:
            remove_if_exists(build_path)
            raise IngestError(f"Failed to write coverage store: {exc}") from exc
        except Exception:
            remove_if_exists(build_path)
            raise

        log_event(
            self.logger,
            f"mobile database built with {stats.rows_inserted} rows",
            stage="ingest",
            edition=edition,
            event="INGEST_END",
            status="ok",
            rows_out=stats.rows_inserted,
            rows_skipped=stats.rows_skipped,
            duration_ms=elapsed_ms(started_at),
        )
        return stats

    def _build(self, build_path: Path, csv_path: Path, edition: str | None) -> IngestStats:
        engine = _writable_engine(build_path)
        try:
            with csv_path.open("r", encoding="utf-8-sig", errors="replace", newline="") as f:
                return self._load(engine, csv.reader(f), edition)
        except FileNotFoundError as exc:
            raise IngestError(f"CSV not found: {csv_path}") from exc
        except SQLAlchemyError as exc:
            raise IngestError(f"Failed to build coverage store: {exc}") from exc
        finally:
            engine.dispose()

    def _load(self, engine, reader, edition: str | None) -> IngestStats:
        try:
            headers = next(reader)
        except StopIteration:
            raise IngestError("CSV is empty, no header row") from None
        except csv.Error as exc:
            raise IngestError(f"Failed to read CSV headers: {exc}") from exc

        columns = normalise_headers(headers)
        postcode_index = find_postcode_column(columns)
        columns[postcode_index] = POSTCODE_COLUMN

        metadata = MetaData()
        table = Table(STORE_TABLE, metadata, *(Column(name, Text) for name in columns))
        batch_size = self.config.insert_batch_size
        inserted = 0
        skipped = 0
        batch: list[dict[str, str | None]] = []

        with engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA synchronous=OFF")
            conn.exec_driver_sql("PRAGMA journal_mode=MEMORY")
            metadata.create_all(conn)
            conn.commit()

            while True:
                try:
                    record = next(reader)
                except StopIteration:
                    break
                except csv.Error:
                    skipped += 1
                    continue
                if not record:
                    continue
                try:
                    batch.append(parse_record(record, columns, postcode_index))
                except ParseError:
                    skipped += 1
                    continue

                if len(batch) >= batch_size:
                    conn.execute(table.insert(), batch)
                    conn.commit()
                    inserted += len(batch)
                    batch = []
                    log_event(
                        self.logger,
                        f"inserted {inserted} rows",
                        stage="ingest",
                        edition=edition,
                        event="INGEST_PROGRESS",
                        status="ok",
                        rows_out=inserted,
                        rows_skipped=skipped,
                    )

            if batch:
                conn.execute(table.insert(), batch)
                conn.commit()
                inserted += len(batch)

            Index(INDEX_NAME, table.c[POSTCODE_COLUMN]).create(conn)
            conn.commit()

        return IngestStats(columns=columns, rows_inserted=inserted, rows_skipped=skipped)

    def query_postcode(self, key: str) -> dict[str, str] | None:
        """Return the stored row for ``key`` without its null columns, or ``None``.

        When a postcode appears more than once the first row loaded wins.
        """
        if not self.db_path.exists():
            raise UnavailableError("database not found, run 'setup' first")

        postcode = normalise_postcode(key)
        engine = _read_only_engine(self.db_path)
        try:
            with engine.connect() as conn:
                row = (
                    conn.execute(
                        text(
                            f'SELECT * FROM "{STORE_TABLE}" '
                            f'WHERE "{POSTCODE_COLUMN}" = :postcode ORDER BY rowid LIMIT 1'
                        ),
                        {"postcode": postcode},
                    )
                    .mappings()
                    .first()
                )
        except (SQLAlchemyError, sqlite3.Error) as exc:
            raise UnavailableError(f"coverage store unreadable: {exc}") from exc
        finally:
            engine.dispose()

        if row is None:
            return None
        return {column: str(value) for column, value in row.items() if value is not None}
