"""Persisted dataset store: load prior records, merge new ones, rewrite."""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Sequence

import structlog

from ..errors import PersistenceError
from ..infra.storage import OutputDirectory
from .dedup import DedupIndex
from .records import BusinessRecord

COL_NAME = "Business Name"
COL_ADDRESS = "Address"
COL_PHONE = "Phone Number"
COL_IMAGE = "Image URL"
COL_VERIFIED = "Verified"
COL_CATEGORY = "Category"
COL_PAGE = "Page Number"
COL_DATE = "Date Scraped"

TRUE_TOKEN = "true"
FALSE_TOKEN = "false"


def columns(include_category: bool) -> list[str]:
    cols = [COL_NAME, COL_ADDRESS, COL_PHONE, COL_IMAGE, COL_VERIFIED]
    if include_category:
        cols.append(COL_CATEGORY)
    cols.extend([COL_PAGE, COL_DATE])
    return cols


def parse_bool(token: str) -> bool:
    text = token.strip().lower()
    if text == TRUE_TOKEN:
        return True
    if text == FALSE_TOKEN:
        return False
    raise ValueError(f"Unrecognised boolean token: {token!r}")


def record_to_row(record: BusinessRecord, include_category: bool) -> dict[str, str]:
    row = {
        COL_NAME: record.name,
        COL_ADDRESS: record.address,
        COL_PHONE: record.phone,
        COL_IMAGE: record.image_url or "",
        COL_VERIFIED: TRUE_TOKEN if record.verified else FALSE_TOKEN,
        COL_PAGE: str(record.source_page),
        COL_DATE: record.date_scraped.isoformat(),
    }
    if include_category:
        row[COL_CATEGORY] = record.category or ""
    return row


def parse_page(token: str | None) -> int:
    """Page numbers are positive; rows saved without one count as page 1."""
    text = (token or "").strip()
    if not text:
        return 1
    page = int(text)
    if page < 1:
        raise ValueError(f"Page number must be positive: {token!r}")
    return page


def row_to_record(row: dict[str, str | None], fallback_date: datetime) -> BusinessRecord:
    date_text = (row.get(COL_DATE) or "").strip()
    date_scraped = datetime.fromisoformat(date_text) if date_text else fallback_date
    category = row.get(COL_CATEGORY)
    return BusinessRecord(
        name=row[COL_NAME] or "",
        address=row.get(COL_ADDRESS) or "",
        phone=row.get(COL_PHONE) or "",
        image_url=(row.get(COL_IMAGE) or "") or None,
        verified=parse_bool(row.get(COL_VERIFIED) or FALSE_TOKEN),
        source_page=parse_page(row.get(COL_PAGE)),
        date_scraped=date_scraped,
        category=category if category else None,
    )


class DatasetStore:
    """Load and rewrite CSV datasets keyed by identifier.

    A dataset is read once at the start of a run and rewritten in full at
    the end. Runs against the same identifier are not coordinated.
    """

    def __init__(
        self, output_dir: OutputDirectory, logger: structlog.BoundLogger | None = None
    ) -> None:
        self.output_dir = output_dir
        self.logger = logger or structlog.get_logger("directory_harvester.dataset")

    def path_for(self, identifier: str) -> Path:
        return self.output_dir.path_for(identifier)

    def load_dataset(self, identifier: str) -> tuple[list[BusinessRecord], DedupIndex]:
        path = self.path_for(identifier)
        if not path.exists():
            return [], DedupIndex()
        try:
            records = self._read(path)
        except (OSError, UnicodeDecodeError, csv.Error, KeyError, ValueError) as exc:
            error = PersistenceError(identifier, path, "read", str(exc))
            self.logger.warning(
                "dataset_read_failed",
                identifier=identifier,
                path=str(path),
                error=str(error),
            )
            return [], DedupIndex()
        return records, DedupIndex.from_records(records)

    def merge_and_persist(
        self,
        identifier: str,
        existing: Sequence[BusinessRecord],
        new: Sequence[BusinessRecord],
    ) -> list[BusinessRecord]:
        combined = list(existing) + list(new)
        path = self.path_for(identifier)
        try:
            self._write(path, combined)
        except (OSError, csv.Error) as exc:
            raise PersistenceError(identifier, path, "write", str(exc)) from exc
        self.logger.info(
            "dataset_persisted",
            identifier=identifier,
            path=str(path),
            existing=len(existing),
            added=len(new),
        )
        return combined

    def list_datasets(self) -> list[Path]:
        return self.output_dir.list_files()

    def _read(self, path: Path) -> list[BusinessRecord]:
        fallback_date = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).replace(
            microsecond=0
        )
        with path.open("r", encoding="utf-8", newline="") as stream:
            reader = csv.DictReader(stream)
            if reader.fieldnames is None:
                return []
            if COL_NAME not in reader.fieldnames:
                raise KeyError(f"missing column {COL_NAME!r}")
            return [row_to_record(row, fallback_date) for row in reader]

    def _write(self, path: Path, records: Iterable[BusinessRecord]) -> None:
        records = list(records)
        include_category = any(record.category is not None for record in records)
        with self.output_dir.atomic_writer(path) as stream:
            writer = csv.DictWriter(stream, fieldnames=columns(include_category))
            writer.writeheader()
            for record in records:
                writer.writerow(record_to_row(record, include_category))


__all__ = ["DatasetStore", "columns", "parse_bool", "parse_page", "record_to_row", "row_to_record"]
