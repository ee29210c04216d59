"""Deduplication keys and the in-memory key index."""

from __future__ import annotations

from typing import Iterable, Tuple

from .records import BusinessRecord

DedupKey = Tuple[str, str]


def _normalise(value: str) -> str:
    return " ".join(value.split()).casefold()


def dedup_key(name: str, address: str) -> DedupKey:
    """Key deciding whether two listings are the same business."""
    return _normalise(name), _normalise(address)


def record_key(record: BusinessRecord) -> DedupKey:
    return dedup_key(record.name, record.address)


class DedupIndex:
    """Set of dedup keys known to the current run."""

    def __init__(self, keys: Iterable[DedupKey] | None = None) -> None:
        self._keys: set[DedupKey] = set(keys or ())

    @classmethod
    def from_records(cls, records: Iterable[BusinessRecord]) -> "DedupIndex":
        return cls(record_key(record) for record in records)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def update(self, records: Iterable[BusinessRecord]) -> None:
        for record in records:
            self._keys.add(record_key(record))


__all__ = ["DedupIndex", "DedupKey", "dedup_key", "record_key"]
