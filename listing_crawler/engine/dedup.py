"""In-memory deduplication of extracted records by identity key."""

from __future__ import annotations

from typing import Hashable, Iterable

from .records import Record


class Deduplicator:
    """Stable first-wins filter over a single identity field."""

    def __init__(self, key: str) -> None:
        self.key = key
        self._seen: set[Hashable] = set()
        self.duplicates = 0

    def admit(self, record: Record) -> bool:
        """Return True the first time a key value is seen.

        Records without the key cannot be identified and are always admitted.
        """

        value = record.get(self.key)
        if value is None:
            return True
        if value in self._seen:
            self.duplicates += 1
            return False
        self._seen.add(value)
        return True

    def filter(self, records: Iterable[Record]) -> list[Record]:
        return [record for record in records if self.admit(record)]


def dedupe(records: Iterable[Record], key: str) -> list[Record]:
    """Keep the first occurrence of every distinct ``key`` value, preserving order."""

    return Deduplicator(key).filter(records)


__all__ = ["Deduplicator", "dedupe"]
