"""Immutable record produced by the extractors."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Iterable, Iterator, Union

FieldValue = Union[str, tuple[str, ...]]


class Record(Mapping[str, FieldValue]):
    """Ordered, read-only mapping of field name to extracted value.

    Multi-value fields (``tags`` and the like) are stored as tuples so the
    record stays hashable-friendly and cannot be mutated after extraction.
    """

    __slots__ = ("_items", "_index")

    def __init__(self, items: Mapping[str, FieldValue] | Iterable[tuple[str, FieldValue]] = ()) -> None:
        pairs = items.items() if isinstance(items, Mapping) else items
        normalised: list[tuple[str, FieldValue]] = []
        for name, value in pairs:
            if isinstance(value, list):
                value = tuple(value)
            normalised.append((str(name), value))
        object.__setattr__(self, "_items", tuple(normalised))
        object.__setattr__(self, "_index", {name: value for name, value in normalised})

    def __getitem__(self, key: str) -> FieldValue:
        return self._index[key]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Record is immutable")

    def __hash__(self) -> int:
        return hash(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Record):
            return self._items == other._items
        return super().__eq__(other)

    def __repr__(self) -> str:
        body = ", ".join(f"{name}={value!r}" for name, value in self._items)
        return f"Record({body})"

    def to_dict(self) -> dict[str, str | list[str]]:
        """Plain dict with lists in place of tuples, suitable for JSON."""

        return {
            name: list(value) if isinstance(value, tuple) else value
            for name, value in self._items
        }


__all__ = ["FieldValue", "Record"]
