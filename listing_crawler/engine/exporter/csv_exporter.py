"""Flat CSV exporter: no quoting, reserved characters stripped."""

from __future__ import annotations

import re
from typing import Sequence

from ..records import FieldValue, Record
from .base import BaseExporter

_RESERVED = re.compile(r"[,\r\n]")


class CsvExporter(BaseExporter):
    """Write a header row plus one unquoted row per record.

    Commas and line breaks are removed from values instead of quoted so the
    file can be split on ``,`` line by line and every row keeps the same
    arity. Multi-value fields are joined with ``list_separator``.
    """

    extension = "csv"
    delimiter = ","

    def __init__(self, output_dir, *, list_separator: str = "|", **kwargs) -> None:
        super().__init__(output_dir, **kwargs)
        self.list_separator = list_separator

    def sanitize(self, value: FieldValue) -> str:
        if isinstance(value, tuple):
            value = self.list_separator.join(_RESERVED.sub("", item) for item in value)
        return _RESERVED.sub("", str(value))

    def _write(self, stream, records: Sequence[Record], columns: list[str]) -> None:
        stream.write(self.delimiter.join(self.sanitize(column) for column in columns) + "\n")
        for record in records:
            row = [self.sanitize(self._value(record, column)) for column in columns]
            stream.write(self.delimiter.join(row) + "\n")


__all__ = ["CsvExporter"]
