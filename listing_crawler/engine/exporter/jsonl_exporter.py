"""JSON Lines exporter."""

from __future__ import annotations

import json
from typing import Sequence

from ..records import Record
from .base import BaseExporter


class JsonLinesExporter(BaseExporter):
    """One JSON object per record, restricted to the requested columns."""

    extension = "jsonl"

    def _write(self, stream, records: Sequence[Record], columns: list[str]) -> None:
        for record in records:
            payload = record.to_dict()
            json.dump({column: payload.get(column, "") for column in columns}, stream, ensure_ascii=False)
            stream.write("\n")


__all__ = ["JsonLinesExporter"]
