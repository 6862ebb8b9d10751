"""Exporter Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Sequence, TextIO

from ...errors import ExportError
from ..records import FieldValue, Record


def run_filename(moment: datetime, extension: str) -> str:
    """``YYYY-M-D-H-M-S.<ext>`` with unpadded components."""

    return (
        f"{moment.year}-{moment.month}-{moment.day}-"
        f"{moment.hour}-{moment.minute}-{moment.second}.{extension}"
    )


class BaseExporter(ABC):
    """Uniform exporter contract enabling plug-and-play outputs."""

    extension = "txt"

    def __init__(self, output_dir: Path, *, clock=datetime.now) -> None:
        self.output_dir = Path(output_dir)
        self._clock = clock

    def export(self, records: Sequence[Record], columns: Sequence[str]) -> Path:
        """Write every record to a fresh run file and return its path."""

        if not columns:
            raise ExportError("At least one column is required")
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path, stream = self._open_unique()
            try:
                with stream:
                    self._write(stream, records, list(columns))
            except OSError:
                # 写入中途失败时不保留残缺文件
                path.unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise ExportError(f"Cannot write output in {self.output_dir}: {exc}") from exc
        return path

    def _open_unique(self) -> tuple[Path, TextIO]:
        """Create the run file exclusively, adding ``-N`` until the name is free."""

        base = run_filename(self._clock(), self.extension)
        stem = Path(base).stem
        path = self.output_dir / base
        counter = 0
        while True:
            try:
                return path, path.open("x", encoding="utf-8", newline="")
            except FileExistsError:
                counter += 1
                path = self.output_dir / f"{stem}-{counter}.{self.extension}"

    @abstractmethod
    def _write(self, stream, records: Sequence[Record], columns: list[str]) -> None:
        """Serialise records into an open text stream."""

    @staticmethod
    def _value(record: Record, column: str) -> FieldValue:
        return record.get(column, "")


__all__ = ["BaseExporter", "run_filename"]
