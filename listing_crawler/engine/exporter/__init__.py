"""Exporter SPI and implementations."""

from __future__ import annotations

from pathlib import Path

from ...config import ExportConfig
from .base import BaseExporter, run_filename
from .csv_exporter import CsvExporter
from .jsonl_exporter import JsonLinesExporter


def build_exporter(config: ExportConfig, output_dir: Path) -> BaseExporter:
    if config.format == "jsonl":
        return JsonLinesExporter(output_dir)
    return CsvExporter(output_dir, list_separator=config.list_separator)


__all__ = ["BaseExporter", "CsvExporter", "JsonLinesExporter", "build_exporter", "run_filename"]
