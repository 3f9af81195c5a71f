"""Message writers and the format factory used by the listener."""

from __future__ import annotations

from typing import TextIO

from wsnutils.core.errors import ConfigError
from wsnutils.writers.base import Writer
from wsnutils.writers.csv_writer import CsvWriter
from wsnutils.writers.human import HumanReadableWriter
from wsnutils.writers.wiseml import WiseMLWriter

FORMATS = ("human", "csv", "wiseml")

__all__ = ["FORMATS", "CsvWriter", "HumanReadableWriter", "WiseMLWriter", "Writer", "create_writer"]


def create_writer(output_format: str | None, destination: TextIO, *, node_id: str) -> Writer:
    if output_format is None or output_format == "human":
        return HumanReadableWriter(destination)
    if output_format == "csv":
        return CsvWriter(destination)
    if output_format == "wiseml":
        return WiseMLWriter(destination, node_id)
    raise ConfigError(f"Unknown format {output_format}. Use one of: csv, wiseml")
