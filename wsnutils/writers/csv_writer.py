"""CSV writer: one ``timestamp,payload`` row per message."""

from __future__ import annotations

import csv
from datetime import datetime
from typing import TextIO

from wsnutils.writers.base import Writer

CSV_HEADER = ("timestamp", "payload")


class CsvWriter(Writer):
    def __init__(self, destination: TextIO) -> None:
        super().__init__(destination)
        self._csv = csv.writer(destination, lineterminator="\n")
        self._header_written = False

    def _write(self, payload: bytes, timestamp: datetime) -> None:
        if not self._header_written:
            self._csv.writerow(CSV_HEADER)
            self._header_written = True
        self._csv.writerow((timestamp.isoformat(), payload.hex().upper()))
