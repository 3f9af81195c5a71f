"""Plain text writer for reading messages on a terminal."""

from __future__ import annotations

from datetime import datetime

from wsnutils.writers.base import Writer


def to_printable(payload: bytes) -> str:
    return "".join(chr(b) if 0x20 <= b <= 0x7E else f"[0x{b:02X}]" for b in payload)


class HumanReadableWriter(Writer):
    def _write(self, payload: bytes, timestamp: datetime) -> None:
        self.destination.write(f"{timestamp.isoformat()} | {to_printable(payload)}\n")
        self.destination.flush()
