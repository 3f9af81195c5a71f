"""DLE/STX/ETX byte stuffing used on the serial links.

A frame on the wire is ``DLE STX <payload> DLE ETX`` where every DLE inside
the payload is doubled.
"""

from __future__ import annotations

import logging

DLE = 0x10
STX = 0x02
ETX = 0x03

LOGGER = logging.getLogger(__name__)


def encode(payload: bytes) -> bytes:
    stuffed = payload.replace(bytes([DLE]), bytes([DLE, DLE]))
    return bytes([DLE, STX]) + stuffed + bytes([DLE, ETX])


class DleStxEtxDecoder:
    """Incremental decoder; state carries over between ``feed`` calls."""

    def __init__(self, max_frame_size: int = 4096) -> None:
        self.max_frame_size = max_frame_size
        self._buffer = bytearray()
        self._in_frame = False
        self._escape = False
        self.discarded = 0

    def feed(self, chunk: bytes) -> list[bytes]:
        frames: list[bytes] = []
        for byte in chunk:
            if self._escape:
                self._escape = False
                self._handle_escaped(byte, frames)
            elif byte == DLE:
                self._escape = True
            elif self._in_frame:
                self._append(byte)
            else:
                self.discarded += 1
        return frames

    def reset(self) -> None:
        self._buffer.clear()
        self._in_frame = False
        self._escape = False

    def _handle_escaped(self, byte: int, frames: list[bytes]) -> None:
        if byte == STX:
            if self._in_frame and self._buffer:
                LOGGER.warning("Dropping %d bytes of unterminated frame", len(self._buffer))
            self._buffer.clear()
            self._in_frame = True
        elif byte == ETX:
            if self._in_frame:
                frames.append(bytes(self._buffer))
            self._buffer.clear()
            self._in_frame = False
        elif byte == DLE:
            if self._in_frame:
                self._append(DLE)
        else:
            LOGGER.debug("Ignoring unexpected escape sequence DLE 0x%02x", byte)
            self.discarded += 2

    def _append(self, byte: int) -> None:
        if len(self._buffer) >= self.max_frame_size:
            LOGGER.warning("Frame exceeds %d bytes, resynchronizing", self.max_frame_size)
            self.reset()
            return
        self._buffer.append(byte)
