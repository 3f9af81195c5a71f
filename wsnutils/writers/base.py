"""Common behavior of the message writers."""

from __future__ import annotations

import logging
import sys
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TextIO

from wsnutils.core.errors import WriterClosedError

LOGGER = logging.getLogger(__name__)


class Writer(ABC):
    """Records decoded messages to a text destination.

    ``shutdown`` flushes and closes the destination exactly once; standard
    streams are flushed but left open.
    """

    def __init__(self, destination: TextIO) -> None:
        self.destination = destination
        self.messages_written = 0
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, payload: bytes, timestamp: datetime | None = None) -> None:
        with self._lock:
            if self._closed:
                raise WriterClosedError(f"{type(self).__name__} is already shut down")
            self._write(payload, timestamp or datetime.now(timezone.utc))
            self.messages_written += 1

    def shutdown(self, grace_s: float = 5.0) -> None:
        acquired = self._lock.acquire(timeout=grace_s)
        if not acquired:
            LOGGER.warning(
                "%s is blocked in a write, forcing close after %ss; unflushed data may be lost",
                type(self).__name__,
                grace_s,
            )
        try:
            if self._closed:
                return
            self._closed = True
            self._close_destination()
        finally:
            if acquired:
                self._lock.release()

    def _close_destination(self) -> None:
        try:
            self._finish()
            self.destination.flush()
        except (OSError, ValueError) as exc:
            LOGGER.error("Flushing %s failed, buffered output may be lost: %s", type(self).__name__, exc)
        if self.destination not in (sys.stdout, sys.stderr):
            try:
                self.destination.close()
            except OSError as exc:
                LOGGER.error("Closing %s destination failed: %s", type(self).__name__, exc)
        LOGGER.debug("%s shut down after %d messages", type(self).__name__, self.messages_written)

    @abstractmethod
    def _write(self, payload: bytes, timestamp: datetime) -> None:
        """Render one message."""

    def _finish(self) -> None:
        """Write any trailer before the destination is flushed."""
