"""Polling observer that turns device presence changes into events."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Protocol

from wsnutils.core.errors import WsnUtilsError
from wsnutils.core.identity import IdentityResolver
from wsnutils.core.model import DeviceEvent, DeviceHandle, DeviceInfo, EventKind
from wsnutils.transports.base import DeviceEnumerator

LOGGER = logging.getLogger(__name__)


class DeviceListener(Protocol):
    def __call__(self, event: DeviceEvent) -> None:
        """Handle one device event."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeviceObserver:
    """Diffs consecutive enumerations of attached devices.

    Identities are resolved once, when a handle first appears. A device
    whose MAC changes without a disconnect keeps the reference it was
    resolved with.
    """

    def __init__(
        self,
        enumerator: DeviceEnumerator,
        resolver: IdentityResolver,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.enumerator = enumerator
        self.resolver = resolver
        self.clock = clock
        self._listeners: list[DeviceListener] = []
        self._snapshot: dict[DeviceHandle, DeviceInfo] = {}
        self._cycle_lock = threading.Lock()

    @property
    def snapshot(self) -> MappingProxyType[DeviceHandle, DeviceInfo]:
        return MappingProxyType(dict(self._snapshot))

    def add_listener(self, listener: DeviceListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: DeviceListener) -> None:
        self._listeners.remove(listener)

    def get_events(self) -> list[DeviceEvent]:
        """Run one poll cycle and return its events."""
        return self.poll()

    def poll(self) -> list[DeviceEvent]:
        with self._cycle_lock:
            events = self._diff()
            for event in events:
                self._notify(event)
            return events

    def run(self, stop_event: threading.Event, interval_s: float = 1.0) -> None:
        """Poll until ``stop_event`` is set; an overrunning cycle delays the next one."""
        LOGGER.info("Observing devices every %ss", interval_s)
        while not stop_event.is_set():
            started = time.monotonic()
            try:
                self.poll()
            except Exception:
                LOGGER.exception("Device poll cycle failed")
            elapsed = time.monotonic() - started
            if elapsed > interval_s:
                LOGGER.debug("Poll cycle took %.3fs, longer than the %ss interval", elapsed, interval_s)
            stop_event.wait(max(0.0, interval_s - elapsed))
        LOGGER.info("Device observer stopped")

    def _diff(self) -> list[DeviceEvent]:
        try:
            current = set(self.enumerator.list_devices())
        except (WsnUtilsError, OSError) as exc:
            LOGGER.warning("Device enumeration failed: %s", exc)
            return [DeviceEvent(kind=EventKind.ENUMERATION_ERROR, info=None, timestamp=self.clock(), error=str(exc))]

        previous = self._snapshot
        appeared = sorted(current - previous.keys(), key=lambda h: (h.port, h.type))
        vanished = sorted(previous.keys() - current, key=lambda h: (h.port, h.type))

        resolved = self.resolver.resolve_all(appeared) if appeared else {}

        next_snapshot = {handle: info for handle, info in previous.items() if handle in current}
        next_snapshot.update(resolved)
        self._snapshot = next_snapshot

        now = self.clock()
        events = [DeviceEvent(kind=EventKind.DISCONNECTED, info=previous[h], timestamp=now) for h in vanished]
        events.extend(DeviceEvent(kind=EventKind.CONNECTED, info=resolved[h], timestamp=now) for h in appeared)
        if events:
            LOGGER.debug("Poll cycle: %d appeared, %d vanished", len(appeared), len(vanished))
        return events

    def _notify(self, event: DeviceEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                LOGGER.exception("Device listener %r failed on %s event", listener, event.kind.value)
