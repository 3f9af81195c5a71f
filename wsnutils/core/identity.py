"""Resolution of attached devices to MAC addresses and human references."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from wsnutils.core.errors import WsnUtilsError
from wsnutils.core.model import DeviceHandle, DeviceInfo, MacAddress
from wsnutils.core.reference_map import ReferenceMap
from wsnutils.transports.base import DeviceDriver

LOGGER = logging.getLogger(__name__)


class IdentityResolver:
    """Reads MAC addresses through the driver and looks up their references.

    Every handle gets exactly one read attempt bounded by ``timeout_s``.
    ``resolve_all`` starts one worker per handle so all reads begin at once
    and share a single deadline; a read that overruns it keeps its worker
    until the driver returns, but its result is discarded.
    """

    def __init__(
        self,
        driver: DeviceDriver,
        reference_map: ReferenceMap | None = None,
        *,
        configuration: Mapping[str, str] | None = None,
        bits: int | None = None,
        timeout_s: float = 5.0,
    ) -> None:
        self.driver = driver
        self.reference_map = reference_map
        self.configuration = dict(configuration or {})
        self.bits = bits
        self.timeout_s = timeout_s

    def resolve(self, handle: DeviceHandle) -> DeviceInfo:
        return self.resolve_all([handle])[handle]

    def resolve_all(self, handles: Iterable[DeviceHandle]) -> dict[DeviceHandle, DeviceInfo]:
        handles = list(dict.fromkeys(handles))
        if not handles:
            return {}
        executor = ThreadPoolExecutor(max_workers=len(handles), thread_name_prefix="mac-reader")
        try:
            futures: dict[DeviceHandle, Future[MacAddress | None]] = {
                handle: executor.submit(self._read_mac, handle) for handle in handles
            }
            deadline = time.monotonic() + self.timeout_s
            resolved: dict[DeviceHandle, DeviceInfo] = {}
            for handle, future in futures.items():
                resolved[handle] = self.describe(handle, self._collect(handle, future, deadline))
            return resolved
        finally:
            executor.shutdown(wait=False)

    def describe(self, handle: DeviceHandle, mac: MacAddress | None) -> DeviceInfo:
        if mac is None:
            return DeviceInfo(handle=handle)
        if self.bits is not None and mac.bits != self.bits:
            mac = mac.truncated(self.bits) if mac.bits > self.bits else MacAddress(mac.value, self.bits)
        reference = self.reference_map.reverse_resolve(mac) if self.reference_map is not None else None
        return DeviceInfo(handle=handle, mac=mac, reference=reference)

    def _collect(self, handle: DeviceHandle, future: Future[MacAddress | None], deadline: float) -> MacAddress | None:
        try:
            return future.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeoutError:
            LOGGER.warning("Reading MAC of %s at %s timed out after %ss", handle.type, handle.port, self.timeout_s)
        except (WsnUtilsError, OSError) as exc:
            LOGGER.warning("Reading MAC of %s at %s failed: %s", handle.type, handle.port, exc)
        except Exception:
            LOGGER.exception("Unexpected error reading MAC of %s at %s", handle.type, handle.port)
        return None

    def _read_mac(self, handle: DeviceHandle) -> MacAddress | None:
        return self.driver.read_mac(handle.type, handle.port, self.configuration, None)
