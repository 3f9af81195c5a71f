"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from wsnutils.core.model import DeviceHandle, MacAddress


class ByteStream(Protocol):
    @property
    def is_open(self) -> bool:
        """Whether the underlying device is connected."""

    def read(self, size: int = 1) -> bytes:
        """Read up to ``size`` bytes; an empty result means the read timed out."""

    def write(self, data: bytes) -> int | None:
        """Write raw bytes to the device."""

    def close(self) -> None:
        """Release the device."""


class DeviceEnumerator(Protocol):
    def list_devices(self) -> set[DeviceHandle]:
        """Return the devices attached right now."""


class DeviceDriver(DeviceEnumerator, Protocol):
    def connect(
        self,
        device_type: str,
        port: str,
        configuration: Mapping[str, str] | None = None,
    ) -> ByteStream:
        """Open a byte stream to the device on ``port``."""

    def read_mac(
        self,
        device_type: str,
        port: str,
        configuration: Mapping[str, str] | None = None,
        reference: str | None = None,
    ) -> MacAddress | None:
        """Read the MAC address of the device, or None if it has none to report."""
