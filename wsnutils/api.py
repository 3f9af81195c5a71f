"""Stable public API for building tooling on top of wsnutils.

This module is the supported integration surface for third-party callers and
the place where the command line wires observers, resolvers, channels and
writers together.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TextIO

from wsnutils.core.channel import FrameChannel
from wsnutils.core.errors import (
    ConfigError,
    DeviceConnectionError,
    DeviceTypeError,
    EnumerationError,
    ParseError,
    PluginLoadError,
    PluginValidationError,
    ReferenceFileIsDirectoryError,
    ReferenceFileMissingError,
    ReferenceFileUnreadableError,
    TransportError,
    TransportTimeoutError,
    WriterClosedError,
    WsnUtilsError,
)
from wsnutils.core.identity import IdentityResolver
from wsnutils.core.model import (
    DeviceEvent,
    DeviceHandle,
    DeviceInfo,
    DeviceType,
    EventKind,
    MacAddress,
)
from wsnutils.core.observer import DeviceListener, DeviceObserver
from wsnutils.core.reference_map import ReferenceMap, load_properties, load_reference_map
from wsnutils.transports.base import ByteStream, DeviceDriver
from wsnutils.transports.serial_port import SerialDeviceDriver
from wsnutils.writers import create_writer

LOGGER = logging.getLogger(__name__)

__all__ = [
    "WsnUtilsError",
    "ConfigError",
    "ParseError",
    "ReferenceFileMissingError",
    "ReferenceFileUnreadableError",
    "ReferenceFileIsDirectoryError",
    "PluginLoadError",
    "PluginValidationError",
    "DeviceTypeError",
    "EnumerationError",
    "DeviceConnectionError",
    "TransportError",
    "TransportTimeoutError",
    "WriterClosedError",
    "ByteStream",
    "DeviceDriver",
    "DeviceEvent",
    "DeviceHandle",
    "DeviceInfo",
    "DeviceListener",
    "DeviceType",
    "EventKind",
    "MacAddress",
    "ReferenceMap",
    "load_properties",
    "load_reference_map",
    "Client",
]


class Client:
    """Public client for observing, identifying and listening to devices.

    A `Client` owns one device driver (the pyserial driver unless another is
    injected) and builds the observer, resolver and frame channel instances
    each command needs.
    """

    def __init__(self, *, driver: DeviceDriver | None = None) -> None:
        self.driver = driver or SerialDeviceDriver()

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return tuple(getattr(self.driver, "load_warnings", ()))

    def list_device_types(self) -> list[DeviceType]:
        device_types = getattr(self.driver, "device_types", {})
        return sorted(device_types.values(), key=lambda t: t.id)

    def resolver(
        self,
        reference_map: ReferenceMap | None = None,
        *,
        configuration: Mapping[str, str] | None = None,
        bits: int | None = None,
        timeout_s: float = 5.0,
    ) -> IdentityResolver:
        return IdentityResolver(
            self.driver,
            reference_map,
            configuration=configuration,
            bits=bits,
            timeout_s=timeout_s,
        )

    def observer(
        self,
        reference_map: ReferenceMap | None = None,
        *,
        configuration: Mapping[str, str] | None = None,
    ) -> DeviceObserver:
        return DeviceObserver(self.driver, self.resolver(reference_map, configuration=configuration))

    def listen(
        self,
        device_type: str,
        port: str,
        destination: TextIO,
        *,
        output_format: str | None = None,
        configuration: Mapping[str, str] | None = None,
    ) -> FrameChannel:
        writer = create_writer(output_format, destination, node_id=f"node at {port}")
        try:
            stream = self.driver.connect(device_type, port, configuration)
        except WsnUtilsError:
            writer.shutdown()
            raise
        try:
            return FrameChannel.open(stream, writer, name=f"listener {port}")
        except WsnUtilsError:
            writer.shutdown()
            stream.close()
            raise

    def read_mac(
        self,
        device_type: str,
        port: str,
        *,
        reference_map: ReferenceMap | None = None,
        configuration: Mapping[str, str] | None = None,
        use_64bit: bool = False,
    ) -> MacAddress | None:
        reference: str | None = None
        if reference_map is not None:
            observer = self.observer(reference_map, configuration=configuration)
            for event in observer.get_events():
                if event.info is not None and event.info.port == port:
                    reference = event.info.reference

        mac = self.driver.read_mac(device_type, port, configuration, reference)
        if mac is None:
            return None
        bits = 64 if use_64bit else 48
        if mac.bits > bits:
            return mac.truncated(bits)
        return MacAddress(mac.value, bits)
