"""Serial device driver implementation using pyserial."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping

import serial
import serial.tools.list_ports

from wsnutils.core.device_match import best_type_for_port
from wsnutils.core.errors import (
    DeviceConnectionError,
    DeviceTypeError,
    EnumerationError,
    TransportError,
    TransportTimeoutError,
)
from wsnutils.core.framing import DleStxEtxDecoder, encode
from wsnutils.core.model import DetectedPort, DeviceHandle, DeviceType, MacAddress
from wsnutils.core.plugin_loader import load_device_types

LOGGER = logging.getLogger(__name__)


def _usb_id(port_info) -> str | None:
    if port_info.vid is None or port_info.pid is None:
        return None
    return f"{port_info.vid:04x}:{port_info.pid:04x}"


def _float_option(configuration: Mapping[str, str], key: str, default: float) -> float:
    raw = configuration.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise DeviceConnectionError(f"Configuration value {key}={raw!r} is not a number") from exc


class SerialDeviceDriver:
    def __init__(self, device_types: dict[str, DeviceType] | None = None) -> None:
        if device_types is None:
            loaded = load_device_types()
            device_types = loaded.device_types
            self.load_warnings = loaded.warnings
        else:
            self.load_warnings = ()
        self.device_types = device_types

    def device_type(self, type_id: str) -> DeviceType:
        device_type = self.device_types.get(type_id)
        if device_type is None:
            known = ", ".join(sorted(self.device_types))
            raise DeviceTypeError(f"Unknown device type '{type_id}'. Known types: {known}")
        return device_type

    def list_devices(self) -> set[DeviceHandle]:
        try:
            ports = serial.tools.list_ports.comports()
        except Exception as exc:
            raise EnumerationError(f"Listing serial ports failed: {exc}") from exc

        handles: set[DeviceHandle] = set()
        for port_info in ports:
            detected = DetectedPort(
                device=port_info.device,
                usb_id=_usb_id(port_info),
                description=port_info.description or "",
            )
            device_type = best_type_for_port(detected, self.device_types)
            if device_type is None:
                LOGGER.debug("Ignoring %s (%s, usb=%s)", detected.device, detected.description, detected.usb_id)
                continue
            handles.add(DeviceHandle(type=device_type.id, port=detected.device))
        return handles

    def connect(
        self,
        device_type: str,
        port: str,
        configuration: Mapping[str, str] | None = None,
    ) -> serial.Serial:
        spec = self.device_type(device_type)
        configuration = configuration or {}
        baudrate = configuration.get("baudrate", spec.serial.baudrate)
        try:
            connection = serial.Serial(
                port=port,
                baudrate=int(baudrate),
                timeout=_float_option(configuration, "timeout", spec.serial.timeout_s),
            )
        except ValueError as exc:
            raise DeviceConnectionError(f"Invalid serial settings for {port}: {exc}") from exc
        except serial.SerialException as exc:
            raise DeviceConnectionError(f"Could not open {device_type} device at {port}: {exc}") from exc

        if not connection.is_open:
            raise DeviceConnectionError(f"Connection to {device_type} device at {port} could not be established")
        LOGGER.info("Connected to %s device at %s (%s baud)", device_type, port, baudrate)
        return connection

    def read_mac(
        self,
        device_type: str,
        port: str,
        configuration: Mapping[str, str] | None = None,
        reference: str | None = None,
    ) -> MacAddress | None:
        spec = self.device_type(device_type)
        if spec.mac is None:
            LOGGER.info("Device type %s does not support reading the MAC address", device_type)
            return None

        configuration = configuration or {}
        timeout_s = _float_option(configuration, "mac.timeout", spec.mac.timeout_s)
        LOGGER.debug("Reading MAC of %s device at %s (reference=%s)", device_type, port, reference)

        connection = self.connect(device_type, port, configuration)
        try:
            try:
                connection.write(encode(spec.mac.request))
            except serial.SerialException as exc:
                raise TransportError(f"Sending MAC request to {port} failed: {exc}") from exc

            decoder = DleStxEtxDecoder()
            deadline = time.monotonic() + timeout_s
            while time.monotonic() < deadline:
                try:
                    chunk = connection.read(64)
                except serial.SerialException as exc:
                    raise TransportError(f"Reading MAC response from {port} failed: {exc}") from exc
                for frame in decoder.feed(chunk):
                    if frame.startswith(spec.mac.response_prefix):
                        return _mac_from_response(frame[len(spec.mac.response_prefix) :], port)
            raise TransportTimeoutError(f"No MAC response from {device_type} device at {port} within {timeout_s}s")
        finally:
            connection.close()


def _mac_from_response(body: bytes, port: str) -> MacAddress | None:
    if len(body) >= 8:
        return MacAddress.from_bytes(body[:8])
    if len(body) >= 6:
        return MacAddress.from_bytes(body[:6])
    LOGGER.warning("MAC response from %s is too short (%d bytes)", port, len(body))
    return None
