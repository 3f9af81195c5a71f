"""Core data models used across loader, observer, channel, and CLI."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

_MAC_SEPARATORS_RE = re.compile(r"[:\-\s]")
_HEX_RE = re.compile(r"^[0-9A-F]+$")
_MAC_WIDTHS = (48, 64)


@dataclass(frozen=True, eq=False)
class MacAddress:
    """A 48-bit or 64-bit MAC address.

    Two addresses compare equal when their numeric values are equal; the
    width only affects the canonical hex rendering.
    """

    value: int
    bits: int = 64

    def __post_init__(self) -> None:
        if self.bits not in _MAC_WIDTHS:
            raise ValueError(f"MAC width must be 48 or 64 bits, got {self.bits}")
        if self.value < 0 or self.value >= 1 << self.bits:
            raise ValueError(f"MAC value {self.value:#x} does not fit in {self.bits} bits")

    @classmethod
    def from_hex(cls, text: str, bits: int | None = None) -> MacAddress:
        normalized = _MAC_SEPARATORS_RE.sub("", text.strip()).upper()
        if normalized.startswith("0X"):
            normalized = normalized[2:]
        if not normalized or not _HEX_RE.match(normalized):
            raise ValueError(f"'{text}' is not a hexadecimal MAC address")
        if bits is None:
            bits = 64 if len(normalized) > 12 else 48
        return cls(int(normalized, 16), bits)

    @classmethod
    def from_bytes(cls, raw: bytes) -> MacAddress:
        if len(raw) not in (6, 8):
            raise ValueError(f"MAC must be 6 or 8 bytes, got {len(raw)}")
        return cls(int.from_bytes(raw, "big"), len(raw) * 8)

    def truncated(self, bits: int) -> MacAddress:
        return MacAddress(self.value & ((1 << bits) - 1), bits)

    def to_hex(self) -> str:
        return f"{self.value:0{self.bits // 4}X}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MacAddress):
            return NotImplemented
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __str__(self) -> str:
        return self.to_hex()


@dataclass(frozen=True, order=True)
class DeviceHandle:
    type: str
    port: str


@dataclass(frozen=True)
class DeviceInfo:
    handle: DeviceHandle
    mac: MacAddress | None = None
    reference: str | None = None

    @property
    def type(self) -> str:
        return self.handle.type

    @property
    def port(self) -> str:
        return self.handle.port

    def __str__(self) -> str:
        mac = self.mac.to_hex() if self.mac else "<unknown>"
        reference = self.reference or "<none>"
        return f"type={self.type} port={self.port} mac={mac} reference={reference}"


class EventKind(str, Enum):
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    ENUMERATION_ERROR = "ENUMERATION_ERROR"


@dataclass(frozen=True)
class DeviceEvent:
    kind: EventKind
    info: DeviceInfo | None
    timestamp: datetime
    error: str | None = None

    def __str__(self) -> str:
        stamp = self.timestamp.isoformat()
        if self.kind is EventKind.ENUMERATION_ERROR:
            return f"{stamp} {self.kind.value} {self.error}"
        return f"{stamp} {self.kind.value} {self.info}"


@dataclass(frozen=True)
class MatchRules:
    usb_ids: tuple[str, ...]
    description_contains: tuple[str, ...]


@dataclass(frozen=True)
class SerialSpec:
    baudrate: int = 115200
    timeout_s: float = 0.5


@dataclass(frozen=True)
class MacReadSpec:
    request: bytes
    response_prefix: bytes
    timeout_s: float = 3.0


@dataclass(frozen=True)
class DeviceType:
    id: str
    name: str
    match: MatchRules
    serial: SerialSpec = field(default_factory=SerialSpec)
    mac: MacReadSpec | None = None


@dataclass(frozen=True)
class DetectedPort:
    device: str
    usb_id: str | None
    description: str
