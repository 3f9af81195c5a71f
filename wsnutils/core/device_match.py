"""Serial port to device type matching logic."""

from __future__ import annotations

from wsnutils.core.model import DetectedPort, DeviceType


def _usb_id_match(port: DetectedPort, device_type: DeviceType) -> bool:
    if port.usb_id is None:
        return False
    return port.usb_id.lower() in device_type.match.usb_ids


def _description_match(port: DetectedPort, device_type: DeviceType) -> bool:
    lower_description = port.description.lower()
    return any(token.lower() in lower_description for token in device_type.match.description_contains)


def match_score(port: DetectedPort, device_type: DeviceType) -> int:
    usb_match = _usb_id_match(port, device_type)
    description_match = _description_match(port, device_type)
    # FTDI bridges share VID:PID across device families.
    if usb_match and description_match:
        return 3
    if description_match:
        return 2
    if usb_match:
        return 1
    return 0


def best_type_for_port(port: DetectedPort, device_types: dict[str, DeviceType]) -> DeviceType | None:
    best: DeviceType | None = None
    best_score = 0
    for device_type in device_types.values():
        score = match_score(port, device_type)
        if score > best_score:
            best = device_type
            best_score = score
    return best
