from __future__ import annotations

from pathlib import Path

import pytest

from wsnutils.core.errors import PluginValidationError
from wsnutils.core.plugin_loader import load_device_types, parse_device_type, user_device_type_dir

LAB_TELOSB = """
id: telosb
name: Lab TelosB
match:
  usb_ids: ["0403:6001"]
  description_contains: ["Lab"]
serial:
  baudrate: 57600
  timeout_s: 1.5
"""


def test_load_packaged_device_types(tmp_path: Path) -> None:
    loaded = load_device_types(tmp_path)
    assert {"telosb", "isense", "pacemate"} <= set(loaded.device_types)
    telosb = loaded.device_types["telosb"]
    assert telosb.serial.baudrate == 115200
    assert telosb.match.usb_ids == ("0403:6001",)
    assert telosb.mac is not None
    assert telosb.mac.request.hex() == "0a01"
    assert loaded.device_types["pacemate"].mac is None
    assert loaded.warnings == ()


def test_user_dir_follows_xdg_config_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert user_device_type_dir() == tmp_path / "wsnutils" / "device-types"


def test_user_type_overrides_packaged(tmp_path: Path) -> None:
    (tmp_path / "override.yaml").write_text(LAB_TELOSB, encoding="utf-8")

    loaded = load_device_types(tmp_path)
    telosb = loaded.device_types["telosb"]
    assert telosb.name == "Lab TelosB"
    assert telosb.serial.baudrate == 57600
    assert telosb.serial.timeout_s == 1.5
    assert telosb.mac is None
    assert any("overrides device type 'telosb'" in warning for warning in loaded.warnings)


def test_mac_request_parsed_as_hex() -> None:
    device_type = parse_device_type(
        """
id: lab_node
name: Lab node
match:
  usb_ids: ["10C4:EA60"]
serial:
  baudrate: 38400
mac:
  request: "0A 01"
  response_prefix: "0a"
  timeout_s: 2
"""
    )
    assert device_type.match.usb_ids == ("10c4:ea60",)
    assert device_type.mac is not None
    assert device_type.mac.request == b"\x0a\x01"
    assert device_type.mac.timeout_s == 2.0


@pytest.mark.parametrize(
    "document",
    [
        pytest.param(
            """
id: bad_hex
name: Bad Hex
match:
  usb_ids: ["0403:6001"]
serial:
  baudrate: 115200
mac:
  request: "xyz"
  response_prefix: "0a"
""",
            id="invalid-hex",
        ),
        pytest.param(
            """
id: missing
name: Missing
match:
  usb_ids: ["0403:6001"]
""",
            id="missing-serial",
        ),
        pytest.param(
            """
id: usb
name: Bad USB id
match:
  usb_ids: ["0403-6001"]
serial:
  baudrate: 115200
""",
            id="malformed-usb-id",
        ),
        pytest.param(
            """
id: dup
name: Duplicate
match:
  usb_ids: ["0403:6001"]
serial:
  baudrate: 115200
  baudrate: 57600
""",
            id="duplicate-key",
        ),
        pytest.param("- just\n- a list\n", id="not-a-mapping"),
    ],
)
def test_invalid_documents_rejected(document: str) -> None:
    with pytest.raises(PluginValidationError):
        parse_device_type(document)


def test_invalid_user_file_fails_loading(tmp_path: Path) -> None:
    (tmp_path / "broken.yml").write_text("id: [unclosed\n", encoding="utf-8")
    with pytest.raises(PluginValidationError):
        load_device_types(tmp_path)
