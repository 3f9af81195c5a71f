"""Device type definitions: packaged YAML files plus optional user overrides.

A definition names the USB ids and port descriptions a device family shows
up with, its serial settings and, for families that can report one, the
request used to read the MAC address. Every document is checked against
``wsnutils/schemas/device_type.schema.json`` before it is turned into a
:class:`~wsnutils.core.model.DeviceType`.
"""

from __future__ import annotations

import functools
import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from wsnutils.core.errors import PluginLoadError, PluginValidationError
from wsnutils.core.model import DeviceType, MacReadSpec, MatchRules, SerialSpec

_YAML_SUFFIXES = (".yaml", ".yml")
_MAX_PAYLOAD_BYTES = 256
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedDeviceTypes:
    device_types: dict[str, DeviceType]
    warnings: tuple[str, ...]


@functools.cache
def _validator() -> Draft202012Validator:
    schema = json.loads(
        resources.files("wsnutils.schemas").joinpath("device_type.schema.json").read_text(encoding="utf-8")
    )
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def user_device_type_dir() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "wsnutils" / "device-types"


def _reject_duplicate_keys(node: yaml.Node, source: str) -> None:
    if isinstance(node, yaml.MappingNode):
        seen: set[str] = set()
        for key_node, value_node in node.value:
            if isinstance(key_node, yaml.ScalarNode):
                if key_node.value in seen:
                    line = key_node.start_mark.line + 1
                    raise PluginValidationError(f"Duplicate key '{key_node.value}' in {source} (line {line})")
                seen.add(key_node.value)
            _reject_duplicate_keys(value_node, source)
    elif isinstance(node, yaml.SequenceNode):
        for item in node.value:
            _reject_duplicate_keys(item, source)


def _hex_payload(value: str, field: str) -> bytes:
    try:
        payload = bytes.fromhex(value)
    except ValueError:
        raise PluginValidationError(f"{field} is not a hex string: {value!r}") from None
    if not payload:
        raise PluginValidationError(f"{field} must not be empty")
    if len(payload) > _MAX_PAYLOAD_BYTES:
        raise PluginValidationError(f"{field} is longer than {_MAX_PAYLOAD_BYTES} bytes")
    return payload


def parse_device_type(text: str, source: str = "<string>") -> DeviceType:
    """Parse and validate one YAML device type document."""
    try:
        root = yaml.compose(text, Loader=yaml.SafeLoader)
        if root is not None:
            _reject_duplicate_keys(root, source)
        doc = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise PluginValidationError(f"Invalid YAML in {source}: {exc}") from exc

    error = best_match(_validator().iter_errors(doc))
    if error is not None:
        where = "/".join(str(part) for part in error.absolute_path) or "document"
        raise PluginValidationError(f"{source}: {where}: {error.message}")

    mac = None
    if "mac" in doc:
        mac = MacReadSpec(
            request=_hex_payload(doc["mac"]["request"], f"{doc['id']}: mac.request"),
            response_prefix=_hex_payload(doc["mac"]["response_prefix"], f"{doc['id']}: mac.response_prefix"),
            timeout_s=float(doc["mac"].get("timeout_s", 3.0)),
        )
    match = doc["match"]
    return DeviceType(
        id=doc["id"],
        name=doc["name"],
        match=MatchRules(
            usb_ids=tuple(usb_id.lower() for usb_id in match.get("usb_ids", ())),
            description_contains=tuple(match.get("description_contains", ())),
        ),
        serial=SerialSpec(
            baudrate=int(doc["serial"]["baudrate"]),
            timeout_s=float(doc["serial"].get("timeout_s", 0.5)),
        ),
        mac=mac,
    )


def _load_file(path: Path | Traversable) -> DeviceType:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PluginLoadError(f"Could not read device type file {path}: {exc}") from exc
    return parse_device_type(text, str(path))


def load_device_types(user_dir: Path | None = None) -> LoadedDeviceTypes:
    """Load the packaged device types, then those found in ``user_dir``.

    ``user_dir`` defaults to ``$XDG_CONFIG_HOME/wsnutils/device-types``. A
    user definition replaces the packaged one with the same id.
    """
    device_types: dict[str, DeviceType] = {}
    packaged = resources.files("wsnutils.plugins")
    for item in sorted(packaged.iterdir(), key=lambda item: item.name):
        if item.name.endswith(_YAML_SUFFIXES):
            device_type = _load_file(item)
            device_types[device_type.id] = device_type

    warnings: list[str] = []
    directory = user_dir if user_dir is not None else user_device_type_dir()
    if directory.is_dir():
        for path in sorted(p for p in directory.iterdir() if p.suffix in _YAML_SUFFIXES):
            device_type = _load_file(path)
            if device_type.id in device_types:
                warnings.append(f"{path} overrides device type '{device_type.id}'")
                LOGGER.warning(warnings[-1])
            device_types[device_type.id] = device_type
    return LoadedDeviceTypes(device_types=device_types, warnings=tuple(warnings))
