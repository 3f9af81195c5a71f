"""Properties-style file loading and the reference-to-MAC table."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

from wsnutils.core.errors import (
    ConfigError,
    ParseError,
    ReferenceFileIsDirectoryError,
    ReferenceFileMissingError,
    ReferenceFileUnreadableError,
)
from wsnutils.core.model import MacAddress

LOGGER = logging.getLogger(__name__)
_COMMENT_PREFIXES = ("#", "!")


class ReferenceMap:
    """Immutable bidirectional table between device references and MACs."""

    def __init__(self, entries: Mapping[str, MacAddress] | None = None) -> None:
        forward: dict[str, MacAddress] = {}
        reverse: dict[MacAddress, str] = {}
        for reference, mac in (entries or {}).items():
            forward[reference] = mac
            if mac in reverse:
                LOGGER.warning(
                    "MAC %s is mapped by both '%s' and '%s'; reverse lookup uses '%s'",
                    mac,
                    reverse[mac],
                    reference,
                    reverse[mac],
                )
                continue
            reverse[mac] = reference
        self._forward = MappingProxyType(forward)
        self._reverse = MappingProxyType(reverse)

    def resolve(self, reference: str) -> MacAddress | None:
        return self._forward.get(reference)

    def reverse_resolve(self, mac: MacAddress) -> str | None:
        return self._reverse.get(mac)

    def items(self):
        return self._forward.items()

    def __contains__(self, reference: object) -> bool:
        return reference in self._forward

    def __iter__(self) -> Iterator[str]:
        return iter(self._forward)

    def __len__(self) -> int:
        return len(self._forward)

    def __repr__(self) -> str:
        return f"ReferenceMap({len(self)} entries)"


def _parse_properties(content: str, source: Path) -> list[tuple[int, str, str]]:
    entries: list[tuple[int, str, str]] = []
    for lineno, raw_line in enumerate(content.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(_COMMENT_PREFIXES):
            continue
        positions = [pos for pos in (line.find("="), line.find(":")) if pos >= 0]
        if not positions:
            raise ParseError(f"{source}:{lineno}: entry '{line}' has no '=' or ':' separator")
        split_at = min(positions)
        key, value = line[:split_at].strip(), line[split_at + 1 :].strip()
        if not key:
            raise ParseError(f"{source}:{lineno}: entry '{line}' has an empty key")
        entries.append((lineno, key, value))
    return entries


def _read_text(
    path: Path,
    *,
    missing: type[ConfigError],
    unreadable: type[ConfigError],
    directory: type[ConfigError],
    what: str,
) -> str:
    if not path.exists():
        raise missing(f"{what} {path} does not exist")
    if path.is_dir():
        raise directory(f"{what} {path} is a directory")
    if not os.access(path, os.R_OK):
        raise unreadable(f"{what} {path} is not readable")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise unreadable(f"Could not read {what.lower()} {path}: {exc}") from exc


def load_properties(path: str | Path) -> dict[str, str]:
    """Load a flat ``key=value`` configuration file."""
    source = Path(path)
    content = _read_text(
        source,
        missing=ConfigError,
        unreadable=ConfigError,
        directory=ConfigError,
        what="Configuration file",
    )
    properties = {key: value for _, key, value in _parse_properties(content, source)}
    LOGGER.debug("Loaded %d configuration entries from %s", len(properties), source)
    return properties


def load_reference_map(path: str | Path) -> ReferenceMap:
    """Load a ``reference=MACHEX`` file, failing on the first malformed entry."""
    source = Path(path)
    content = _read_text(
        source,
        missing=ReferenceFileMissingError,
        unreadable=ReferenceFileUnreadableError,
        directory=ReferenceFileIsDirectoryError,
        what="Reference file",
    )

    entries: dict[str, MacAddress] = {}
    for lineno, reference, mac_text in _parse_properties(content, source):
        if reference in entries:
            raise ParseError(f"{source}:{lineno}: duplicate reference '{reference}'")
        try:
            entries[reference] = MacAddress.from_hex(mac_text)
        except ValueError as exc:
            raise ParseError(f"{source}:{lineno}: invalid MAC for '{reference}': {exc}") from exc

    LOGGER.info("Loaded %d reference to MAC mappings from %s", len(entries), source)
    return ReferenceMap(entries)
