"""Logging setup shared by the command line entry points."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass

from wsnutils.core.errors import ConfigError

TRACE = 5
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARN", "ERROR")
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

logging.addLevelName(TRACE, "TRACE")

_HANDLER: logging.Handler | None = None

_LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


@dataclass(frozen=True)
class LoggingConfig:
    level: int = logging.WARNING

    @classmethod
    def from_options(cls, level: str | None = None, *, verbose: bool = False, default: str = "WARN") -> LoggingConfig:
        if level is not None:
            numeric = _LEVELS.get(level.strip().upper())
            if numeric is None:
                raise ConfigError(f"Unknown logging level '{level}' (one of [{', '.join(LOG_LEVELS)}])")
            return cls(level=numeric)
        if verbose:
            return cls(level=logging.DEBUG)
        return cls(level=_LEVELS[default])

    def apply(self) -> None:
        """Route all records to stderr; stdout carries program output."""
        global _HANDLER
        root = logging.getLogger()
        if _HANDLER is not None:
            root.removeHandler(_HANDLER)
            _HANDLER.close()

        _HANDLER = logging.StreamHandler(sys.stderr)
        _HANDLER.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        root.addHandler(_HANDLER)
        root.setLevel(self.level)
