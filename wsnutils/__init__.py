"""Device utilities for serially attached sensor-network nodes."""

__version__ = "0.1.0"
