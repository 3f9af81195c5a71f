"""Domain-specific errors for wsnutils."""

EXIT_CODE_INVALID_ARGUMENTS = 1
EXIT_CODE_REFERENCE_FILE_NOT_EXISTING = 2
EXIT_CODE_REFERENCE_FILE_NOT_READABLE = 3
EXIT_CODE_REFERENCE_FILE_IS_DIRECTORY = 4


class WsnUtilsError(Exception):
    """Base error for wsnutils."""

    exit_code = EXIT_CODE_INVALID_ARGUMENTS


class ConfigError(WsnUtilsError):
    """Raised when a configuration or reference file cannot be used."""


class ReferenceFileMissingError(ConfigError):
    """Raised when the reference-to-MAC map file does not exist."""

    exit_code = EXIT_CODE_REFERENCE_FILE_NOT_EXISTING


class ReferenceFileUnreadableError(ConfigError):
    """Raised when the reference-to-MAC map file cannot be read."""

    exit_code = EXIT_CODE_REFERENCE_FILE_NOT_READABLE


class ReferenceFileIsDirectoryError(ConfigError):
    """Raised when the reference-to-MAC map path points at a directory."""

    exit_code = EXIT_CODE_REFERENCE_FILE_IS_DIRECTORY


class ParseError(WsnUtilsError):
    """Raised when a properties file contains a malformed entry."""


class PluginValidationError(WsnUtilsError):
    """Raised when a device type file does not conform to schema or semantics."""


class PluginLoadError(WsnUtilsError):
    """Raised when loading device type sources fails."""


class DeviceTypeError(WsnUtilsError):
    """Raised when a device type is not known."""


class EnumerationError(WsnUtilsError):
    """Raised when listing the attached devices fails."""


class DeviceConnectionError(WsnUtilsError):
    """Raised when a device cannot be connected or reports not-connected."""


class TransportError(WsnUtilsError):
    """Base serial transport error."""


class TransportTimeoutError(TransportError):
    """Raised when a device does not answer in time."""


class WriterClosedError(WsnUtilsError):
    """Raised when writing to a writer that was already shut down."""
