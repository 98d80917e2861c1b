"""Domain-specific errors for ghostctl."""


class GhostctlError(Exception):
    """Base error for ghostctl."""


class ConfigError(GhostctlError):
    """Base configuration error."""


class ConfigValidationError(ConfigError):
    """Raised when a settings file does not conform to schema or semantics."""


class ConfigLoadError(ConfigError):
    """Raised when reading a settings source fails."""


class TransportError(GhostctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when the serial port cannot be opened."""


class TransportSendError(TransportError):
    """Raised when outbound bytes cannot be written."""


class ProtocolTimeoutError(GhostctlError):
    """Raised when the device did not answer a correlated request in time."""


class TransferError(GhostctlError):
    """Raised when a file transfer finishes unsuccessfully."""


class OperationCancelledError(GhostctlError):
    """Raised when a caller cancels an in-flight operation via its token."""


class StreamClosedError(TransportError):
    """Raised when waiting on a stream whose source has shut down."""
