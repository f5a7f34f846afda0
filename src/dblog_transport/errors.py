"""Error types raised and reported by the SQL log transport."""

from typing import Optional

# Explicit exports
__all__ = [
    "TransportError",
    "ConfigurationError",
    "ConnectionAcquisitionError",
    "TranslationError",
    "InsertError",
]


class TransportError(Exception):
    """Base class for every error the transport raises or reports."""


class ConfigurationError(TransportError):
    """
    A construction option is missing or invalid.

    Raised synchronously from the transport constructor, so no instance is
    ever produced from a bad configuration.

    Attributes
    ----------
    option : str
        Name of the offending option (``host``, ``table``, ``fields`` ...)
    """

    def __init__(self, message: str, option: Optional[str] = None):
        super().__init__(message)
        self.option = option


class ConnectionAcquisitionError(TransportError):
    """No connection could be obtained from the pool (pool exhausted, connect failure)."""


class TranslationError(TransportError):
    """The incoming log record could not be turned into a column row."""


class InsertError(TransportError):
    """
    The INSERT statement failed at the driver level.

    The driver exception is kept on ``driver_error`` and chained as ``__cause__``.
    """

    def __init__(self, message: str, driver_error: Optional[BaseException] = None):
        super().__init__(message)
        self.driver_error = driver_error
