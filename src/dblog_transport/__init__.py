"""dblog_transport."""

from .errors import ConfigurationError
from .errors import ConnectionAcquisitionError
from .errors import InsertError
from .errors import TransportError
from .errors import TranslationError
from .fields import FieldScheme
from .monitoring.logger import add_sink
from .monitoring.logger import configure_logger
from .records import LogRecord
from .records import translate
from .settings import TransportSettings
from .transport import SQLTransport

# Importing the package never touches loguru's handlers; call configure_logger()
# or add_sink() from the application.

__all__ = [
    "ConfigurationError",
    "ConnectionAcquisitionError",
    "FieldScheme",
    "InsertError",
    "LogRecord",
    "SQLTransport",
    "TransportError",
    "TransportSettings",
    "TranslationError",
    "add_sink",
    "configure_logger",
    "translate",
]
