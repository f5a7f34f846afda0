"""Monitoring package for logging configuration and HTTP access records."""

from dblog_transport.monitoring.logger import add_sink
from dblog_transport.monitoring.logger import configure_logger
from dblog_transport.monitoring.logger import get_sql_transport
from dblog_transport.monitoring.logger import remove_handlers
from dblog_transport.monitoring.request_logging import AccessLogMiddleware

__all__ = [
    "AccessLogMiddleware",
    "add_sink",
    "configure_logger",
    "get_sql_transport",
    "remove_handlers",
]
