import json
import sys
import traceback
from typing import List
from typing import Optional

import loguru
from loguru import logger

from dblog_transport.errors import ConfigurationError
from dblog_transport.settings import TransportSettings
from dblog_transport.transport import SQLTransport

# Global transport for cleanup
_sql_transport: Optional[SQLTransport] = None

# Ids of the loguru handlers added by configure_logger(); mutated in place, never rebound
_handler_ids: List[int] = []

CONSOLE_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <bold><white>{message}</white></bold> | <dim>{extra_json}</dim> {stacktrace}"


def add_sink(transport: SQLTransport) -> int:
    """
    Install ``transport`` as a loguru sink, leaving every other handler in place.

    Returns:
        The loguru handler id, for ``logger.remove()``
    """
    # NOTE: Pool is initialized lazily on first log write so that it is
    # created in the application's event loop.
    return logger.add(
        sink=transport.sink,
        format="{message}",  # Let the transport build the row
        level=transport.min_level,
    )


def configure_logger(
    enable_sql_logging: bool = False,
    settings: Optional[TransportSettings] = None,
    transport: Optional[SQLTransport] = None,
    console: bool = True,
) -> Optional[SQLTransport]:
    """
    Configure loguru logger with a console sink and, optionally, the SQL transport.

    Only handlers added by an earlier configure_logger() call are replaced; handlers
    installed by the application (and loguru's own default handler) are left alone.
    Nothing is configured at import time.

    Args:
        enable_sql_logging: Install the SQL transport as a loguru sink
        settings: Settings used to build the transport (read from the environment when omitted)
        transport: Ready-made transport; implies enable_sql_logging
        console: Add the stdout sink

    Returns:
        The installed transport, or None when SQL logging is disabled
    """
    global _sql_transport

    remove_handlers()

    if console:
        _handler_ids.append(
            logger.add(
                sink=sys.stdout,
                diagnose=False,
                format=CONSOLE_FORMAT,
                filter=process_log_record,
            )
        )

    if not (enable_sql_logging or transport is not None):
        return None

    try:
        _sql_transport = transport or SQLTransport.from_settings(settings)
    except ConfigurationError as e:
        logger.warning(f"SQL logging disabled: {e}", option=e.option)
        return None

    _handler_ids.append(add_sink(_sql_transport))
    logger.info(
        "SQL logging enabled (pool will initialize on first log)",
        table=_sql_transport.table,
        min_level=_sql_transport.min_level,
    )
    return _sql_transport


def remove_handlers() -> None:
    """Remove the handlers added by configure_logger()."""
    global _sql_transport

    while _handler_ids:
        handler_id = _handler_ids.pop()
        try:
            logger.remove(handler_id)
        except ValueError:
            # Already removed by the application
            pass
    _sql_transport = None


def get_sql_transport() -> Optional[SQLTransport]:
    """Return the transport installed by the last configure_logger() call."""
    return _sql_transport


def process_log_record(record: "loguru.Record") -> bool:
    r"""
    Inject console-only fields into each log record before it is formatted.

    1. Serialize the "extra" field to JSON (as "extra_json") so that it renders on a single console line.
    2. For error logs, add a traceback with \r instead of \n so that log collectors do not
       split the traceback into multiple log events.

    The record is shared with every other handler, so "extra" itself is left untouched.
    """
    extra = record["extra"]
    record["extra_json"] = json.dumps(extra, default=str) if extra else ""

    # add stacktrace to log record
    record["stacktrace"] = ""
    if record["exception"]:
        err = record["exception"]
        stacktrace = get_formatted_stacktrace(err, replace_newline_character_with_carriage_return=True)
        record["stacktrace"] = stacktrace

    return True


def get_formatted_stacktrace(loguru_record_exception, replace_newline_character_with_carriage_return: bool) -> str:
    """Get the formatted stacktrace for the current exception."""
    exc_type, exc_value, exc_traceback = loguru_record_exception
    stacktrace_: list[str] = traceback.format_exception(exc_type, exc_value, exc_traceback)
    stacktrace: str = "".join(stacktrace_)
    if replace_newline_character_with_carriage_return:
        stacktrace = stacktrace.replace("\n", "\r")
    return stacktrace
