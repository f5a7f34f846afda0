"""SQL log transport - writes each log record as one row through an asyncpg pool.

The table is provisioned out of band. With the default field scheme it looks like::

    CREATE TABLE sys_logs (
        id BIGSERIAL PRIMARY KEY,
        level VARCHAR(16) NOT NULL,
        metadata JSONB,
        method VARCHAR(16),
        endpoint VARCHAR(2048),
        req JSONB,
        responsecode VARCHAR(8),
        res JSONB,
        timestamp TIMESTAMPTZ,
        responsetime DOUBLE PRECISION
    );
"""

import asyncio
import json
from typing import Any
from typing import Callable
from typing import List
from typing import Mapping
from typing import Optional
from typing import Set

import asyncpg
from loguru import logger

from dblog_transport.errors import ConfigurationError
from dblog_transport.errors import ConnectionAcquisitionError
from dblog_transport.errors import InsertError
from dblog_transport.errors import TransportError
from dblog_transport.events import EventChannel
from dblog_transport.events import Listener
from dblog_transport.fields import FieldScheme
from dblog_transport.records import ColumnRow
from dblog_transport.records import translate
from dblog_transport.settings import TransportSettings

Callback = Callable[[Optional[BaseException], Optional[bool]], Any]

# Required construction options, checked in this order
REQUIRED_OPTIONS = (
    ("host", "The database host is required"),
    ("user", "The database username is required"),
    ("password", "The database password is required"),
    ("database", "The database name is required"),
    ("table", "The database table is required"),
)

# Modules whose own log messages are never written back through the sink
INTERNAL_LOGGERS = frozenset({__name__, "dblog_transport.events", "dblog_transport.monitoring.logger"})


def quote_identifier(name: str) -> str:
    """Quote a single SQL identifier; dots are part of the name."""
    return '"' + name.replace('"', '""') + '"'


def quote_qualified_name(name: str) -> str:
    """Quote a possibly schema-qualified table name (``schema.table``)."""
    return ".".join(quote_identifier(part) for part in name.split("."))


def _noop(err: Optional[BaseException], result: Optional[bool]) -> None:
    return None


class SQLTransport:
    """
    Persist structured log records as rows of a single table.

    Every call to :meth:`log` acquires one pooled connection, translates the
    record with the configured :class:`FieldScheme`, runs one INSERT, releases
    the connection and then reports the outcome exactly once: to the callback,
    and to listeners of the ``logged`` / ``error`` events.

    The asyncpg pool is created lazily on first use so that it belongs to the
    event loop that actually writes the logs. A ready-made pool can be passed
    in instead; such a pool is not closed by :meth:`close`.
    """

    name = "sql"

    def __init__(
        self,
        host: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        database: Optional[str] = None,
        table: Optional[str] = None,
        fields: Optional[Mapping[str, str]] = None,
        port: int = 5432,
        min_size: int = 1,
        max_size: int = 5,
        min_level: str = "INFO",
        emit_acquire_errors: bool = False,
        pool: Optional[Any] = None,
    ):
        """
        Validate the options and resolve the field scheme.

        Args:
            host: Database host
            user: Database username
            password: Database password
            database: Database name
            table: Table for the log rows, optionally schema-qualified
            fields: Custom column names (logical field -> column); missing fields keep their defaults
            port: Database port
            min_size: Connections opened when the pool is created
            max_size: Upper bound on pooled connections
            min_level: Minimum loguru level accepted by :meth:`sink`
            emit_acquire_errors: Also emit ``error`` when no connection can be acquired
            pool: Existing asyncpg pool to use instead of creating one

        Raises:
            ConfigurationError: a required option is missing or an option is invalid
        """
        options = {"host": host, "user": user, "password": password, "database": database, "table": table}
        for option, message in REQUIRED_OPTIONS:
            if not options[option]:
                raise ConfigurationError(message, option=option)
        if not isinstance(table, str):
            raise ConfigurationError("The database table must be a string", option="table")
        if min_size < 0 or max_size < 1 or min_size > max_size:
            raise ConfigurationError(
                f"Invalid pool size: min_size={min_size}, max_size={max_size}", option="max_size"
            )
        try:
            self._min_level_no = logger.level(min_level).no
        except ValueError as e:
            raise ConfigurationError(f"Unknown log level: {min_level}", option="min_level") from e

        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.table = table
        self.min_size = min_size
        self.max_size = max_size
        self.min_level = min_level
        self.emit_acquire_errors = emit_acquire_errors

        self.fields = FieldScheme.from_options(fields)
        self._columns: List[str] = [column for _, column in self.fields.columns()]
        self._insert_sql = "INSERT INTO {table} ({columns}) VALUES ({placeholders})".format(
            table=quote_qualified_name(table),
            columns=", ".join(quote_identifier(column) for column in self._columns),
            placeholders=", ".join(f"${i}" for i in range(1, len(self._columns) + 1)),
        )

        self.events = EventChannel()
        self.pool = pool
        self._owns_pool = pool is None
        self._pool_init_lock: Optional[asyncio.Lock] = None
        self._pending: Set[asyncio.Task] = set()
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Optional[TransportSettings] = None) -> "SQLTransport":
        """Build a transport from :class:`TransportSettings` (environment / .env when omitted)."""
        settings = settings or TransportSettings()
        return cls(
            host=settings.host,
            user=settings.user,
            password=settings.password,
            database=settings.database,
            table=settings.table,
            fields=settings.fields,
            port=settings.port,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            min_level=settings.min_level,
            emit_acquire_errors=settings.emit_acquire_errors,
        )

    @property
    def insert_sql(self) -> str:
        """The parameterized INSERT statement issued for every record."""
        return self._insert_sql

    def on(self, event: str, listener: Listener) -> Listener:
        """Register a listener for ``logged`` (original record) or ``error`` (the error)."""
        return self.events.on(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self.events.off(event, listener)

    # -- pool -----------------------------------------------------------------

    async def _ensure_pool(self) -> Any:
        """Create the asyncpg pool on first use; concurrent first calls share one pool."""
        if self._closed:
            raise TransportError("Transport is closed")
        if self.pool is not None:
            return self.pool

        if self._pool_init_lock is None:
            self._pool_init_lock = asyncio.Lock()

        async with self._pool_init_lock:
            if self.pool is None:
                self.pool = await asyncpg.create_pool(
                    host=self.host,
                    port=self.port,
                    user=self.user,
                    password=self.password,
                    database=self.database,
                    min_size=self.min_size,
                    max_size=self.max_size,
                )
                logger.info(
                    "SQL log transport pool initialized",
                    host=self.host,
                    database=self.database,
                    table=self.table,
                    pool_size=f"{self.min_size}/{self.max_size}",
                )
        return self.pool

    async def _acquire(self) -> tuple:
        try:
            pool = await self._ensure_pool()
            connection = await pool.acquire()
        except Exception as e:
            raise ConnectionAcquisitionError(f"Could not acquire a database connection: {e}") from e
        return pool, connection

    async def _release(self, pool: Any, connection: Any) -> None:
        try:
            await pool.release(connection)
        except Exception as e:  # pylint: disable=broad-except
            logger.warning(f"Failed to release database connection: {e}", table=self.table)

    async def close(self) -> None:
        """
        Wait for scheduled deliveries, then close the pool if this transport created it.

        Once closed, the transport never creates a new pool: later calls fail with
        :class:`ConnectionAcquisitionError`.
        """
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._closed = True
        if self.pool is not None and self._owns_pool:
            await self.pool.close()
            self.pool = None
            logger.info("SQL log transport pool closed", table=self.table)

    # -- delivery -------------------------------------------------------------

    async def _insert(self, connection: Any, row: ColumnRow) -> None:
        try:
            await connection.execute(self._insert_sql, *[row[column] for column in self._columns])
        except Exception as e:
            raise InsertError(f"Failed to insert log row into {self.table}: {e}", driver_error=e) from e

    async def _deliver(self, record: Any) -> None:
        pool, connection = await self._acquire()
        try:
            row = translate(record, self.fields)
            await self._insert(connection, row)
        finally:
            await self._release(pool, connection)

    def _emit_soon(self, event: str, payload: Any) -> None:
        asyncio.get_running_loop().call_soon(self.events.emit, event, payload)

    async def write(self, record: Any) -> bool:
        """
        Insert one record and wait for the outcome.

        Emits ``logged`` on success and ``error`` on translation or insert
        failure (acquisition failures only when ``emit_acquire_errors`` is set).
        Events are delivered on the next loop iteration.

        Returns:
            True once the row has been inserted

        Raises:
            ConnectionAcquisitionError: no pooled connection could be obtained
            TranslationError: the record is malformed
            InsertError: the INSERT failed
        """
        try:
            await self._deliver(record)
        except ConnectionAcquisitionError as e:
            if self.emit_acquire_errors:
                self._emit_soon("error", e)
            raise
        except TransportError as e:
            logger.warning(f"Log record not persisted: {e}", table=self.table, error_type=type(e).__name__)
            self._emit_soon("error", e)
            raise

        self._emit_soon("logged", record)
        return True

    async def _run(self, record: Any, callback: Callback) -> None:
        try:
            await self.write(record)
        except Exception as e:  # pylint: disable=broad-except
            self._notify(callback, e, None)
            return
        self._notify(callback, None, True)

    def _notify(self, callback: Callback, err: Optional[BaseException], result: Optional[bool]) -> None:
        try:
            callback(err, result)
        except Exception:  # pylint: disable=broad-except
            logger.exception("SQL log transport callback failed", table=self.table)

    def log(self, record: Any, callback: Optional[Callback] = None) -> Optional[asyncio.Task]:
        """
        Schedule one record for insertion and return immediately.

        ``callback(err, result)`` is invoked exactly once: ``(None, True)`` on
        success, ``(err, None)`` on failure, always after log() has returned.

        The one exception is a call made without a running event loop: the
        record cannot be scheduled, so the callback receives a
        :class:`TransportError` synchronously, before log() returns, and the
        return value is ``None`` instead of a task.

        Returns:
            The task running the delivery, or None when no loop is running
        """
        if callback is None:
            callback = _noop

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._notify(callback, TransportError("No running event loop - log record dropped"), None)
            return None

        task = loop.create_task(self._run(record, callback))
        # Keep a reference until done so the task is not garbage collected mid-flight
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    # -- loguru ---------------------------------------------------------------

    def sink(self, message: Any) -> None:
        """
        Loguru sink: forward a log message to :meth:`log`.

        The record's ``extra`` fields become the extra fields of the log record,
        so ``logger.bind(meta={...}).info("GET /users 200")`` fills the request
        columns. Messages below ``min_level`` are ignored, as are messages
        emitted by the transport itself (a failing insert must not log itself again).
        Without a running event loop the message is skipped.
        """
        record = message.record
        if record["name"] in INTERNAL_LOGGERS:
            return
        if record["level"].no < self._min_level_no:
            return

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No running event loop - skip database logging
            return

        # extra may already be a JSON string if another handler's filter serialized it in place
        extra = record["extra"]
        if isinstance(extra, str):
            try:
                extra = json.loads(extra)
            except (json.JSONDecodeError, TypeError):
                extra = {}

        entry = dict(extra or {})
        entry["level"] = record["level"].name
        entry["message"] = record["message"]
        entry.setdefault("timestamp", record["time"])
        self.log(entry)

    def __call__(self, message: Any) -> None:
        """Allow the transport to be passed to ``logger.add`` directly."""
        self.sink(message)
