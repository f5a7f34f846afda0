"""Fixtures for the SQL transport, its pool and connections."""

from datetime import datetime
from datetime import timezone
from unittest.mock import AsyncMock
from unittest.mock import MagicMock

import pytest

from dblog_transport.transport import SQLTransport
from tests.consts import TRANSPORT_OPTIONS


@pytest.fixture
def transport_options():
    """Valid construction options (copy, safe to mutate)."""
    return dict(TRANSPORT_OPTIONS)


@pytest.fixture
def mock_connection():
    """asyncpg connection whose execute() succeeds."""
    connection = AsyncMock()
    connection.execute = AsyncMock(return_value="INSERT 0 1")
    return connection


@pytest.fixture
def mock_pool(mock_connection):
    """asyncpg pool handing out mock_connection."""
    pool = MagicMock()
    pool.acquire = AsyncMock(return_value=mock_connection)
    pool.release = AsyncMock(return_value=None)
    pool.close = AsyncMock(return_value=None)
    return pool


@pytest.fixture
def transport(transport_options, mock_pool):
    """Transport wired to the mock pool."""
    return SQLTransport(**transport_options, pool=mock_pool)


@pytest.fixture
def event_log(transport):
    """Collect ``logged`` and ``error`` events emitted by the transport."""
    events = {"logged": [], "error": []}
    transport.on("logged", events["logged"].append)
    transport.on("error", events["error"].append)
    return events


@pytest.fixture
def access_record():
    """A log record as produced by the access log middleware."""
    return {
        "level": "info",
        "message": "GET /users 200",
        "meta": {"req": {"url": "/users"}, "res": {"statusCode": 200}, "responseTime": 12},
        "timestamp": datetime(2026, 1, 2, 15, 30, 45, tzinfo=timezone.utc),
    }
