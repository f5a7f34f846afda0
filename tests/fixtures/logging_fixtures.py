"""Fixtures for loguru message mocks."""

from datetime import datetime
from datetime import timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

LEVEL_NUMBERS = {"TRACE": 5, "DEBUG": 10, "INFO": 20, "SUCCESS": 25, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


@pytest.fixture
def make_loguru_message():
    """Build an object shaped like the message loguru passes to a sink."""

    def _make(message="GET /users 200", level="INFO", extra=None, name="app.routes"):
        record = {
            "time": datetime(2026, 1, 2, 15, 30, 45, tzinfo=timezone.utc),
            "level": SimpleNamespace(name=level, no=LEVEL_NUMBERS[level]),
            "name": name,
            "function": "handler",
            "line": 42,
            "message": message,
            "extra": {} if extra is None else extra,
            "exception": None,
        }
        loguru_message = MagicMock()
        loguru_message.record = record
        return loguru_message

    return _make
