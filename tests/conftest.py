"""
Shared fixtures for engine tests.
"""
from datetime import datetime, timedelta, timezone

import pytest

from arlog_engine.models.record import LogType, TransactionRecord

BASE_TIME = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def at(ms: float) -> datetime:
    """BASE_TIME plus an offset in milliseconds."""
    return BASE_TIME + timedelta(milliseconds=ms)


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def make_record():
    """Factory for TransactionRecord with sensible defaults."""
    counter = {"line": 0}

    def _make(log_type=LogType.API, offset_ms=None, **kwargs) -> TransactionRecord:
        counter["line"] += 1
        kwargs.setdefault("line_number", counter["line"])
        if offset_ms is not None:
            kwargs["timestamp"] = at(offset_ms)
        return TransactionRecord(log_type=log_type, **kwargs)

    return _make
