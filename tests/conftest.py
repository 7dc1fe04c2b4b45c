"""
Test configuration and fixtures.
Event factories produce payloads shaped like the platform's log stream.
The analytics store is always mocked.
"""
import time
import uuid

import pytest
from unittest.mock import AsyncMock

from convex_insights.store import AnalyticsStore

DEPLOYMENT = {
    "deployment_name": "happy-otter-123",
    "deployment_type": "prod",
    "project_name": "Chat App",
    "project_slug": "chat-app",
}

USAGE = {
    "database_read_bytes": 2048,
    "database_write_bytes": 0,
    "database_read_documents": 4,
    "file_storage_read_bytes": 0,
    "file_storage_write_bytes": 0,
    "vector_storage_read_bytes": 0,
    "vector_storage_write_bytes": 0,
    "memory_used_mb": 42.5,
}


def _function(function_type: str = "query", path: str = "messages:list", **extra) -> dict:
    return {
        "type": function_type,
        "path": path,
        "request_id": uuid.uuid4().hex[:16],
        **extra,
    }


@pytest.fixture
def now_ms():
    return int(time.time() * 1000)


@pytest.fixture
def make_execution_event(now_ms):
    """Factory for function_execution payloads. Keyword overrides replace top-level keys."""

    def _make(path: str = "messages:list", function_type: str = "query", **overrides) -> dict:
        event = {
            "topic": "function_execution",
            "timestamp": now_ms,
            "convex": dict(DEPLOYMENT),
            "function": _function(function_type, path),
            "execution_time_ms": 12.5,
            "status": "success",
            "usage": dict(USAGE),
        }
        event.update(overrides)
        return event

    return _make


@pytest.fixture
def make_console_event(now_ms):
    """Factory for console payloads. Keyword overrides replace top-level keys."""

    def _make(message: str = "hello from a query", **overrides) -> dict:
        event = {
            "topic": "console",
            "timestamp": now_ms,
            "convex": dict(DEPLOYMENT),
            "function": _function("mutation", "messages:send"),
            "log_level": "INFO",
            "message": message,
            "is_truncated": False,
        }
        event.update(overrides)
        return event

    return _make


@pytest.fixture
def verification_event(now_ms):
    return {
        "topic": "verification",
        "timestamp": now_ms,
        "convex": dict(DEPLOYMENT),
        "message": "Convex connection test",
    }


@pytest.fixture
def mock_store():
    """AsyncMock standing in for the analytics store. query() returns no rows by default."""
    store = AsyncMock(spec=AnalyticsStore)
    store.insert = AsyncMock(return_value=None)
    store.query = AsyncMock(return_value=[])
    store.ping = AsyncMock(return_value=True)
    return store
