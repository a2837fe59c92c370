"""Test fixtures for the profile store.

Provides a MockEngine/MockConnection that mimics SQLAlchemy async engine behavior,
recording executed statements and returning canned results. The store uses
`get_engine().begin()`; tests patch `get_engine` to return our MockEngine.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import pytest

# ============================================================================
# Mock SQLAlchemy async engine/connection
# ============================================================================


class MockMappings:
    """Mimics result.mappings() for dict-like row access."""

    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self._rows = rows

    def fetchone(self) -> dict[str, Any] | None:
        return self._rows[0] if self._rows else None

    def all(self) -> list[dict[str, Any]]:
        return self._rows


class MockCursorResult:
    """Mimics SQLAlchemy CursorResult."""

    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self._rows = rows or []
        self.rowcount = len(self._rows)

    def mappings(self) -> MockMappings:
        return MockMappings(self._rows)


class MockConnection:
    """Mimics AsyncConnection with execute() recording.

    Queue rows for the next execute() with queue_response, or an exception
    with queue_error to simulate a driver or pool failure.
    """

    def __init__(self) -> None:
        self.executed: list[Any] = []
        self._responses: list[MockCursorResult | BaseException] = []

    def queue_response(self, rows: list[dict[str, Any]]) -> None:
        self._responses.append(MockCursorResult(rows))

    def queue_error(self, error: BaseException) -> None:
        self._responses.append(error)

    async def execute(self, stmt: Any, parameters: Any = None) -> MockCursorResult:
        self.executed.append(stmt)
        if not self._responses:
            return MockCursorResult()
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def __aenter__(self) -> MockConnection:
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


class MockEngine:
    """Mimics AsyncEngine with begin() context manager."""

    def __init__(self) -> None:
        self.connection = MockConnection()

    def begin(self) -> MockEngine:
        return self

    async def __aenter__(self) -> MockConnection:
        return self.connection

    async def __aexit__(self, *args: Any) -> None:
        pass


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def mock_engine() -> MockEngine:
    """Provide a MockEngine that records SQL calls."""
    return MockEngine()


@pytest.fixture
def mock_conn(mock_engine: MockEngine) -> MockConnection:
    """Shortcut to the connection for queueing responses."""
    return mock_engine.connection


@pytest.fixture
def profile_jane_row() -> dict[str, Any]:
    """A teacher's profile row as asyncpg returns it (UUID values, not strings)."""
    return {
        "id": uuid.UUID("6f1c2a4e-8b9d-4e3f-a1b2-c3d4e5f60718"),
        "email": "teacher.jane@hilltop.test",
        "name": "Jane Wanjiru",
        "role": "teacher",
        "school_id": uuid.UUID("0a9b8c7d-6e5f-4a3b-9c2d-1e0f9a8b7c6d"),
        "avatar_url": None,
        "mfa_enabled": False,
        "status": "active",
        "created_at": datetime(2026, 1, 5, tzinfo=UTC),
        "updated_at": datetime(2026, 2, 14, tzinfo=UTC),
    }
