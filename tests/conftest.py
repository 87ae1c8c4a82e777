"""
Pytest configuration and shared fixtures for ssql tests.
"""

from typing import Any, Dict, List, Optional, Sequence

import pytest

from ssql.domain.query.builder import NormalQuery


class FakeCursor:
    """In-memory result cursor that records whether it was released."""

    def __init__(self, rows: List[Dict[str, Any]], fail_at: Optional[int] = None):
        self._rows = list(rows)
        self._fail_at = fail_at
        self.pulled = 0
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._fail_at is not None and self.pulled == self._fail_at:
            raise RuntimeError("connection reset by peer")
        if self.pulled >= len(self._rows):
            raise StopAsyncIteration
        row = self._rows[self.pulled]
        self.pulled += 1
        return row

    async def aclose(self):
        self.close_calls += 1


class FakeConnection:
    """Driver double: records every statement and serves canned rows."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.rows = rows or []
        self.error = error
        self.calls: List[tuple] = []
        self.cursors: List[FakeCursor] = []

    async def run(self, sql: str, params: Sequence[Any]) -> FakeCursor:
        self.calls.append((sql, list(params)))
        if self.error is not None:
            raise self.error
        cursor = FakeCursor(self.rows)
        self.cursors.append(cursor)
        return cursor


@pytest.fixture
def fake_cursor_factory():
    """Build a FakeCursor from rows."""
    return FakeCursor


@pytest.fixture
def fake_connection_factory():
    """Build a FakeConnection serving the given rows."""
    return FakeConnection


@pytest.fixture
def relations():
    """Join predicates keyed by table name."""
    return {
        "U": "ON T.a = U.a",
        "V": "ON T.b = V.b",
        "W": "ON U.a = W.a",
    }


@pytest.fixture
def query(relations):
    """A fresh builder over table T with columns a, b."""
    return NormalQuery("T", ["a", "b"], relations.__getitem__)


@pytest.fixture
def sample_rows():
    """Rows as the driver returns them, keyed by table-qualified alias."""
    return [
        {"T.a": 1, "T.b": "x"},
        {"T.a": 2, "T.b": "y"},
    ]
