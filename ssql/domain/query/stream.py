"""
Lazy, caller-mapped row streams.

A RowStream pulls one row at a time from a driver cursor and hands it to the
caller's projection. Nothing is buffered beyond the current row.

Usage:
    stream = await Customer.query().stream(conn, lambda row: row["CUSTOMER_LIST.ship_to"])
    async with stream:
        async for ship_to in stream:
            ...
"""

import asyncio
from typing import Any, Callable, Generic, List, TypeVar

from ssql.adapters.base import ResultCursor, Row

Ret = TypeVar("Ret")


class RowStream(Generic[Ret]):
    """
    Finite, forward-only, non-restartable async iterator over mapped rows.

    The underlying cursor is released exactly once: when it is exhausted,
    when a pull or the projection fails, or when the caller closes the
    stream (``aclose()`` or leaving an ``async with`` block). After that
    every pull raises StopAsyncIteration.
    """

    def __init__(self, cursor: ResultCursor, projection: Callable[[Row], Ret]):
        self._cursor = cursor
        self._projection = projection
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "RowStream[Ret]":
        return self

    async def __anext__(self) -> Ret:
        if self._closed:
            raise StopAsyncIteration

        try:
            row = await self._cursor.__anext__()
        except (Exception, asyncio.CancelledError):
            # includes StopAsyncIteration at the end of the result set
            await self.aclose()
            raise

        try:
            return self._projection(row)
        except Exception:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        """Release the cursor. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._cursor.aclose()

    async def collect(self) -> List[Ret]:
        """Drain the remaining rows into a list."""
        return [item async for item in self]

    async def __aenter__(self) -> "RowStream[Ret]":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        await self.aclose()
        return False
