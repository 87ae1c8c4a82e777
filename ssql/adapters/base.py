"""
Base Adapter Interface for ssql

The query builder talks to the database through one operation:

    cursor = await conn.run(sql, params)

where ``sql`` uses ``@p1, @p2, ...`` positional placeholders and ``params``
holds the values in placeholder order. The returned cursor is an async
iterator of rows (dicts keyed by column alias) that must be closed with
``aclose()`` when the caller stops early.

DESIGN PRINCIPLES:
-----------------
1. Query parameters use @pN placeholders (adapter converts as needed)
2. One open cursor per connection; a second run() fails fast
3. Blocking DB-API calls run in a worker thread so every call is awaitable
4. Driver errors wrapped in DriverError with the original exception attached
"""

import asyncio
import logging
import re
import weakref
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from ssql.errors import (
    DriverError,
    ErrorCode,
    connection_busy,
    placeholder_out_of_range,
)

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]

# A quoted string literal, or an @pN placeholder outside of one
_PLACEHOLDER_RE = re.compile(r"('(?:[^']|'')*')|@p(\d+)\b", re.IGNORECASE)


# =============================================================================
# DRIVER CONTRACT
# =============================================================================

class ResultCursor(Protocol):
    """Forward-only stream of result rows."""

    def __aiter__(self) -> AsyncIterator[Row]: ...

    async def __anext__(self) -> Row: ...

    async def aclose(self) -> None: ...


class Connection(Protocol):
    """Anything that can run a parameterized statement and return a cursor."""

    async def run(self, sql: str, params: Sequence[Any]) -> ResultCursor: ...


# =============================================================================
# DB-API CURSOR WRAPPER
# =============================================================================

class ThreadedCursor:
    """
    Async view over a blocking DB-API cursor.

    Each pull runs ``fetchone()`` in a worker thread. Tuple rows are turned
    into dicts keyed by the column names in ``cursor.description``. The
    cursor is closed on exhaustion, on ``aclose()``, or when the object is
    garbage collected, whichever comes first, and the owning adapter is told
    it may run the next statement.
    """

    def __init__(self, cursor: Any, adapter: "BaseAdapter"):
        self._closed = True
        self._cursor = cursor
        self._adapter = adapter
        self._columns: List[str] = (
            [desc[0] for desc in cursor.description] if cursor.description else []
        )
        self._closed = False

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "ThreadedCursor":
        return self

    async def __anext__(self) -> Dict[str, Any]:
        if self._closed or not self._columns:
            await self.aclose()
            raise StopAsyncIteration

        try:
            row = await asyncio.to_thread(self._cursor.fetchone)
        except Exception as e:
            await self.aclose()
            raise DriverError(
                code=ErrorCode.ERR_QUERY_FAILED,
                message=f"{self._adapter.ENGINE} fetch failed: {e}",
                engine=self._adapter.ENGINE,
                original_error=e,
            ) from e

        if row is None:
            await self.aclose()
            raise StopAsyncIteration

        if isinstance(row, Mapping):
            return dict(row)
        return dict(zip(self._columns, row))

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await asyncio.to_thread(self._cursor.close)
        except Exception as e:
            logger.warning(f"Error closing {self._adapter.ENGINE} cursor: {e}")
        finally:
            self._adapter._release(self)

    def __del__(self) -> None:
        # Dropped without aclose(); no event loop to await on here
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        except Exception as e:
            logger.warning(f"Error closing dropped {self._adapter.ENGINE} cursor: {e}")
        self._adapter._release(self)


# =============================================================================
# BASE ADAPTER
# =============================================================================

class BaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Each adapter must implement:
    - _open(): Establish the DB-API connection (blocking)
    - _close(): Close it (blocking)

    Usage:
        adapter = SQLServerAdapter(config)
        await adapter.connect()

        cursor = await adapter.run(
            "SELECT * FROM orders WHERE tenant_id = @p1",
            ["tenant_a"],
        )
        async for row in cursor:
            ...

        await adapter.close()
    """

    # Engine identifier
    ENGINE: str = "base"

    # Placeholder format used by the underlying driver
    PLACEHOLDER: str = "?"

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize adapter with connection configuration.

        Args:
            config: Database-specific configuration dict
                    (host, port, user, password, database, etc.)
        """
        self.config = config
        self._connection = None
        self._connected = False
        self._active_cursor: Optional["weakref.ReferenceType[ThreadedCursor]"] = None
        self._last_used: Optional[datetime] = None

    @abstractmethod
    def _open(self) -> Any:
        """
        Open and return a DB-API connection. Runs in a worker thread.

        Raises:
            DriverError: If connection fails
        """
        pass

    def _close(self) -> None:
        """Close the DB-API connection. Runs in a worker thread."""
        if self._connection is not None:
            self._connection.close()

    async def connect(self) -> None:
        """Establish the connection."""
        self._connection = await asyncio.to_thread(self._open)
        self._connected = True

    async def close(self) -> None:
        """
        Close the connection.

        Safe to call even if not connected.
        """
        cursor = self._current_cursor()
        if cursor is not None:
            await cursor.aclose()
        try:
            if self._connection is not None:
                await asyncio.to_thread(self._close)
                logger.info(f"{self.ENGINE} connection closed")
        except Exception as e:
            logger.warning(f"Error closing {self.ENGINE} connection: {e}")
        finally:
            self._connection = None
            self._connected = False

    def convert_placeholders(self, sql: str, params: Optional[Sequence[Any]] = None) -> Tuple[str, List[Any]]:
        """
        Convert @pN placeholders to the driver's format.

        Placeholders may appear in any order and more than once; the returned
        parameter list follows the order in which they appear in the text.
        Text inside single-quoted literals is left untouched.

        Args:
            sql: SQL with @pN placeholders
            params: Parameter values, params[N-1] binds @pN

        Returns:
            (converted_sql, params in placeholder order)

        Raises:
            PreconditionError: If a placeholder has no bound value
        """
        params = list(params or [])
        parts: List[Tuple[bool, str]] = []
        ordered: List[Any] = []
        pos = 0

        for match in _PLACEHOLDER_RE.finditer(sql):
            parts.append((False, sql[pos:match.start()]))
            if match.group(1) is not None:
                parts.append((False, match.group(1)))
            else:
                index = int(match.group(2))
                if index < 1 or index > len(params):
                    raise placeholder_out_of_range(index, len(params))
                ordered.append(params[index - 1])
                parts.append((True, self.PLACEHOLDER))
            pos = match.end()
        parts.append((False, sql[pos:]))

        converted = "".join(
            text if is_placeholder or not ordered else self._escape_literal(text)
            for is_placeholder, text in parts
        )
        return converted, ordered

    def _escape_literal(self, text: str) -> str:
        """Escape SQL text that the driver would otherwise read as a placeholder."""
        return text

    async def run(self, sql: str, params: Optional[Sequence[Any]] = None) -> ThreadedCursor:
        """
        Execute SQL and return a cursor over the result rows.

        Args:
            sql: SQL with @pN placeholders
            params: Values, in placeholder-number order

        Raises:
            ConnectionBusyError: If a previous cursor is still open
            DriverError: If the connection is closed or execution fails
        """
        if not self._connected:
            raise DriverError(
                code=ErrorCode.ERR_NOT_CONNECTED,
                message=f"Not connected to {self.ENGINE}",
                engine=self.ENGINE,
            )
        if self._current_cursor() is not None:
            raise connection_busy()

        final_sql, final_params = self.convert_placeholders(sql, params)
        self._update_last_used()

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._execute, final_sql, final_params)
        try:
            raw_cursor = await asyncio.shield(future)
        except asyncio.CancelledError:
            # The worker thread keeps going; close whatever cursor it produces
            future.add_done_callback(self._discard_cursor)
            raise
        except Exception as e:
            raise DriverError(
                code=ErrorCode.ERR_QUERY_FAILED,
                message=f"{self.ENGINE} query failed: {e}",
                engine=self.ENGINE,
                original_error=e,
            ) from e

        cursor = ThreadedCursor(raw_cursor, self)
        self._active_cursor = weakref.ref(cursor)
        return cursor

    def _discard_cursor(self, future: "asyncio.Future[Any]") -> None:
        """Close a DB-API cursor whose run() was cancelled before it was wrapped."""
        if future.cancelled() or future.exception() is not None:
            return
        try:
            future.result().close()
        except Exception as e:
            logger.warning(f"Error closing abandoned {self.ENGINE} cursor: {e}")

    def _execute(self, sql: str, params: List[Any]) -> Any:
        """Run one statement on a fresh DB-API cursor. Runs in a worker thread."""
        cursor = self._connection.cursor()
        try:
            if params:
                cursor.execute(sql, tuple(params))
            else:
                cursor.execute(sql)
        except Exception:
            cursor.close()
            raise
        return cursor

    def _current_cursor(self) -> Optional[ThreadedCursor]:
        # Held weakly so a dropped cursor can be collected and release itself
        if self._active_cursor is None:
            return None
        return self._active_cursor()

    def _release(self, cursor: ThreadedCursor) -> None:
        active = self._current_cursor()
        if active is None or active is cursor:
            self._active_cursor = None

    def is_connected(self) -> bool:
        """Check if adapter has an active connection."""
        return self._connected

    def is_busy(self) -> bool:
        """Check if a result cursor is still open."""
        return self._current_cursor() is not None

    def get_engine_info(self) -> Dict[str, Any]:
        """Get information about this adapter/engine."""
        return {
            "engine": self.ENGINE,
            "connected": self._connected,
            "busy": self.is_busy(),
            "placeholder": self.PLACEHOLDER,
            "last_used": self._last_used.isoformat() if self._last_used else None
        }

    def _update_last_used(self):
        """Update last used timestamp."""
        self._last_used = datetime.now(timezone.utc)

    async def __aenter__(self):
        """Async context manager support."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager cleanup."""
        await self.close()
        return False
