"""
ssql - Structured Error Handling

Every error raised by the query builder, the row stream and the SQL Server
adapter derives from SsqlError, except DuplicateJoinError.

ERROR DESIGN PRINCIPLES:
------------------------
1. Every error has a unique code for log searching
2. Messages are human-readable and actionable
3. Suggestions guide callers to fix the issue
4. Driver failures keep the original exception attached

ERROR KINDS:
------------
- ScopeError:          filter/order/relation references a table not joined yet
- PreconditionError:   the builder cannot produce valid SQL (fail before I/O)
- ConnectionBusyError: a second statement on a connection with an open cursor
- DriverError:         connectivity, syntax or constraint failure from the server
- DuplicateJoinError:  the same table joined twice (programming error)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# ERROR CODES
# =============================================================================

class ErrorCode(str, Enum):
    """Unique error codes for every error type."""

    # Builder scope (1xxx)
    ERR_TABLE_NOT_IN_SCOPE = "ERR_1001"
    ERR_RELATION_NOT_FOUND = "ERR_1002"

    # Preconditions (2xxx)
    ERR_EMPTY_PROJECTION = "ERR_2001"
    ERR_RAW_SQL_MISSING = "ERR_2002"
    ERR_RAW_SQL_INVALID = "ERR_2003"
    ERR_QUERY_CONSUMED = "ERR_2004"
    ERR_NOT_A_TABLE = "ERR_2005"
    ERR_PLACEHOLDER_OUT_OF_RANGE = "ERR_2006"

    # Driver (4xxx)
    ERR_CONNECTION_FAILED = "ERR_4001"
    ERR_QUERY_FAILED = "ERR_4002"
    ERR_CONNECTION_BUSY = "ERR_4003"
    ERR_NOT_CONNECTED = "ERR_4004"
    ERR_DRIVER_MISSING = "ERR_4005"


# =============================================================================
# ERROR CLASSES
# =============================================================================

@dataclass
class SsqlError(Exception):
    """
    Structured error with the context needed for debugging.

    Attributes:
        code: Unique error code for searching logs
        message: Human-readable error message
        details: Additional context (dict)
        suggestion: How to fix the issue
    """
    code: ErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    suggestion: Optional[str] = None

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dict, e.g. for structured logs."""
        error_dict = {
            "code": self.code.value,
            "message": self.message,
        }

        if self.details:
            error_dict["details"] = self.details

        if self.suggestion:
            error_dict["suggestion"] = self.suggestion

        return {"error": error_dict}

    def log(self, level: str = "error"):
        """Log the error with context."""
        log_msg = f"[{self.code.value}] {self.message}"
        if self.details:
            log_msg += f" | details={self.details}"

        getattr(logger, level)(log_msg)


@dataclass
class ScopeError(SsqlError):
    """A column or relation refers to a table that is not part of the query."""
    pass


@dataclass
class PreconditionError(SsqlError):
    """The query cannot be turned into valid SQL; raised before any I/O."""
    pass


@dataclass
class ConnectionBusyError(SsqlError):
    """The connection already has an open result cursor."""
    pass


@dataclass
class DriverError(SsqlError):
    """
    Failure reported by the database driver.

    Attributes:
        engine: Driver/engine identifier (e.g. "sqlserver")
        original_error: The exception raised by the driver library
    """
    engine: str = ""
    original_error: Optional[BaseException] = None


class DuplicateJoinError(RuntimeError):
    """
    The same table was joined into a query twice.

    This is a bug in the calling code, not a runtime condition: no valid SQL
    can follow. It is kept outside the SsqlError hierarchy so that handlers
    for recoverable errors do not swallow it.
    """

    def __init__(self, table: str):
        super().__init__(f"table '{table}' already joined")
        self.table = table


# =============================================================================
# ERROR FACTORY FUNCTIONS
# =============================================================================

def table_not_in_scope(
    table: str,
    operation: str,
    tables_in_scope: Optional[List[str]] = None,
) -> ScopeError:
    """Create a scope error for a filter/order on a table that is not joined."""
    details: Dict[str, Any] = {"table": table, "operation": operation}
    if tables_in_scope is not None:
        details["tables_in_scope"] = list(tables_in_scope)

    return ScopeError(
        code=ErrorCode.ERR_TABLE_NOT_IN_SCOPE,
        message=f"the {operation} applies to table '{table}' which is not in this builder",
        details=details,
        suggestion=f"join '{table}' before calling {operation}()",
    )


def relation_not_found(table: str, other: str) -> ScopeError:
    """Create a scope error for a join between tables with no declared relation."""
    return ScopeError(
        code=ErrorCode.ERR_RELATION_NOT_FOUND,
        message=f"no relation declared between '{table}' and '{other}'",
        details={"table": table, "other": other},
        suggestion=f"declare a foreign_key() on '{table}' that points at '{other}'",
    )


def empty_projection(table: str) -> PreconditionError:
    """Create a precondition error for a table with no projected columns."""
    return PreconditionError(
        code=ErrorCode.ERR_EMPTY_PROJECTION,
        message=f"table '{table}' has no columns to select",
        details={"table": table},
    )


def raw_sql_missing() -> PreconditionError:
    """Create a precondition error for a raw query without SQL text."""
    return PreconditionError(
        code=ErrorCode.ERR_RAW_SQL_MISSING,
        message="raw query has no SQL text",
    )


def raw_sql_invalid(error: str) -> PreconditionError:
    """Create a precondition error for raw SQL that does not parse as T-SQL."""
    return PreconditionError(
        code=ErrorCode.ERR_RAW_SQL_INVALID,
        message=f"raw SQL is not valid T-SQL: {error}",
        details={"parse_error": error},
    )


def query_consumed() -> PreconditionError:
    """Create a precondition error for a builder executed more than once."""
    return PreconditionError(
        code=ErrorCode.ERR_QUERY_CONSUMED,
        message="query has already been executed",
        suggestion="build a new query for each execution",
    )


def not_a_table(obj: Any) -> PreconditionError:
    """Create a precondition error for a join target that is not a table."""
    return PreconditionError(
        code=ErrorCode.ERR_NOT_A_TABLE,
        message=f"{obj!r} is not a table declaration",
        suggestion="pass a @table class or a (name, columns) pair",
    )


def placeholder_out_of_range(index: int, param_count: int) -> PreconditionError:
    """Create a precondition error for an @pN placeholder with no bound value."""
    return PreconditionError(
        code=ErrorCode.ERR_PLACEHOLDER_OUT_OF_RANGE,
        message=f"placeholder @p{index} has no bound value ({param_count} bound)",
        details={"placeholder": index, "param_count": param_count},
    )


def connection_busy() -> ConnectionBusyError:
    """Create an error for a statement issued while a cursor is still open."""
    return ConnectionBusyError(
        code=ErrorCode.ERR_CONNECTION_BUSY,
        message="connection already has an open result stream",
        suggestion="exhaust or close the previous stream before running another query",
    )
