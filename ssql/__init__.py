"""
ssql - typed query construction and streaming for SQL Server.

    from ssql import table, TableStruct, foreign_key, JoinArg, get_client

    @table("Person")
    class Person(TableStruct):
        id: int = 0
        Email: str = ""

    conn = await get_client("username", "password", "host", "database")
    query = Person.query().filter(Person.col("id").gt(5))
    async with await query.stream(conn, Person.from_row) as people:
        async for person in people:
            ...
"""

from ssql.adapters import BaseAdapter, SQLServerAdapter, SQLServerConnection, get_client
from ssql.core.config import Settings, get_settings
from ssql.domain.query import (
    ColExpr,
    FilterExpr,
    FilterOp,
    JoinArg,
    NormalQuery,
    QueryCore,
    RawQuery,
    RowStream,
)
from ssql.domain.table import TableStruct, foreign_key, get_table, table
from ssql.errors import (
    ConnectionBusyError,
    DriverError,
    DuplicateJoinError,
    ErrorCode,
    PreconditionError,
    ScopeError,
    SsqlError,
)

__version__ = "0.1.0"

__all__ = [
    "BaseAdapter",
    "SQLServerAdapter",
    "SQLServerConnection",
    "get_client",
    "Settings",
    "get_settings",
    "ColExpr",
    "FilterExpr",
    "FilterOp",
    "JoinArg",
    "NormalQuery",
    "QueryCore",
    "RawQuery",
    "RowStream",
    "TableStruct",
    "foreign_key",
    "get_table",
    "table",
    "ConnectionBusyError",
    "DriverError",
    "DuplicateJoinError",
    "ErrorCode",
    "PreconditionError",
    "ScopeError",
    "SsqlError",
]
