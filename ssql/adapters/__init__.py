"""
Database Adapters for ssql

Each adapter handles:
- Connection management
- Parameter placeholder conversion (@pN -> driver paramstyle)
- Turning a blocking DB-API cursor into an async row cursor

Supported Engines:
- SQL Server / Azure SQL
"""

from ssql.adapters.base import BaseAdapter, Connection, ResultCursor, Row, ThreadedCursor
from ssql.adapters.sqlserver_adapter import (
    SQLServerAdapter,
    SQLServerConnection,
    MSSQLAdapter,
    get_client,
)

__all__ = [
    "BaseAdapter",
    "Connection",
    "ResultCursor",
    "Row",
    "ThreadedCursor",
    "SQLServerAdapter",
    "SQLServerConnection",
    "MSSQLAdapter",
    "get_client",
]
