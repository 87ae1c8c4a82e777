"""
Query Domain

Staged SQL builders, filter expressions and row streaming.
"""

from ssql.domain.query.builder import NormalQuery, QueryCore, RawQuery, validate_sql
from ssql.domain.query.filter import ColExpr, FilterExpr, FilterOp, JoinArg, escape_like
from ssql.domain.query.stream import RowStream

__all__ = [
    "QueryCore",
    "NormalQuery",
    "RawQuery",
    "validate_sql",
    "ColExpr",
    "FilterExpr",
    "FilterOp",
    "JoinArg",
    "escape_like",
    "RowStream",
]
