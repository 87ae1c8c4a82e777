"""
Column references, filter expressions and join directives.

Usage:
    col = ColExpr("CUSTOMER_LIST", "volume")
    query.filter(col.gt(100))          # CUSTOMER_LIST.volume > @p1
    query.order_by(col, ascending=False)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Tuple


class JoinArg(str, Enum):
    """SQL join keyword used by NormalQuery.join()."""
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    # T-SQL has no bare OUTER JOIN
    OUTER = "FULL OUTER"
    INNER = "INNER"


class FilterOp(str, Enum):
    """Comparison operators a FilterExpr can carry."""
    EQ = "="
    NE = "<>"
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"


def escape_like(value: str) -> str:
    """
    Escape LIKE wildcards so ``value`` matches literally.

    T-SQL treats a single character inside brackets as a literal, so
    ``50%`` becomes ``50[%]``.
    """
    return value.replace("[", "[[]").replace("%", "[%]").replace("_", "[_]")


@dataclass(frozen=True)
class ColExpr:
    """A (table, column) pair."""
    table: str
    column: str

    def full_column_name(self) -> str:
        """Qualified identifier, e.g. ``CUSTOMER_LIST.volume``."""
        return f"{self.table}.{self.column}"

    def alias(self) -> str:
        """Result alias that keeps the origin table: ``"CUSTOMER_LIST.volume"``."""
        return f'"{self.table}.{self.column}"'

    def eq(self, value: Any) -> "FilterExpr":
        return FilterExpr(self, FilterOp.EQ, value)

    def ne(self, value: Any) -> "FilterExpr":
        return FilterExpr(self, FilterOp.NE, value)

    def gt(self, value: Any) -> "FilterExpr":
        return FilterExpr(self, FilterOp.GT, value)

    def gte(self, value: Any) -> "FilterExpr":
        return FilterExpr(self, FilterOp.GTE, value)

    def lt(self, value: Any) -> "FilterExpr":
        return FilterExpr(self, FilterOp.LT, value)

    def lte(self, value: Any) -> "FilterExpr":
        return FilterExpr(self, FilterOp.LTE, value)

    ge = gte
    le = lte

    def like(self, pattern: str) -> "FilterExpr":
        return FilterExpr(self, FilterOp.LIKE, pattern)

    def not_like(self, pattern: str) -> "FilterExpr":
        return FilterExpr(self, FilterOp.NOT_LIKE, pattern)

    # contains/starts_with/ends_with match ``value`` literally; like() takes a pattern

    def contains(self, value: str) -> "FilterExpr":
        return FilterExpr(self, FilterOp.LIKE, f"%{escape_like(value)}%")

    def starts_with(self, value: str) -> "FilterExpr":
        return FilterExpr(self, FilterOp.LIKE, f"{escape_like(value)}%")

    def ends_with(self, value: str) -> "FilterExpr":
        return FilterExpr(self, FilterOp.LIKE, f"%{escape_like(value)}")


@dataclass(frozen=True)
class FilterExpr:
    """
    One column comparison bound to a single value.

    Each expression compiles to exactly one positional placeholder, so
    disjunctions must be written as raw SQL.
    """
    col: ColExpr
    op: FilterOp
    value: Any

    def to_sql(self, index: int) -> Tuple[str, Any]:
        """
        Compile to a predicate fragment.

        Args:
            index: 1-based placeholder number to use (``@p{index}``)

        Returns:
            (fragment, value to bind at that position)
        """
        return f"{self.col.full_column_name()} {self.op.value} @p{index}", self.value
