"""
Staged SQL query builders for SQL Server.

Two stages share the execution machinery in QueryCore:

- NormalQuery generates a SELECT from the tables, filters, joins and
  ordering accumulated on it.
- RawQuery sends caller-written SQL as-is.

Both bind values through positional ``@pN`` placeholders; values never end
up inside the SQL text.

Usage:
    query = NormalQuery("CUSTOMER_LIST", ["ship_to_id", "volume"], relation)
    query.filter(ColExpr("CUSTOMER_LIST", "volume").gt(10))
    query.order_by(ColExpr("CUSTOMER_LIST", "ship_to_id"))
    query.to_sql()
    # ('SELECT CUSTOMER_LIST.ship_to_id AS "CUSTOMER_LIST.ship_to_id",'
    #  'CUSTOMER_LIST.volume AS "CUSTOMER_LIST.volume" FROM CUSTOMER_LIST  '
    #  'WHERE CUSTOMER_LIST.volume > @p1 ORDER BY CUSTOMER_LIST.ship_to_id ASC', [10])

    async with await query.stream(conn, lambda row: dict(row)) as rows:
        async for row in rows:
            ...
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import sqlglot
from sqlglot.errors import ParseError, TokenError

from ssql.adapters.base import Connection, ResultCursor, Row
from ssql.core.config import get_settings
from ssql.domain.query.filter import ColExpr, FilterExpr, JoinArg
from ssql.domain.query.stream import Ret, RowStream
from ssql.errors import (
    DuplicateJoinError,
    empty_projection,
    not_a_table,
    query_consumed,
    raw_sql_invalid,
    raw_sql_missing,
    table_not_in_scope,
)

logger = logging.getLogger(__name__)

RelationFunc = Callable[[str], str]


def validate_sql(sql: str, dialect: str = "tsql") -> Tuple[bool, Optional[str]]:
    """
    Validate SQL syntax.

    Args:
        sql: SQL query to validate
        dialect: SQLGlot dialect name

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        sqlglot.parse_one(sql, read=dialect)
        return True, None
    except (ParseError, TokenError) as e:
        return False, str(e)


class QueryCore(ABC):
    """
    Shared execution path for both query stages.

    A query is executed at most once; subclasses only decide which SQL text
    and parameters to send.
    """

    def __init__(self):
        self.query_params: List[Any] = []
        self._consumed = False

    @abstractmethod
    def to_sql(self) -> Tuple[str, List[Any]]:
        """
        Compile to SQL text and its positional parameters.

        Raises:
            PreconditionError: If no valid SQL can be produced
        """

    @property
    def consumed(self) -> bool:
        return self._consumed

    async def execute(self, conn: Connection) -> ResultCursor:
        """
        Send the query over ``conn`` and return the driver's row cursor.

        Errors raised by the connection propagate unchanged.
        """
        if self._consumed:
            raise query_consumed()

        sql, params = self.to_sql()
        self._consumed = True
        logger.debug(f"Executing {type(self).__name__} ({len(params)} params): {sql}")
        return await conn.run(sql, params)

    async def stream(self, conn: Connection, projection: Callable[[Row], Ret]) -> RowStream[Ret]:
        """Execute and wrap the result in a RowStream that applies ``projection`` per row."""
        cursor = await self.execute(conn)
        return RowStream(cursor, projection)


class NormalQuery(QueryCore):
    """
    Generated SELECT over one main table plus joined tables.

    Attributes:
        main_table: Table the query was created for
        fields: Table name -> projected columns, in join order
        filters: Compiled predicates, ANDed in registration order
        join_text: Accumulated JOIN clauses
        order_text: Accumulated ORDER BY keys
        query_params: Bound values; query_params[i] binds @p{i+1}
        query_idx_counter: Number of placeholders handed out so far
    """

    def __init__(
        self,
        table: str,
        columns: Sequence[str],
        relation_func: RelationFunc,
        model: Optional[type] = None,
    ):
        super().__init__()
        if not columns:
            raise empty_projection(table)

        self.main_table = table
        self.fields: Dict[str, List[str]] = {table: list(columns)}
        self.filters: List[str] = []
        self.join_text = ""
        self.order_text = ""
        self.query_idx_counter = 0
        self.relation_func = relation_func
        self.model = model

    def tables(self) -> List[str]:
        """Tables currently in scope, main table first."""
        return list(self.fields)

    def _check_scope(self, table: str, operation: str) -> None:
        if table not in self.fields:
            raise table_not_in_scope(table, operation, self.tables())

    def filter(self, filter_expr: FilterExpr) -> "NormalQuery":
        """
        Add a predicate, ANDed with any previous ones.

        Raises:
            ScopeError: If the column's table is not in this query
        """
        self._check_scope(filter_expr.col.table, "filter")

        fragment, value = filter_expr.to_sql(self.query_idx_counter + 1)
        self.filters.append(fragment)
        self.query_params.append(value)
        self.query_idx_counter += 1
        return self

    def order_by(self, column: ColExpr, ascending: bool = True) -> "NormalQuery":
        """
        Add a sort key. The first call is the primary key.

        Raises:
            ScopeError: If the column's table is not in this query
        """
        self._check_scope(column.table, "order_by")

        if self.order_text:
            self.order_text += ", "
        self.order_text += f"{column.full_column_name()} {'ASC' if ascending else 'DESC'}"
        return self

    def join(self, other: Any, join_kind: Union[JoinArg, str] = JoinArg.LEFT) -> "NormalQuery":
        """
        Join another table using the relation predicate for it.

        Args:
            other: A @table class, or a (table_name, columns) pair
            join_kind: JoinArg or its name ("LEFT", "RIGHT", "OUTER", "INNER")

        Raises:
            DuplicateJoinError: If the table is already part of the query
            ScopeError: If no relation to the table is declared
            PreconditionError: If the table has no columns
        """
        name, columns = _table_facts(other)
        if isinstance(join_kind, str) and not isinstance(join_kind, JoinArg):
            join_kind = JoinArg[join_kind.upper()]

        if name in self.fields:
            raise DuplicateJoinError(name)
        if not columns:
            raise empty_projection(name)

        relation = self.relation_func(name)
        self.join_text += f" {join_kind.value} JOIN {name} {relation} "
        self.fields[name] = list(columns)
        return self

    def to_sql(self) -> Tuple[str, List[Any]]:
        select_fields = []
        for table, columns in self.fields.items():
            if not columns:
                raise empty_projection(table)
            for column in columns:
                col = ColExpr(table, column)
                select_fields.append(f"{col.full_column_name()} AS {col.alias()}")

        where_clause = f" WHERE {' AND '.join(self.filters)}" if self.filters else ""
        order_clause = f" ORDER BY {self.order_text}" if self.order_text else ""

        sql = (
            f"SELECT {','.join(select_fields)} FROM {self.main_table} "
            f"{self.join_text}{where_clause}{order_clause}"
        )
        return sql, list(self.query_params)

    async def find_all(self, conn: Connection) -> List[Dict[str, Dict[str, Any]]]:
        """
        Fetch every row, grouped by origin table.

        Returns:
            One dict per row: {table: {column: value}}
        """
        stream = await self.stream(conn, _group_by_table)
        return await stream.collect()

    async def get_self(self, conn: Connection) -> List[Any]:
        """
        Fetch every row as an instance of the main table's declaration.

        Raises:
            PreconditionError: If the query was not created from a @table class
        """
        if self.model is None:
            raise not_a_table(self.main_table)

        stream = await self.stream(conn, self.model.from_row)
        return await stream.collect()


class RawQuery(QueryCore):
    """
    Caller-written SQL, executed with positional parameters.

    Example:
        query = RawQuery("SELECT id FROM Person WHERE Email = @p1", ["a@b.c"])
        people = await (await query.stream(conn, lambda row: row["id"])).collect()
    """

    def __init__(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        validate: Optional[bool] = None,
    ):
        super().__init__()
        self.raw_sql = sql
        self.query_params = list(params or [])
        self.validate = get_settings().validate_raw_sql if validate is None else validate

    def bind(self, value: Any) -> str:
        """Bind one more value and return its placeholder, e.g. ``@p3``."""
        self.query_params.append(value)
        return f"@p{len(self.query_params)}"

    def to_sql(self) -> Tuple[str, List[Any]]:
        if not self.raw_sql or not self.raw_sql.strip():
            raise raw_sql_missing()

        if self.validate:
            is_valid, error = validate_sql(self.raw_sql)
            if not is_valid:
                raise raw_sql_invalid(error)

        return self.raw_sql, list(self.query_params)


def _table_facts(other: Any) -> Tuple[str, List[str]]:
    """Extract (table name, columns) from a table declaration or a pair."""
    if hasattr(other, "table_name") and hasattr(other, "fields"):
        return other.table_name(), list(other.fields())
    if isinstance(other, (tuple, list)) and len(other) == 2 and isinstance(other[0], str):
        return other[0], list(other[1])
    raise not_a_table(other)


def _group_by_table(row: Row) -> Dict[str, Dict[str, Any]]:
    grouped: Dict[str, Dict[str, Any]] = {}
    for key, value in row.items():
        table, _, column = key.rpartition(".")
        grouped.setdefault(table, {})[column] = value
    return grouped
