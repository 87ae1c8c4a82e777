"""
Table declarations.

A table is a dataclass that inherits TableStruct and is decorated with
``@table``. The declaration supplies the three facts the query builder
needs: the table name, its columns, and how it joins to other tables.

Usage:
    @table("CUSTOMER_LIST")
    class Customer(TableStruct):
        ship_to_id: Optional[str] = None
        ship_to: Optional[str] = foreign_key("SLOW_MOVING.stock_in_day")
        volume: Optional[int] = None

    @table("SLOW_MOVING")
    class SlowMoving(TableStruct):
        stock_in_day: Optional[str] = None
        total_value: Optional[float] = None

    query = Customer.query().join(SlowMoving, JoinArg.INNER)
    query.filter(Customer.col("volume").gt(100))
"""

import dataclasses
import logging
from typing import Any, ClassVar, Dict, List, Optional, Type, TypeVar

from ssql.adapters.base import Row
from ssql.domain.query.builder import NormalQuery
from ssql.domain.query.filter import ColExpr
from ssql.errors import relation_not_found

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="TableStruct")

FOREIGN_KEY = "foreign_key"

# Every declared table, by table name
_TABLE_REGISTRY: Dict[str, Type["TableStruct"]] = {}


def foreign_key(target: str, default: Any = None) -> Any:
    """
    Declare a dataclass field that references ``"OTHER_TABLE.column"``.

    Args:
        target: Referenced column, qualified with its table name
        default: Field default
    """
    other, sep, column = target.rpartition(".")
    if not sep or not other or not column:
        raise ValueError(f"foreign key target must be 'TABLE.column', got {target!r}")
    return dataclasses.field(default=default, metadata={FOREIGN_KEY: (other, column)})


class TableStruct:
    """
    Base class for table declarations.

    Subclasses are configured by ``@table`` and expose:
        table_name(): SQL table name
        fields(): column names in declaration order
        relation(other): ON clause joining this table to ``other``
        query(): a NormalQuery selecting from this table
    """

    __table_name__: ClassVar[str]
    __table_fields__: ClassVar[List[str]]
    __foreign_keys__: ClassVar[Dict[str, List[str]]]

    @classmethod
    def table_name(cls) -> str:
        return cls.__table_name__

    @classmethod
    def fields(cls) -> List[str]:
        return list(cls.__table_fields__)

    @classmethod
    def relation(cls, other: str) -> str:
        """
        Join predicate between this table and ``other``.

        Foreign keys declared on this table are checked first, then foreign
        keys declared on ``other`` that point back here.

        Raises:
            ScopeError: If neither side declares a relation
        """
        name = cls.table_name()

        conditions = cls.__foreign_keys__.get(other)
        if not conditions:
            other_cls = _TABLE_REGISTRY.get(other)
            if other_cls is not None:
                conditions = other_cls.__foreign_keys__.get(name)

        if not conditions:
            raise relation_not_found(name, other)
        return "ON " + " AND ".join(conditions)

    @classmethod
    def col(cls, column: str) -> ColExpr:
        """Column reference for filters and ordering."""
        if column not in cls.__table_fields__:
            raise ValueError(f"table '{cls.table_name()}' has no column '{column}'")
        return ColExpr(cls.table_name(), column)

    @classmethod
    def query(cls) -> NormalQuery:
        """Start a query rooted at this table."""
        return NormalQuery(cls.table_name(), cls.fields(), cls.relation, model=cls)

    @classmethod
    def from_row(cls: Type[T], row: Row) -> T:
        """
        Build an instance from a row keyed by ``"TABLE.column"`` aliases.

        Columns missing from the row fall back to the field default, or None.
        """
        name = cls.table_name()
        kwargs: Dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            key = f"{name}.{f.name}"
            if key in row:
                kwargs[f.name] = row[key]
            elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                kwargs[f.name] = None
        return cls(**kwargs)


def table(name: Optional[str] = None) -> Any:
    """
    Class decorator that turns a TableStruct subclass into a table declaration.

    Args:
        name: SQL table name (defaults to the class name)
    """

    def decorate(cls: Type[T]) -> Type[T]:
        if not issubclass(cls, TableStruct):
            raise TypeError(f"{cls.__name__} must inherit TableStruct")
        if "__dataclass_fields__" not in cls.__dict__:
            cls = dataclasses.dataclass(cls)

        table_name = name or cls.__name__
        columns = [f.name for f in dataclasses.fields(cls)]
        if not columns:
            raise TypeError(f"table '{table_name}' declares no columns")

        foreign_keys: Dict[str, List[str]] = {}
        for f in dataclasses.fields(cls):
            target = f.metadata.get(FOREIGN_KEY)
            if target is None:
                continue
            other, column = target
            foreign_keys.setdefault(other, []).append(f"{table_name}.{f.name} = {other}.{column}")

        cls.__table_name__ = table_name
        cls.__table_fields__ = columns
        cls.__foreign_keys__ = foreign_keys

        if table_name in _TABLE_REGISTRY:
            logger.debug(f"Table '{table_name}' redeclared by {cls.__qualname__}")
        _TABLE_REGISTRY[table_name] = cls
        return cls

    if isinstance(name, type):
        # used as a bare @table
        cls, name = name, None
        return decorate(cls)
    return decorate


def get_table(name: str) -> Optional[Type[TableStruct]]:
    """Look up a declared table by SQL name."""
    return _TABLE_REGISTRY.get(name)
