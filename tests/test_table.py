"""
Tests for table declarations and the queries they produce.
"""

from typing import Optional

import pytest

from ssql.domain.query.filter import ColExpr, JoinArg
from ssql.domain.table import TableStruct, foreign_key, get_table, table
from ssql.errors import DuplicateJoinError, ErrorCode, ScopeError


@table("CUSTOMER_LIST")
class Customer(TableStruct):
    ship_to_id: Optional[str] = None
    ship_to: Optional[str] = foreign_key("SLOW_MOVING.stock_in_day")
    volume: Optional[int] = None
    container: Optional[str] = None


@table("SLOW_MOVING")
class SlowMoving(TableStruct):
    stock_in_day: Optional[str] = None
    total_value: Optional[float] = None
    Week: Optional[int] = None


@table("SHIPMENT")
class Shipment(TableStruct):
    ship_to_id: Optional[str] = foreign_key("CUSTOMER_LIST.ship_to_id")
    container: Optional[str] = foreign_key("CUSTOMER_LIST.container")


@table
class Person(TableStruct):
    id: int
    Email: str = ""


class TestDeclaration:
    """Tests for the static facts a declaration exposes."""

    def test_table_name_and_fields(self):
        assert Customer.table_name() == "CUSTOMER_LIST"
        assert Customer.fields() == ["ship_to_id", "ship_to", "volume", "container"]

    def test_bare_decorator_uses_class_name(self):
        assert Person.table_name() == "Person"
        assert Person.fields() == ["id", "Email"]

    def test_registry(self):
        assert get_table("SLOW_MOVING") is SlowMoving
        assert get_table("NOPE") is None

    def test_instances_are_dataclasses(self):
        customer = Customer(ship_to_id="A1", volume=3)
        assert customer.ship_to_id == "A1"
        assert customer.ship_to is None

    def test_requires_table_struct(self):
        with pytest.raises(TypeError):
            @table("BAD")
            class Bad:
                x: int = 0

    def test_foreign_key_target_format(self):
        with pytest.raises(ValueError):
            foreign_key("no_table_here")

    def test_col(self):
        assert Customer.col("volume") == ColExpr("CUSTOMER_LIST", "volume")
        with pytest.raises(ValueError):
            Customer.col("nope")


class TestRelation:
    """Tests for join predicates derived from foreign keys."""

    def test_forward_foreign_key(self):
        assert Customer.relation("SLOW_MOVING") == "ON CUSTOMER_LIST.ship_to = SLOW_MOVING.stock_in_day"

    def test_reverse_foreign_key(self):
        assert SlowMoving.relation("CUSTOMER_LIST") == "ON CUSTOMER_LIST.ship_to = SLOW_MOVING.stock_in_day"

    def test_composite_foreign_key(self):
        assert Customer.relation("SHIPMENT") == (
            "ON SHIPMENT.ship_to_id = CUSTOMER_LIST.ship_to_id "
            "AND SHIPMENT.container = CUSTOMER_LIST.container"
        )

    def test_no_relation(self):
        with pytest.raises(ScopeError) as exc_info:
            Person.relation("CUSTOMER_LIST")
        assert exc_info.value.code is ErrorCode.ERR_RELATION_NOT_FOUND


class TestQuery:
    """Tests for queries started from a declaration."""

    def test_join_and_filter(self):
        query = Customer.query().join(SlowMoving, JoinArg.INNER)
        query.filter(SlowMoving.col("total_value").gt(100.0))
        query.order_by(Customer.col("volume"), ascending=False)

        sql, params = query.to_sql()

        assert sql == (
            'SELECT CUSTOMER_LIST.ship_to_id AS "CUSTOMER_LIST.ship_to_id",'
            'CUSTOMER_LIST.ship_to AS "CUSTOMER_LIST.ship_to",'
            'CUSTOMER_LIST.volume AS "CUSTOMER_LIST.volume",'
            'CUSTOMER_LIST.container AS "CUSTOMER_LIST.container",'
            'SLOW_MOVING.stock_in_day AS "SLOW_MOVING.stock_in_day",'
            'SLOW_MOVING.total_value AS "SLOW_MOVING.total_value",'
            'SLOW_MOVING.Week AS "SLOW_MOVING.Week" '
            "FROM CUSTOMER_LIST "
            " INNER JOIN SLOW_MOVING ON CUSTOMER_LIST.ship_to = SLOW_MOVING.stock_in_day "
            " WHERE SLOW_MOVING.total_value > @p1"
            " ORDER BY CUSTOMER_LIST.volume DESC"
        )
        assert params == [100.0]

    def test_filter_before_join_is_out_of_scope(self):
        with pytest.raises(ScopeError):
            Customer.query().filter(SlowMoving.col("Week").eq(3))

    def test_duplicate_join(self):
        query = Customer.query().join(SlowMoving)
        with pytest.raises(DuplicateJoinError):
            query.join(SlowMoving)

    def test_join_without_relation(self):
        query = Customer.query()
        with pytest.raises(ScopeError):
            query.join(Person)
        assert query.tables() == ["CUSTOMER_LIST"]


class TestRowMapping:
    """Tests for turning rows back into declarations."""

    def test_from_row(self):
        row = {"Person.id": 5, "Person.Email": "a", "OTHER.id": 9}
        assert Person.from_row(row) == Person(id=5, Email="a")

    def test_from_row_missing_columns(self):
        assert Person.from_row({}) == Person(id=None, Email="")

    @pytest.mark.asyncio
    async def test_get_self(self, fake_connection_factory):
        conn = fake_connection_factory([
            {"Person.id": 5, "Person.Email": "a"},
            {"Person.id": 6, "Person.Email": "b"},
        ])
        people = await Person.query().filter(Person.col("id").gte(5)).get_self(conn)

        assert people == [Person(id=5, Email="a"), Person(id=6, Email="b")]
        assert conn.calls[0][1] == [5]
        assert conn.cursors[0].closed

    @pytest.mark.asyncio
    async def test_find_all(self, fake_connection_factory):
        conn = fake_connection_factory([
            {"CUSTOMER_LIST.ship_to_id": "A1", "SLOW_MOVING.Week": 2},
        ])
        rows = await Customer.query().find_all(conn)
        assert rows == [{"CUSTOMER_LIST": {"ship_to_id": "A1"}, "SLOW_MOVING": {"Week": 2}}]
