import logging

import pytest

from rowgraph.adapters import AdapterTransactionError, SQLiteAdapter
from rowgraph.dialects import MySQLDialect, PostgresDialect, SQLiteDialect
from rowgraph.driver import CursorStateError, QueryError, SQLQueryDriver
from rowgraph.query import ColumnRef, Condition, FieldRef, JoinClause, OrderTerm
from rowgraph.utils.performance import PerformanceTracker


class FakeCursor:
    def __init__(self, rows=(), rowcount=1):
        self.rows = list(rows)
        self.rowcount = rowcount
        self.lastrowid = 7

    def fetchall(self):
        return self.rows


class RecordingAdapter:
    slow_query_ms = 1000

    def __init__(self, dialect, rows=(), rowcount=1, fail_begin=False):
        self.dialect = dialect
        self.rows = rows
        self.rowcount = rowcount
        self.fail_begin = fail_begin
        self.statements = []
        self.calls = []

    def execute(self, sql, params=None):
        self.statements.append((sql, list(params or ())))
        return FakeCursor(self.rows, self.rowcount)

    def begin(self):
        if self.fail_begin:
            raise RuntimeError("no begin for you")
        self.calls.append("begin")

    def commit(self):
        self.calls.append("commit")

    def rollback(self):
        self.calls.append("rollback")

    def last_insert_id(self, cursor, table, pk_column):
        return cursor.lastrowid

    def close(self):
        self.calls.append("close")


def orders(column):
    return ColumnRef("orders", column)


def test_render_select_with_join_filter_order_and_paging():
    driver = SQLQueryDriver(RecordingAdapter(SQLiteDialect()))
    tables = {
        "orders": None,
        "line_items": JoinClause("LEFT", "line_items", orders("id"), ColumnRef("line_items", "order_id")),
    }
    fields = {
        "order_id": FieldRef("orders", "id", attribute="id", prefix="order"),
        "lineitem_sku": FieldRef("line_items", "sku", attribute="sku", prefix="lineitem"),
    }
    sql, params = driver.render_select(
        tables, fields, [Condition(orders("status"), "=", "paid")], [OrderTerm(orders("id"), True)], 10, 20
    )
    assert sql == (
        'SELECT "orders"."id" AS "order_id", "line_items"."sku" AS "lineitem_sku" '
        'FROM "orders" LEFT JOIN "line_items" ON "orders"."id" = "line_items"."order_id" '
        'WHERE "orders"."status" = ? ORDER BY "orders"."id" DESC LIMIT 10 OFFSET 20'
    )
    assert params == ["paid"]


def test_render_where_handles_null_and_in_lists():
    driver = SQLQueryDriver(RecordingAdapter(SQLiteDialect()))
    where, params = driver.render_where(
        [
            Condition(orders("shipped_at"), "=", None),
            Condition(orders("id"), "IN", (1, 2)),
            Condition(orders("note"), "!=", None),
        ]
    )
    assert where == (
        'WHERE "orders"."shipped_at" IS NULL AND "orders"."id" IN (?, ?) AND "orders"."note" IS NOT NULL'
    )
    assert params == [1, 2]
    assert driver.render_where([Condition(orders("id"), "IN", [])]) == ("WHERE 1 = 0", [])
    assert driver.render_where([]) == ("", [])


def test_literal_clause_is_passed_through():
    driver = SQLQueryDriver(RecordingAdapter(SQLiteDialect()))
    assert driver.render_where("status = 'x'") == ("WHERE status = 'x'", [])
    assert driver.render_where("where a = 1") == ("where a = 1", [])


def test_update_and_delete_limit_follow_dialect_capability():
    mysql = RecordingAdapter(MySQLDialect(), rowcount=1)
    driver = SQLQueryDriver(mysql)
    assert driver.execute_update("orders", {"status": "paid"}, [Condition(orders("id"), "=", 1)], limit=1) == 1
    driver.execute_delete("orders", [Condition(orders("id"), "=", 1)], limit=1)
    assert mysql.statements == [
        ("UPDATE `orders` SET `status` = %s WHERE `orders`.`id` = %s LIMIT 1", ["paid", 1]),
        ("DELETE FROM `orders` WHERE `orders`.`id` = %s LIMIT 1", [1]),
    ]

    sqlite = RecordingAdapter(SQLiteDialect())
    SQLQueryDriver(sqlite).execute_update("orders", {"status": "paid"}, [Condition(orders("id"), "=", 1)], limit=1)
    assert sqlite.statements[0][0] == 'UPDATE "orders" SET "status" = ? WHERE "orders"."id" = ?'


def test_update_without_fields_is_a_no_op():
    adapter = RecordingAdapter(SQLiteDialect())
    assert SQLQueryDriver(adapter).execute_update("orders", {}, None) == 0
    assert adapter.statements == []


def test_insert_statements_per_dialect():
    postgres = RecordingAdapter(PostgresDialect())
    SQLQueryDriver(postgres).execute_insert("orders", {"status": "new"}, returning="id")
    assert postgres.statements[0] == ('INSERT INTO "orders" ("status") VALUES (%s) RETURNING "id"', ["new"])

    sqlite = RecordingAdapter(SQLiteDialect())
    driver = SQLQueryDriver(sqlite)
    driver.execute_upsert_ignore("orders", {"status": "new"}, returning="id")
    driver.execute_insert("orders", {})
    assert sqlite.statements == [
        ('INSERT OR IGNORE INTO "orders" ("status") VALUES (?)', ["new"]),
        ('INSERT INTO "orders" DEFAULT VALUES', []),
    ]
    assert driver.last_generated_key("orders", "id") == 7


def test_last_generated_key_needs_an_insert():
    with pytest.raises(QueryError):
        SQLQueryDriver(RecordingAdapter(SQLiteDialect())).last_generated_key("orders", "id")


def test_transaction_calls_track_state_and_wrap_errors():
    adapter = RecordingAdapter(SQLiteDialect())
    driver = SQLQueryDriver(adapter)
    driver.begin_transaction()
    assert driver.in_transaction
    driver.rollback()
    assert not driver.in_transaction
    assert adapter.calls == ["begin", "rollback"]

    failing = SQLQueryDriver(RecordingAdapter(SQLiteDialect(), fail_begin=True))
    with pytest.raises(AdapterTransactionError):
        failing.begin_transaction()
    assert not failing.in_transaction


@pytest.fixture
def sqlite_driver(tmp_path):
    driver = SQLQueryDriver.connect(SQLiteAdapter(), f"sqlite:///{tmp_path / 'driver.db'}")
    driver.execute("CREATE TABLE items (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL)")
    for name in ("a", "b", "c"):
        driver.execute_insert("items", {"name": name})
    yield driver
    driver.close()


def item_fields():
    return {"item_name": FieldRef("items", "name", attribute="name", prefix="item")}


def test_open_result_blocks_next_select(sqlite_driver):
    assert sqlite_driver.execute_select({"items": None}, item_fields(), order=["name"]) == 3
    assert sqlite_driver.fetch_next_row() == {"item_name": "a"}
    with pytest.raises(CursorStateError):
        sqlite_driver.execute_select({"items": None}, item_fields())

    sqlite_driver.free_result()
    assert sqlite_driver.execute_select({"items": None}, item_fields(), limit=1) == 1
    assert sqlite_driver.fetch_next_row() is not None
    assert sqlite_driver.fetch_next_row() is None
    assert not sqlite_driver.has_open_result


def test_count_and_generated_keys(sqlite_driver):
    assert sqlite_driver.execute_count("items") == 3
    assert sqlite_driver.execute_count("items", "id", [Condition(ColumnRef("items", "name"), "!=", "a")]) == 2
    sqlite_driver.execute_insert("items", {"name": "d"})
    assert sqlite_driver.last_generated_key("items", "id") == 4


def test_failures_are_wrapped_in_query_error(sqlite_driver):
    with pytest.raises(QueryError) as excinfo:
        sqlite_driver.execute_insert("items", {"name": None})
    assert excinfo.value.statement.startswith('INSERT INTO "items"')
    assert excinfo.value.params == (None,)
    assert excinfo.value.__cause__ is not None


def test_tracker_records_statements(tmp_path):
    tracker = PerformanceTracker(logging.getLogger("rowgraph.test"))
    driver = SQLQueryDriver.connect(SQLiteAdapter(), f"sqlite:///{tmp_path / 'tracked.db'}", tracker=tracker)
    driver.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
    driver.execute_count("t")
    assert tracker.total_statements() == 2
    driver.close()
