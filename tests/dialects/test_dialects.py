import pytest

from rowgraph.dialects import MySQLDialect, PostgresDialect, SQLiteDialect


def test_postgres_quotes_identifiers_and_schemas():
    dialect = PostgresDialect()
    assert dialect.quote_identifier('table"name') == '"table""name"'
    assert dialect.format_table("public.users") == '"public"."users"'
    assert dialect.parameter_placeholder() == "%s"


def test_sqlite_does_not_split_dotted_tables():
    assert SQLiteDialect().format_table("main.users") == '"main.users"'


def test_mysql_uses_backticks():
    dialect = MySQLDialect()
    assert dialect.quote_identifier("order") == "`order`"
    assert dialect.format_table("shop.orders") == "`shop`.`orders`"


@pytest.mark.parametrize(
    "dialect, limit, offset, expected",
    [
        (PostgresDialect(), 10, None, "LIMIT 10"),
        (PostgresDialect(), None, 5, "OFFSET 5"),
        (PostgresDialect(), 10, 5, "LIMIT 10 OFFSET 5"),
        (SQLiteDialect(), None, 5, "LIMIT -1 OFFSET 5"),
        (MySQLDialect(), None, 5, "LIMIT 18446744073709551615 OFFSET 5"),
        (MySQLDialect(), None, None, ""),
    ],
)
def test_limit_clause(dialect, limit, offset, expected):
    assert dialect.limit_clause(limit, offset) == expected


def test_insert_ignoring_conflicts():
    columns = ["sku", "name"]
    assert SQLiteDialect().insert_statement("products", columns, ignore_conflicts=True) == (
        'INSERT OR IGNORE INTO "products" ("sku", "name") VALUES (?, ?)'
    )
    assert MySQLDialect().insert_statement("products", columns, ignore_conflicts=True) == (
        "INSERT IGNORE INTO `products` (`sku`, `name`) VALUES (%s, %s)"
    )
    assert PostgresDialect().insert_statement(
        "products", columns, ignore_conflicts=True, returning="id"
    ) == 'INSERT INTO "products" ("sku", "name") VALUES (%s, %s) ON CONFLICT DO NOTHING RETURNING "id"'


def test_returning_only_where_supported():
    assert "RETURNING" not in SQLiteDialect().insert_statement("products", ["sku"], returning="id")
    assert "RETURNING" not in MySQLDialect().insert_statement("products", ["sku"], returning="id")


def test_insert_without_columns():
    assert SQLiteDialect().insert_statement("products", []) == 'INSERT INTO "products" DEFAULT VALUES'
    assert MySQLDialect().insert_statement("products", []) == "INSERT INTO `products` () VALUES ()"


def test_capabilities():
    assert MySQLDialect().capabilities.supports_update_limit
    assert not SQLiteDialect().capabilities.supports_update_limit
    assert PostgresDialect().capabilities.supports_returning
