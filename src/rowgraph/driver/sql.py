"""
SQL implementation of the query driver on top of a database adapter.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Mapping, Optional, Sequence, Tuple

from ..adapters.base import AdapterTransactionError, ConnectionConfig, DatabaseAdapter
from ..query.spec import ColumnRef, Condition, Conditions, FieldRef, JoinClause, OrderBy, OrderTerm
from ..security.redaction import redact_params
from ..utils import get_logger, time_call
from ..utils.performance import PerformanceTracker
from .base import CursorStateError, QueryDriver, QueryError

_NULL_EQUAL = {"=", "IS"}
_NULL_NOT_EQUAL = {"!=", "<>", "IS NOT"}


def _rows_to_dicts(cursor: Any) -> List[Dict[str, Any]]:
    rows = cursor.fetchall()
    if not rows:
        return []
    first = rows[0]
    if isinstance(first, dict):
        return [dict(row) for row in rows]
    if hasattr(first, "keys"):
        return [{key: row[key] for key in row.keys()} for row in rows]
    names = [column[0] for column in cursor.description or ()]
    return [dict(zip(names, row)) for row in rows]


class SQLQueryDriver(QueryDriver):
    """
    Renders driver calls as SQL for the adapter's dialect.

    Select results are buffered client side, which makes ``row_count`` known
    before the first fetch; the result counts as open until every row has been
    fetched or :meth:`free_result` is called.
    """

    def __init__(self, adapter: DatabaseAdapter, *, tracker: PerformanceTracker | None = None) -> None:
        self.adapter = adapter
        self.dialect = adapter.dialect
        self.tracker = tracker
        self.logger = get_logger("driver.sql")
        self._rows: Optional[Deque[Dict[str, Any]]] = None
        self._row_count = 0
        self._last_cursor: Any = None
        self._in_transaction = False

    @classmethod
    def connect(
        cls,
        adapter: DatabaseAdapter,
        config: ConnectionConfig | str,
        *,
        tracker: PerformanceTracker | None = None,
    ) -> "SQLQueryDriver":
        """Connect ``adapter`` (a config or a DSN string) and wrap it."""
        if isinstance(config, str):
            config = ConnectionConfig.from_dsn(config)
        adapter.connect(config)
        return cls(adapter, tracker=tracker)

    def close(self) -> None:
        self.free_result()
        self.adapter.close()

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    # ------------------------------------------------------------------ #
    # Selects
    # ------------------------------------------------------------------ #
    def execute_select(
        self,
        tables: Mapping[str, Optional[JoinClause]],
        fields: Mapping[str, FieldRef],
        conditions: Conditions = None,
        order: OrderBy = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> int:
        if self._rows is not None:
            raise CursorStateError(
                "A previous result is still open; fetch all rows or free it before selecting again."
            )
        sql, params = self.render_select(tables, fields, conditions, order, limit, offset)
        cursor = self._run(sql, params)
        rows = _rows_to_dicts(cursor)
        self._row_count = len(rows)
        self._rows = deque(rows) if rows else None
        return self._row_count

    def row_count(self) -> int:
        return self._row_count

    def fetch_next_row(self) -> Optional[Dict[str, Any]]:
        if not self._rows:
            self._rows = None
            return None
        row = self._rows.popleft()
        if not self._rows:
            self._rows = None
        return row

    def free_result(self) -> None:
        self._rows = None

    @property
    def has_open_result(self) -> bool:
        return self._rows is not None

    def execute_count(self, table: str, column: Optional[str] = None, conditions: Conditions = None) -> int:
        target = self._column(ColumnRef(table, column)) if column else "*"
        where, params = self.render_where(conditions)
        sql = self._join(f"SELECT COUNT({target}) AS {self.dialect.quote_identifier('total')}",
                         f"FROM {self.dialect.format_table(table)}", where)
        rows = _rows_to_dicts(self._run(sql, params))
        return int(rows[0]["total"]) if rows else 0

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    def execute_insert(self, table: str, fields: Mapping[str, Any], *, returning: Optional[str] = None) -> int:
        return self._insert(table, fields, ignore_conflicts=False, returning=returning)

    def execute_upsert_ignore(
        self, table: str, fields: Mapping[str, Any], *, returning: Optional[str] = None
    ) -> int:
        return self._insert(table, fields, ignore_conflicts=True, returning=returning)

    def execute_update(
        self,
        table: str,
        fields: Mapping[str, Any],
        conditions: Conditions = None,
        limit: Optional[int] = None,
    ) -> int:
        if not fields:
            return 0
        placeholder = self.dialect.parameter_placeholder()
        assignments = ", ".join(f"{self.dialect.quote_identifier(column)} = {placeholder}" for column in fields)
        where, where_params = self.render_where(conditions)
        sql = self._join(
            f"UPDATE {self.dialect.format_table(table)} SET {assignments}", where, self._write_limit(limit)
        )
        cursor = self._run(sql, [*fields.values(), *where_params])
        return cursor.rowcount

    def execute_delete(self, table: str, conditions: Conditions = None, limit: Optional[int] = None) -> int:
        where, params = self.render_where(conditions)
        sql = self._join(f"DELETE FROM {self.dialect.format_table(table)}", where, self._write_limit(limit))
        cursor = self._run(sql, params)
        return cursor.rowcount

    def last_generated_key(self, table: str, column: str) -> Any:
        if self._last_cursor is None:
            raise QueryError("No insert has been executed on this driver.", statement="")
        return self.adapter.last_insert_id(self._last_cursor, table, column)

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        """Run a raw statement (schema setup, maintenance) with error wrapping."""
        return self._run(sql, list(params or ()))

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def begin_transaction(self) -> None:
        self._transaction_call("begin", self.adapter.begin)
        self._in_transaction = True

    def commit(self) -> None:
        try:
            self._transaction_call("commit", self.adapter.commit)
        finally:
            self._in_transaction = False

    def rollback(self) -> None:
        try:
            self._transaction_call("rollback", self.adapter.rollback)
        finally:
            self._in_transaction = False

    def _transaction_call(self, label: str, call) -> None:
        self.logger.debug("Transaction %s", label)
        try:
            call()
        except Exception as exc:
            raise AdapterTransactionError(f"Transaction {label} failed: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Rendering
    # ------------------------------------------------------------------ #
    def render_select(
        self,
        tables: Mapping[str, Optional[JoinClause]],
        fields: Mapping[str, FieldRef],
        conditions: Conditions = None,
        order: OrderBy = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Tuple[str, List[Any]]:
        quote = self.dialect.quote_identifier
        columns = ", ".join(f"{self._column(ref)} AS {quote(alias)}" for alias, ref in fields.items())
        sources = []
        for table, join in tables.items():
            if join is None:
                sources.insert(0, self.dialect.format_table(table))
            else:
                sources.append(
                    f"{join.kind} JOIN {self.dialect.format_table(table)} "
                    f"ON {self._column(join.left)} = {self._column(join.right)}"
                )
        where, params = self.render_where(conditions)
        sql = self._join(
            f"SELECT {columns or '*'}",
            "FROM " + " ".join(sources),
            where,
            self.render_order(order),
            self.dialect.limit_clause(limit, offset),
        )
        return sql, params

    def render_where(self, conditions: Conditions) -> Tuple[str, List[Any]]:
        if conditions is None:
            return "", []
        if isinstance(conditions, str):
            clause = conditions.strip()
            if not clause:
                return "", []
            if clause[:6].upper() != "WHERE ":
                clause = f"WHERE {clause}"
            return clause, []
        parts: List[str] = []
        params: List[Any] = []
        for condition in conditions:
            sql, values = self._render_condition(condition)
            parts.append(sql)
            params.extend(values)
        if not parts:
            return "", []
        return "WHERE " + " AND ".join(parts), params

    def render_order(self, order: OrderBy) -> str:
        if not order:
            return ""
        terms = []
        for item in order:
            if isinstance(item, OrderTerm):
                terms.append(f"{self._column(item.column)} {'DESC' if item.descending else 'ASC'}")
            else:
                terms.append(str(item))
        return "ORDER BY " + ", ".join(terms)

    def _render_condition(self, condition: Condition) -> Tuple[str, List[Any]]:
        column = self._column(condition.column)
        operator = condition.operator
        placeholder = self.dialect.parameter_placeholder()
        value = condition.value
        if value is None:
            if operator in _NULL_EQUAL:
                return f"{column} IS NULL", []
            if operator in _NULL_NOT_EQUAL:
                return f"{column} IS NOT NULL", []
            raise ValueError(f"Cannot compare {condition.column} to NULL with '{operator}'")
        if operator in ("IN", "NOT IN"):
            values = list(value) if isinstance(value, (list, tuple, set, frozenset)) else [value]
            if not values:
                return ("1 = 0" if operator == "IN" else "1 = 1"), []
            return f"{column} {operator} ({', '.join(placeholder for _ in values)})", values
        return f"{column} {operator} {placeholder}", [value]

    def _column(self, ref: ColumnRef) -> str:
        return f"{self.dialect.format_table(ref.table)}.{self.dialect.quote_identifier(ref.column)}"

    def _write_limit(self, limit: Optional[int]) -> str:
        if limit is None or not self.dialect.capabilities.supports_update_limit:
            return ""
        return self.dialect.limit_clause(limit, None)

    @staticmethod
    def _join(*parts: str) -> str:
        return " ".join(part for part in parts if part)

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    def _insert(
        self, table: str, fields: Mapping[str, Any], *, ignore_conflicts: bool, returning: Optional[str]
    ) -> int:
        sql = self.dialect.insert_statement(
            table, list(fields), ignore_conflicts=ignore_conflicts, returning=returning
        )
        cursor = self._run(sql, list(fields.values()))
        self._last_cursor = cursor
        return cursor.rowcount

    def _run(self, sql: str, params: List[Any]) -> Any:
        redacted = redact_params(params)
        self.logger.debug("SQL %s", sql, extra={"sql": sql, "params": redacted})
        try:
            with time_call(
                "driver.execute",
                self.logger,
                sql=sql,
                params=redacted,
                threshold_ms=getattr(self.adapter, "slow_query_ms", 100),
            ) as timer:
                cursor = self.adapter.execute(sql, params)
        except Exception as exc:
            self.logger.error("Statement failed: %s", sql, extra={"sql": sql, "params": redacted})
            raise QueryError(f"Statement failed: {exc}", statement=sql, params=params) from exc
        if self.tracker is not None:
            self.tracker.record(sql, params, timer.elapsed_ms)
        return cursor
