"""
Dialect strategy interfaces describing how statements are rendered per backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(frozen=True)
class DialectCapabilities:
    """
    Feature flags describing backend capabilities.
    """

    supports_returning: bool = False
    supports_update_limit: bool = False
    supports_schema_namespaces: bool = False


class Dialect(Protocol):
    """
    Strategy interface consumed by the SQL query driver and the adapters.
    """

    @property
    def name(self) -> str: ...

    @property
    def param_style(self) -> str: ...

    @property
    def capabilities(self) -> DialectCapabilities: ...

    def quote_identifier(self, identifier: str) -> str: ...

    def format_table(self, table_name: str) -> str: ...

    def limit_clause(self, limit: int | None, offset: int | None) -> str: ...

    def parameter_placeholder(self, position: int | None = None) -> str: ...

    def insert_statement(
        self,
        table_name: str,
        columns: Sequence[str],
        *,
        ignore_conflicts: bool = False,
        returning: str | None = None,
    ) -> str: ...


class BaseDialect:
    """
    Rendering shared by the bundled dialects; subclasses set the class attributes
    and override the conflict-handling pieces of ``INSERT``.
    """

    name: str = ""
    param_style: str = "qmark"
    capabilities: DialectCapabilities = DialectCapabilities()
    identifier_quote: str = '"'
    empty_insert_values: str = "DEFAULT VALUES"

    def quote_identifier(self, identifier: str) -> str:
        quote = self.identifier_quote
        return f"{quote}{identifier.replace(quote, quote * 2)}{quote}"

    def format_table(self, table_name: str) -> str:
        if self.capabilities.supports_schema_namespaces and "." in table_name:
            schema, table = table_name.split(".", 1)
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table_name)

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        parts: list[str] = []
        if limit is not None:
            parts.append(f"LIMIT {int(limit)}")
        if offset is not None:
            parts.append(f"OFFSET {int(offset)}")
        return " ".join(parts)

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "?"

    def insert_statement(
        self,
        table_name: str,
        columns: Sequence[str],
        *,
        ignore_conflicts: bool = False,
        returning: str | None = None,
    ) -> str:
        table = self.format_table(table_name)
        if columns:
            column_sql = ", ".join(self.quote_identifier(column) for column in columns)
            placeholders = ", ".join(self.parameter_placeholder(i) for i in range(len(columns)))
            body = f"({column_sql}) VALUES ({placeholders})"
        else:
            body = self.empty_insert_values
        sql = f"{self.insert_keyword(ignore_conflicts)} INTO {table} {body}"
        suffix = self.conflict_suffix(ignore_conflicts)
        if suffix:
            sql = f"{sql} {suffix}"
        if returning and self.capabilities.supports_returning:
            sql = f"{sql} RETURNING {self.quote_identifier(returning)}"
        return sql

    def insert_keyword(self, ignore_conflicts: bool) -> str:
        return "INSERT"

    def conflict_suffix(self, ignore_conflicts: bool) -> str:
        return ""
