"""
SQLite dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import BaseDialect, DialectCapabilities


class SQLiteDialect(BaseDialect):
    """
    SQLite dialect using qmark parameters and ``INSERT OR IGNORE``.
    """

    name: Final[str] = "sqlite"
    param_style: Final[str] = "qmark"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_returning=False,
        supports_update_limit=False,
        supports_schema_namespaces=False,
    )

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        if offset is not None and limit is None:
            return f"LIMIT -1 OFFSET {int(offset)}"
        return super().limit_clause(limit, offset)

    def insert_keyword(self, ignore_conflicts: bool) -> str:
        return "INSERT OR IGNORE" if ignore_conflicts else "INSERT"
