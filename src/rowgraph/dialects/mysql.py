"""
MySQL dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import BaseDialect, DialectCapabilities


class MySQLDialect(BaseDialect):
    """
    MySQL dialect using percent placeholders, backtick quoting and ``INSERT IGNORE``.
    """

    name: Final[str] = "mysql"
    param_style: Final[str] = "pyformat"
    identifier_quote = "`"
    empty_insert_values = "() VALUES ()"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_returning=False,
        supports_update_limit=True,
        supports_schema_namespaces=True,
    )

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        if offset is not None and limit is None:
            return f"LIMIT 18446744073709551615 OFFSET {int(offset)}"
        return super().limit_clause(limit, offset)

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "%s"

    def insert_keyword(self, ignore_conflicts: bool) -> str:
        return "INSERT IGNORE" if ignore_conflicts else "INSERT"
