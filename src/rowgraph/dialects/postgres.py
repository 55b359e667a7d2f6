"""
PostgreSQL dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import BaseDialect, DialectCapabilities


class PostgresDialect(BaseDialect):
    """
    PostgreSQL dialect: percent placeholders, ``ON CONFLICT DO NOTHING`` and
    ``RETURNING`` for generated keys.
    """

    name: Final[str] = "postgresql"
    param_style: Final[str] = "pyformat"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_returning=True,
        supports_update_limit=False,
        supports_schema_namespaces=True,
    )

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "%s"

    def conflict_suffix(self, ignore_conflicts: bool) -> str:
        return "ON CONFLICT DO NOTHING" if ignore_conflicts else ""
