"""
PostgreSQL database adapter implementation.
"""

from __future__ import annotations

from typing import Any

from ..dialects.postgres import PostgresDialect
from .base import AdapterExecutionError, ConnectionConfig
from .dbapi import DBAPIAdapter


def _load_driver():
    try:
        import psycopg

        return psycopg
    except ImportError:
        return None


class PostgresAdapter(DBAPIAdapter):
    """
    Adapter wrapping the psycopg PostgreSQL driver.

    Generated keys are read from the ``RETURNING`` row of the insert cursor.
    """

    backend_label = "PostgreSQL"
    logger_name = "adapters.postgres"

    def __init__(self, slow_query_ms: int | None = None) -> None:
        super().__init__(slow_query_ms)
        self.dialect = PostgresDialect()

    def _load(self) -> Any:
        return _load_driver()

    def _ssl_options(self, config: ConnectionConfig) -> dict[str, Any]:
        return config.ssl.postgres_options() if config.ssl else {}

    def _open(self, driver: Any, config: ConnectionConfig, options: dict[str, Any]) -> Any:
        connection = driver.connect(config.url, **options)
        connection.autocommit = bool(config.autocommit)
        return connection

    def last_insert_id(self, cursor: Any, table: str, pk_column: str) -> Any:
        row = cursor.fetchone()
        if not row:
            raise AdapterExecutionError(
                f"No RETURNING row available for {table}.{pk_column}; the insert may have been ignored."
            )
        return row[0]
