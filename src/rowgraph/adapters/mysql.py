"""
MySQL database adapter implementation.
"""

from __future__ import annotations

from typing import Any

from ..dialects.mysql import MySQLDialect
from .base import AdapterConfigurationError, ConnectionConfig
from .dbapi import DBAPIAdapter


def _load_driver():
    try:
        import pymysql  # type: ignore[import-untyped]

        return pymysql
    except ImportError:
        try:
            import MySQLdb  # type: ignore[import-untyped]

            return MySQLdb
        except ImportError:
            return None


class MySQLAdapter(DBAPIAdapter):
    """
    Adapter wrapping a MySQL DB-API driver (PyMySQL or mysqlclient).
    """

    backend_label = "MySQL"
    logger_name = "adapters.mysql"
    begin_sql = "START TRANSACTION"

    def __init__(self, slow_query_ms: int | None = None) -> None:
        super().__init__(slow_query_ms)
        self.dialect = MySQLDialect()

    def _load(self) -> Any:
        return _load_driver()

    def _ssl_options(self, config: ConnectionConfig) -> dict[str, Any]:
        return config.ssl.mysql_options() if config.ssl else {}

    def _open(self, driver: Any, config: ConnectionConfig, options: dict[str, Any]) -> Any:
        if not config.dsn:
            raise AdapterConfigurationError(
                "ConnectionConfig must be built from a DSN for MySQL connections."
            )
        dsn = config.dsn
        connect_kwargs = {
            "host": dsn.host or "localhost",
            "user": dsn.username,
            "password": dsn.password,
            "database": dsn.database,
            **options,
        }
        if dsn.port:
            connect_kwargs["port"] = dsn.port
        connection = driver.connect(**connect_kwargs)
        if callable(getattr(connection, "autocommit", None)):
            connection.autocommit(config.autocommit)
        return connection

    def _is_autocommit(self, connection: Any) -> bool:
        getter = getattr(connection, "get_autocommit", None)
        if callable(getter):
            return bool(getter())
        return bool(getattr(connection, "_autocommit", False))

    def last_insert_id(self, cursor: Any, table: str, pk_column: str) -> Any:
        return cursor.lastrowid
