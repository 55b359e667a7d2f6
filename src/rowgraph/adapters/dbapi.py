"""
Shared plumbing for network DB-API adapters (MySQL, PostgreSQL).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from ..security.redaction import redact_params
from ..utils import get_logger, time_call
from ..utils.performance import resolve_slow_query_ms
from .base import (
    AdapterConfigurationError,
    AdapterError,
    AdapterConnectionError,
    AdapterExecutionError,
    ConnectionConfig,
    DatabaseAdapter,
)


@dataclass
class DBAPIConnectionState:
    connection: Any
    config: ConnectionConfig
    driver: Any


def count_placeholders(sql: str) -> int:
    """Count ``%s`` markers, skipping escaped ``%%``."""
    count = 0
    idx = 0
    while idx < len(sql) - 1:
        pair = sql[idx : idx + 2]
        if pair == "%s":
            count += 1
            idx += 2
        elif pair == "%%":
            idx += 2
        else:
            idx += 1
    return count


class DBAPIAdapter(DatabaseAdapter):
    """
    Base for adapters whose driver module is loaded lazily and which use
    ``%s`` placeholders. Subclasses provide ``backend_label``, ``begin_sql``,
    ``_load()`` and ``_open()``.
    """

    backend_label = ""
    logger_name = ""
    begin_sql = "BEGIN"

    def __init__(self, slow_query_ms: int | None = None) -> None:
        self._state: DBAPIConnectionState | None = None
        self.logger = get_logger(self.logger_name)
        self.slow_query_ms = resolve_slow_query_ms(default=100, override=slow_query_ms)

    def _load(self) -> Any:
        raise NotImplementedError

    def _open(self, driver: Any, config: ConnectionConfig, options: dict[str, Any]) -> Any:
        raise NotImplementedError

    def _ssl_options(self, config: ConnectionConfig) -> dict[str, Any]:
        return {}

    def _is_autocommit(self, connection: Any) -> bool:
        return bool(getattr(connection, "autocommit", False))

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def connect(self, config: ConnectionConfig) -> Any:
        driver = self._load()
        if driver is None:
            raise AdapterConfigurationError(
                f"{type(self).__name__} requires a {self.backend_label} driver to be installed."
            )

        options = dict(config.options or {})
        for key, value in self._ssl_options(config).items():
            options.setdefault(key, value)
        if config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(config.timeout)

        self.logger.info(
            "Connecting to %s %s (autocommit=%s)",
            self.backend_label,
            config.descriptive_label(),
            config.autocommit,
        )
        try:
            connection = self._open(driver, config, options)
        except AdapterError:
            raise
        except Exception as exc:
            raise AdapterConnectionError(f"Failed to connect to {self.backend_label}.") from exc
        if config.isolation_level:
            setattr(connection, "isolation_level", config.isolation_level)

        self._state = DBAPIConnectionState(connection, config, driver)
        return connection

    def close(self) -> None:
        if self._state:
            try:
                self._state.connection.close()
            finally:
                self._state = None

    def is_connected(self) -> bool:
        return self._state is not None and not getattr(self._state.connection, "closed", False)

    def ensure_connected(self) -> Any:
        if not self._state:
            raise AdapterConnectionError(f"{type(self).__name__} is not connected.")
        connection = self._state.connection
        if getattr(connection, "closed", False):
            self.logger.warning("%s connection closed; reconnecting.", self.backend_label)
            connection = self.connect(self._state.config)
        return connection

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        cursor = self.ensure_connected().cursor()
        params = tuple(params or ())
        self._validate_params(sql, params)
        with time_call(
            f"{self.dialect.name}.execute",
            self.logger,
            sql=sql,
            params=redact_params(params),
            threshold_ms=self.slow_query_ms,
        ):
            cursor.execute(sql, params)
        return cursor

    def _validate_params(self, sql: str, params: Sequence[Any]) -> None:
        expected = count_placeholders(sql)
        if expected == 0 and params:
            raise AdapterExecutionError("Parameters provided but SQL statement has no placeholders.")
        if expected and expected != len(params):
            raise AdapterExecutionError(
                f"Parameter count mismatch: expected {expected}, received {len(params)}."
            )

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def begin(self) -> None:
        connection = self.ensure_connected()
        if self._is_autocommit(connection):
            return
        connection.cursor().execute(self.begin_sql)

    def commit(self) -> None:
        self.ensure_connected().commit()

    def rollback(self) -> None:
        self.ensure_connected().rollback()

