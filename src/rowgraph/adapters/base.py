"""
Adapter protocol, connection configuration and adapter error hierarchy.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Callable, Protocol, Sequence

from ..dialects.base import Dialect
from ..security.dsns import DSNConfig, parse_dsn


class AdapterError(RuntimeError):
    """Base error for adapter-related failures."""


class AdapterConfigurationError(AdapterError):
    """Raised when configuration or required dependencies are invalid."""


class AdapterConnectionError(AdapterError):
    """Raised when establishing or using a connection fails."""


class AdapterExecutionError(AdapterError):
    """Raised when statement execution or parameter validation fails."""


class AdapterTransactionError(AdapterError):
    """Raised when transaction operations fail."""


@dataclass
class SSLConfig:
    mode: str | None = None
    rootcert: str | None = None
    cert: str | None = None
    key: str | None = None
    ca: str | None = None
    check_hostname: bool | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))

    def postgres_options(self) -> dict[str, Any]:
        pairs = {"sslmode": self.mode, "sslrootcert": self.rootcert, "sslcert": self.cert, "sslkey": self.key}
        return {key: value for key, value in pairs.items() if value}

    def mysql_options(self) -> dict[str, Any]:
        ssl = {key: value for key, value in {"ca": self.ca, "cert": self.cert, "key": self.key}.items() if value}
        if self.check_hostname is not None:
            ssl["check_hostname"] = self.check_hostname
        return {"ssl": ssl} if ssl else {}


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: str, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise AdapterConfigurationError(f"Invalid boolean value for '{key}': {value!r}")


def _parse_number(cast: Callable[[str], Any], label: str) -> Callable[[str, str], Any]:
    def parse(value: str, key: str) -> Any:
        try:
            return cast(value)
        except ValueError as exc:
            raise AdapterConfigurationError(f"Invalid {label} value for '{key}': {value!r}") from exc

    return parse


_parse_float = _parse_number(float, "float")
_parse_int = _parse_number(int, "integer")

# DSN query key -> (SSLConfig attribute, parser)
_SSL_KEYS: dict[str, tuple[str, Callable[[str, str], Any] | None]] = {
    "sslmode": ("mode", None),
    "sslrootcert": ("rootcert", None),
    "sslcert": ("cert", None),
    "sslkey": ("key", None),
    "ssl_ca": ("ca", None),
    "ssl_cert": ("cert", None),
    "ssl_key": ("key", None),
    "ssl_check_hostname": ("check_hostname", _parse_bool),
}


def _extract_ssl(query: dict[str, str]) -> SSLConfig | None:
    ssl = SSLConfig()
    for key, (attribute, parser) in _SSL_KEYS.items():
        if key in query:
            raw = query.pop(key)
            setattr(ssl, attribute, parser(raw, key) if parser else raw)
    return None if ssl.is_empty() else ssl


@dataclass
class ConnectionConfig:
    """
    Normalized connection configuration for adapters.
    """

    url: str
    autocommit: bool = False
    isolation_level: str | None = None
    timeout: float | None = None
    options: dict[str, Any] | None = None
    ssl: SSLConfig | None = None
    dsn: DSNConfig | None = None
    source: str | None = None

    @classmethod
    def from_dsn(cls, dsn: str, **overrides: Any) -> "ConnectionConfig":
        """
        Parse ``dsn``; recognised query keys become typed settings and the
        remaining keys are passed to the driver as connect options. Keyword
        arguments win over values found in the DSN.
        """
        parsed = parse_dsn(dsn)
        query = dict(parsed.query)

        settings: dict[str, Any] = {}
        if "autocommit" in query:
            settings["autocommit"] = _parse_bool(query.pop("autocommit"), "autocommit")
        if "timeout" in query:
            settings["timeout"] = _parse_float(query.pop("timeout"), "timeout")
        if "isolation_level" in query:
            settings["isolation_level"] = query.pop("isolation_level")
        ssl = _extract_ssl(query)
        if ssl is not None:
            settings["ssl"] = ssl

        options = {
            key: _parse_int(value, key) if key == "connect_timeout" else value
            for key, value in query.items()
        }
        options.update(overrides.pop("options", None) or {})
        settings.update(overrides)
        return cls(url=dsn, dsn=parsed, options=options or None, **settings)

    @classmethod
    def from_env(cls, env_var: str, **overrides: Any) -> "ConnectionConfig":
        """
        Build a config from an environment variable holding a DSN.
        """
        value = os.getenv(env_var)
        if not value:
            raise AdapterConfigurationError(f"Environment variable {env_var} is not set")
        return cls.from_dsn(value, source=env_var, **overrides)

    def redacted_dsn(self) -> str:
        return self.dsn.redacted() if self.dsn else self.url

    def descriptive_label(self) -> str:
        redacted = self.redacted_dsn()
        return f"{self.source} ({redacted})" if self.source else redacted


class DatabaseAdapter(Protocol):
    """
    Connection-level operations the SQL query driver relies on.
    """

    dialect: Dialect
    slow_query_ms: int

    def connect(self, config: ConnectionConfig) -> Any:
        """
        Establish a connection handle using the supplied configuration.
        """

    def close(self) -> None:
        """
        Close underlying resources. Implementations should be idempotent.
        """

    def is_connected(self) -> bool:
        """
        Report whether a usable connection is currently held.
        """

    def ensure_connected(self) -> Any:
        """
        Return the live connection, reconnecting where the backend allows it.
        """

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        """
        Execute a single statement returning a cursor-like object.
        """

    def begin(self) -> None:
        """
        Start a transaction.
        """

    def commit(self) -> None:
        """
        Commit the current transaction.
        """

    def rollback(self) -> None:
        """
        Roll back the current transaction.
        """

    def last_insert_id(self, cursor: Any, table: str, pk_column: str) -> Any:
        """
        Retrieve the key generated by the insert executed on ``cursor``.
        """
