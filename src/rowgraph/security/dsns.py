"""DSN parsing with credential-safe rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse

from .redaction import REDACTED_VALUE, redact_query_params


@dataclass
class DSNConfig:
    driver: str
    username: Optional[str] = None
    password: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    path: str = ""
    query: dict[str, str] = field(default_factory=dict)

    def redacted(self) -> str:
        """
        Render the DSN with the password and sensitive query values masked.
        """
        credentials = ""
        if self.username:
            credentials = self.username
            if self.password:
                credentials += f":{REDACTED_VALUE}"
            credentials += "@"
        location = self.host or ""
        if self.port:
            location += f":{self.port}"

        rendered = f"{self.driver}://{credentials}{location}{self.path}"
        if self.query:
            rendered += "?" + urlencode(redact_query_params(self.query), safe="*/")
        return rendered


def parse_dsn(dsn: str) -> DSNConfig:
    parsed = urlparse(dsn)
    return DSNConfig(
        driver=parsed.scheme,
        username=parsed.username,
        password=parsed.password,
        host=parsed.hostname,
        port=parsed.port,
        database=parsed.path.lstrip("/") or None,
        path=parsed.path or "",
        query={key: values[0] for key, values in parse_qs(parsed.query).items()},
    )
