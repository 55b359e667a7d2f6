"""
Statement statistics and N+1 detection for the query driver.

Deferred nested relation loading issues one select per related instance, so a
graph with many children shows up here as the same statement executed with
many distinct key values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Sequence

SLOW_QUERY_ENV = "ROWGRAPH_SLOW_QUERY_MS"


def resolve_slow_query_ms(*, default: int = 100, override: int | None = None) -> int:
    """Pick the slow-statement threshold: explicit override, then environment, then default."""
    if override is not None:
        return int(override)
    raw = os.getenv(SLOW_QUERY_ENV)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger("rowgraph.utils.performance").warning(
            "Ignoring non-integer %s=%r; using %sms", SLOW_QUERY_ENV, raw, default
        )
        return default


@dataclass
class StatementStat:
    sql: str
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    fingerprints: set[str] = field(default_factory=set)
    samples: List[str] = field(default_factory=list)

    def record(self, fingerprint: str, elapsed_ms: float, *, sample_limit: int) -> None:
        self.count += 1
        self.total_ms += elapsed_ms
        self.max_ms = max(self.max_ms, elapsed_ms)
        if fingerprint and fingerprint not in self.fingerprints:
            self.fingerprints.add(fingerprint)
            if len(self.samples) < sample_limit:
                self.samples.append(fingerprint)

    @property
    def average_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0


class PerformanceTracker:
    """
    Aggregates executed statements and warns once per statement shape that
    looks like an N+1 pattern.
    """

    def __init__(
        self,
        logger: logging.Logger,
        *,
        n_plus_one_threshold: int = 5,
        sample_size: int = 5,
    ) -> None:
        self.logger = logger
        self.n_plus_one_threshold = n_plus_one_threshold
        self.sample_size = sample_size
        self.stats: dict[str, StatementStat] = {}
        self._reported: set[str] = set()

    def record(self, sql: str, params: Sequence[object] | None, elapsed_ms: float) -> None:
        normalized = self._normalize_sql(sql)
        stat = self.stats.setdefault(normalized, StatementStat(sql=normalized))
        stat.record(self._fingerprint(params), elapsed_ms, sample_limit=self.sample_size)
        if self._should_report(stat):
            self._report(stat)

    def summary(self) -> List[dict[str, object]]:
        return [
            {
                "sql": stat.sql,
                "count": stat.count,
                "total_ms": stat.total_ms,
                "average_ms": stat.average_ms,
                "max_ms": stat.max_ms,
                "distinct_params": len(stat.fingerprints),
            }
            for stat in self.stats.values()
        ]

    def total_statements(self) -> int:
        return sum(stat.count for stat in self.stats.values())

    def reset(self) -> None:
        self.stats.clear()
        self._reported.clear()

    def _should_report(self, stat: StatementStat) -> bool:
        return (
            stat.count >= self.n_plus_one_threshold
            and len(stat.fingerprints) >= 2
            and stat.sql not in self._reported
        )

    def _report(self, stat: StatementStat) -> None:
        self._reported.add(stat.sql)
        self.logger.warning(
            "Potential N+1 detected for SQL '%s' (%s executions, %s distinct params)",
            self._abbreviate(stat.sql),
            stat.count,
            len(stat.fingerprints),
            extra={"sql": stat.sql, "count": stat.count, "distinct_params": len(stat.fingerprints)},
        )

    @staticmethod
    def _normalize_sql(sql: str) -> str:
        return " ".join(sql.split())

    @staticmethod
    def _fingerprint(params: Sequence[object] | None) -> str:
        if not params:
            return ""
        normalized = []
        for value in params:
            if isinstance(value, (list, tuple)):
                normalized.append(tuple(value))
            elif isinstance(value, dict):
                normalized.append(tuple(sorted(value.items())))
            else:
                normalized.append(value)
        return repr(tuple(normalized))

    @staticmethod
    def _abbreviate(sql: str, max_length: int = 80) -> str:
        return sql if len(sql) <= max_length else sql[: max_length - 3] + "..."
