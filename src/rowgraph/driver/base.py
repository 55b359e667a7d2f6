"""
The query driver interface the entity core talks to.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, Sequence

from ..adapters.base import AdapterExecutionError
from ..query.spec import Conditions, FieldRef, JoinClause, OrderBy


class QueryError(AdapterExecutionError):
    """A statement failed; carries the statement text and its parameters."""

    def __init__(self, message: str, *, statement: str, params: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.statement = statement
        self.params = tuple(params)


class CursorStateError(AdapterExecutionError):
    """A select was issued while rows of the previous select were still unread."""


class QueryDriver(Protocol):
    """
    Statement-level operations used by the loader and the persistence engine.

    A driver holds at most one open result: ``execute_select`` buffers the
    rows, ``fetch_next_row`` hands them out one by one and returns ``None``
    once they are exhausted, which closes the result.
    """

    @property
    def in_transaction(self) -> bool: ...

    def execute_select(
        self,
        tables: Mapping[str, Optional[JoinClause]],
        fields: Mapping[str, FieldRef],
        conditions: Conditions = None,
        order: OrderBy = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> int: ...

    def row_count(self) -> int: ...

    def fetch_next_row(self) -> Optional[Dict[str, Any]]: ...

    def free_result(self) -> None: ...

    def execute_insert(
        self, table: str, fields: Mapping[str, Any], *, returning: Optional[str] = None
    ) -> int: ...

    def execute_upsert_ignore(
        self, table: str, fields: Mapping[str, Any], *, returning: Optional[str] = None
    ) -> int: ...

    def execute_update(
        self,
        table: str,
        fields: Mapping[str, Any],
        conditions: Conditions = None,
        limit: Optional[int] = None,
    ) -> int: ...

    def execute_delete(self, table: str, conditions: Conditions = None, limit: Optional[int] = None) -> int: ...

    def execute_count(self, table: str, column: Optional[str] = None, conditions: Conditions = None) -> int: ...

    def last_generated_key(self, table: str, column: str) -> Any: ...

    def begin_transaction(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
