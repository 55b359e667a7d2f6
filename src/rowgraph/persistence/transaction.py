"""
Single-level transaction scope over a query driver.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from ..driver.base import QueryDriver


class TransactionError(RuntimeError):
    pass


class TransactionScope:
    """
    Begin/commit/rollback bookkeeping for one transaction on ``driver``.

    Nesting is not supported: beginning while this scope, or anything else
    on the same driver, already holds a transaction raises
    :class:`TransactionError`.
    """

    def __init__(self, driver: QueryDriver) -> None:
        self.driver = driver
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def begin(self) -> None:
        if self._active or getattr(self.driver, "in_transaction", False):
            raise TransactionError("Nested transactions are not supported.")
        self.driver.begin_transaction()
        self._active = True

    def commit(self) -> None:
        if not self._active:
            raise TransactionError("No active transaction to commit.")
        self._active = False
        self.driver.commit()

    def rollback(self) -> None:
        if not self._active:
            raise TransactionError("No active transaction to roll back.")
        self._active = False
        self.driver.rollback()

    @contextmanager
    def transaction(self) -> Generator["TransactionScope", None, None]:
        self.begin()
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        else:
            self.commit()
