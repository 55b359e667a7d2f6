"""
Error hierarchy for the entity core, loader and persistence engine.
"""

from __future__ import annotations


class ORMError(RuntimeError):
    """Base class for errors raised by the entity core."""


class ModelConfigurationError(ORMError):
    """Raised when an entity class or relation is declared inconsistently."""


class InvalidStateError(ORMError):
    """Raised when an operation is attempted on an entity in the wrong state."""


class CascadeError(ORMError):
    """
    Raised when a cascading save or delete fails part-way.

    ``cause`` is the original exception; ``rolled_back`` tells whether the
    surrounding transaction was rolled back.
    """

    def __init__(self, message: str, *, cause: BaseException, rolled_back: bool) -> None:
        super().__init__(message)
        self.cause = cause
        self.rolled_back = rolled_back
