"""
rowgraph public package initialization.

Entities load and persist whole relation graphs through a query driver;
the core has to be imported before the query and persistence layers.
"""

from .core import (  # noqa: F401
    BelongsTo,
    BooleanField,
    CascadeError,
    Entity,
    FloatField,
    HasMany,
    HasOne,
    IntegerField,
    InvalidStateError,
    ManyToMany,
    MightHaveOne,
    ModelConfigurationError,
    ORMError,
    RelationType,
    StringField,
)
from .driver import CursorStateError, QueryError, SQLQueryDriver  # noqa: F401
from .hooks import hooks  # noqa: F401
from .persistence import TransactionError, TransactionScope  # noqa: F401
from .query import LoadMode  # noqa: F401
from .validation import ValidationError  # noqa: F401

__all__ = [
    "BelongsTo",
    "BooleanField",
    "CascadeError",
    "CursorStateError",
    "Entity",
    "FloatField",
    "HasMany",
    "HasOne",
    "IntegerField",
    "InvalidStateError",
    "LoadMode",
    "ManyToMany",
    "MightHaveOne",
    "ModelConfigurationError",
    "ORMError",
    "QueryError",
    "RelationType",
    "SQLQueryDriver",
    "StringField",
    "TransactionError",
    "TransactionScope",
    "ValidationError",
    "hooks",
]
