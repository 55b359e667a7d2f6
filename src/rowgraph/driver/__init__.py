"""
Query driver interface and its SQL implementation.
"""

from .base import CursorStateError, QueryDriver, QueryError
from .sql import SQLQueryDriver

__all__ = ["CursorStateError", "QueryDriver", "QueryError", "SQLQueryDriver"]
