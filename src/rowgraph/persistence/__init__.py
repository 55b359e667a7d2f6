"""
Persistence engine and transaction scope.
"""

from .engine import CascadeSnapshot, PersistenceEngine
from .transaction import TransactionError, TransactionScope

__all__ = ["CascadeSnapshot", "PersistenceEngine", "TransactionError", "TransactionScope"]
