"""
Query composition, condition translation and graph reconstruction.
"""

from .composer import QueryComposer
from .conditions import ConditionsTranslator, parse_expression
from .loader import EntityLoader
from .reconstructor import LoadMode, ReconstructionIndex, TupleReconstructor
from .spec import ColumnRef, Condition, FieldRef, JoinClause, OrderTerm, QuerySpec

__all__ = [
    "ColumnRef",
    "Condition",
    "ConditionsTranslator",
    "EntityLoader",
    "FieldRef",
    "JoinClause",
    "LoadMode",
    "OrderTerm",
    "QueryComposer",
    "QuerySpec",
    "ReconstructionIndex",
    "TupleReconstructor",
    "parse_expression",
]
