"""
Statement building blocks shared by the composer, the conditions translator
and the query driver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

INNER_JOIN = "INNER"
LEFT_JOIN = "LEFT"


@dataclass(frozen=True)
class ColumnRef:
    """A column qualified by its store table."""

    table: str
    column: str

    def __str__(self) -> str:
        return f"{self.table}.{self.column}"


@dataclass(frozen=True)
class FieldRef(ColumnRef):
    """
    A selected column together with the entity attribute it populates.

    ``prefix`` is the alias prefix of the owning entity type; rows are grouped
    by prefix during reconstruction.
    """

    entity: type = object
    attribute: str = ""
    prefix: str = ""


@dataclass(frozen=True)
class JoinClause:
    """``<kind> JOIN <table> ON <left> = <right>``."""

    kind: str
    table: str
    left: ColumnRef
    right: ColumnRef


@dataclass(frozen=True)
class Condition:
    """One ``column operator value`` predicate rendered with a bound parameter."""

    column: ColumnRef
    operator: str
    value: Any


@dataclass(frozen=True)
class OrderTerm:
    column: ColumnRef
    descending: bool = False


Conditions = Union[str, Sequence[Condition], None]
OrderBy = Union[Sequence[Union[OrderTerm, str]], None]


@dataclass
class QuerySpec:
    """
    Everything the driver needs for one select.

    ``tables`` maps each store table to the join that brings it in; the
    primary table maps to ``None`` and comes first. At most one fan-out
    (plural) relation is joined per spec.
    """

    tables: Dict[str, Optional[JoinClause]]
    fields: Dict[str, FieldRef] = field(default_factory=dict)
    conditions: Conditions = None
    order: OrderBy = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    has_fan_out: bool = False

    @property
    def primary_table(self) -> str:
        return next(iter(self.tables))

    def joins(self) -> List[JoinClause]:
        return [join for join in self.tables.values() if join is not None]
