"""
Relation declarations and the registry resolving related entity names.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Type

from ..query.spec import INNER_JOIN, LEFT_JOIN
from .errors import InvalidStateError, ModelConfigurationError

if TYPE_CHECKING:
    from .entity import Entity


class RelationType(Enum):
    HAS_ONE = "has_one"
    MIGHT_HAVE_ONE = "might_have_one"
    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"
    MANY_TO_MANY = "many_to_many"

    @property
    def is_plural(self) -> bool:
        return self in (RelationType.HAS_MANY, RelationType.MANY_TO_MANY)

    @property
    def is_singular(self) -> bool:
        return not self.is_plural

    @property
    def join_kind(self) -> str:
        if self in (RelationType.HAS_ONE, RelationType.BELONGS_TO):
            return INNER_JOIN
        return LEFT_JOIN

    @property
    def owns_children(self) -> bool:
        """Children whose foreign attribute follows the parent's key on cascade."""
        return self in (RelationType.HAS_ONE, RelationType.MIGHT_HAVE_ONE, RelationType.HAS_MANY)


@dataclass(frozen=True)
class RelationDescriptor:
    """
    ``key_map`` is ``"<local attribute>:<foreign attribute>"``; it is split
    lazily so a malformed map only fails when a relation is actually used.
    """

    type: RelationType
    key_map: str
    link_table: Optional[str] = None

    def __post_init__(self) -> None:
        if self.type is RelationType.MANY_TO_MANY and not self.link_table:
            raise ModelConfigurationError("MANY_TO_MANY relations require a link_table.")
        if self.type is not RelationType.MANY_TO_MANY and self.link_table:
            raise ModelConfigurationError(
                f"link_table is only valid for MANY_TO_MANY relations, not {self.type.name}."
            )

    def keys(self) -> Tuple[str, str]:
        local, sep, foreign = self.key_map.partition(":")
        local, foreign = local.strip(), foreign.strip()
        if not sep or not local or not foreign or ":" in foreign:
            raise InvalidStateError(
                f"Malformed relation key map {self.key_map!r}; expected 'local:foreign'."
            )
        return local, foreign


def _target_name(target: Type | str) -> str:
    if isinstance(target, type):
        return target.__name__
    return target.split(".")[-1]


class Relation:
    """
    Class-level relation declaration.

    Reading the attribute on an instance yields the materialized relation
    value: a placeholder instance for singular relations (created on first
    access) or a list for plural ones.
    """

    relation_type: RelationType = RelationType.HAS_ONE

    def __init__(self, to: Type | str, *, key: str, link_table: Optional[str] = None) -> None:
        self.to = to
        self.descriptor = RelationDescriptor(self.relation_type, key, link_table)
        self.name: Optional[str] = None
        self.owner: Optional[Type["Entity"]] = None
        self._related: Optional[Type["Entity"]] = to if isinstance(to, type) else None

    @property
    def type(self) -> RelationType:
        return self.descriptor.type

    @property
    def target_name(self) -> str:
        return _target_name(self.to)

    @property
    def related_entity(self) -> Type["Entity"]:
        if self._related is None:
            resolved = relation_registry.resolve(
                self.to, module=self.owner.__module__ if self.owner else None
            )
            if resolved is None:
                raise ModelConfigurationError(
                    f"Relation '{self.name}' on '{self.owner.__name__ if self.owner else '?'}' "
                    f"targets unknown entity '{self.target_name}'."
                )
            self._related = resolved
        return self._related

    def contribute_to_class(self, entity: Type["Entity"], name: str) -> None:
        self.owner = entity
        self.name = name
        setattr(entity, name, self)

    def __get__(self, instance: Optional["Entity"], owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance._relation_value(self)

    def __set__(self, instance: "Entity", value: Any) -> None:
        instance._assign_relation(self, value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} -> {self.target_name} ({self.descriptor.key_map})>"


class HasOne(Relation):
    relation_type = RelationType.HAS_ONE


class MightHaveOne(Relation):
    relation_type = RelationType.MIGHT_HAVE_ONE


class BelongsTo(Relation):
    relation_type = RelationType.BELONGS_TO


class HasMany(Relation):
    relation_type = RelationType.HAS_MANY


class ManyToMany(Relation):
    relation_type = RelationType.MANY_TO_MANY

    def __init__(self, to: Type | str, *, key: str, link_table: str) -> None:
        super().__init__(to, key=key, link_table=link_table)


RELATION_CLASSES: Dict[RelationType, Type[Relation]] = {
    cls.relation_type: cls for cls in (HasOne, MightHaveOne, BelongsTo, HasMany, ManyToMany)
}


class RelationRegistry:
    """
    Explicit name -> entity class registry used to resolve relation targets
    declared by name, including forward references.

    Several entity classes may share a name across modules; a target is
    resolved to the class from the declaring entity's module when there is
    one, otherwise to the most recently registered class of that name. A
    dotted target (``"shop.models.LineItem"``) selects the module explicitly.
    """

    def __init__(self) -> None:
        self.entities: Dict[str, List[Type["Entity"]]] = {}
        self.pending: List[Relation] = []

    def register_entity(self, entity: Type["Entity"]) -> None:
        self.entities.setdefault(entity.__name__, []).append(entity)
        still_pending = []
        for relation in self.pending:
            if relation.target_name == entity.__name__ and self._module_matches(relation, entity):
                relation._related = entity
            else:
                still_pending.append(relation)
        self.pending = still_pending

    def register_relation(self, relation: Relation) -> None:
        if relation._related is not None:
            return
        for candidate in reversed(self.entities.get(relation.target_name, [])):
            if self._module_matches(relation, candidate):
                relation._related = candidate
                return
        self.pending.append(relation)

    def resolve(self, target: Type | str, *, module: Optional[str] = None) -> Optional[Type["Entity"]]:
        if isinstance(target, type):
            return target
        candidates = self.entities.get(_target_name(target), [])
        if not candidates:
            return None
        wanted = target.rpartition(".")[0] or module
        for candidate in reversed(candidates):
            if candidate.__module__ == wanted:
                return candidate
        return candidates[-1]

    def unresolved(self) -> List[Relation]:
        return [relation for relation in self.pending if relation._related is None]

    @staticmethod
    def _module_matches(relation: Relation, entity: Type["Entity"]) -> bool:
        wanted = relation.to.rpartition(".")[0] if isinstance(relation.to, str) else ""
        if not wanted and relation.owner is not None:
            wanted = relation.owner.__module__
        return not wanted or wanted == entity.__module__


relation_registry = RelationRegistry()
