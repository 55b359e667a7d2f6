"""
Rebuilding entity graphs from the flat rows produced by composed selects.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set, Tuple

from ..utils import get_logger
from .spec import QuerySpec

if TYPE_CHECKING:
    from ..core.entity import Entity
    from ..core.relations import Relation

logger = get_logger("query.reconstructor")

VisitedKeys = Set[Tuple[type, Any]]


class LoadMode(Enum):
    THIS = "this"
    NEW = "new"


class ReconstructionIndex:
    """
    Instances materialized during one drain, keyed by (entity type, primary key).
    """

    def __init__(self) -> None:
        self._store: Dict[Tuple[type, Any], "Entity"] = {}

    def add(self, instance: "Entity", key: Any) -> None:
        if key is None:
            return
        self._store[(type(instance), key)] = instance

    def get(self, entity_type: type, key: Any) -> Optional["Entity"]:
        if key is None:
            return None
        return self._store.get((entity_type, key))


class TupleReconstructor:
    """
    Drains a queue of specs through the owner's reader driver.

    ``LoadMode.THIS`` merges every row into the owner itself; ``LoadMode.NEW``
    builds fresh owner-type instances, one per distinct primary key, and
    collects them in ``results``. Relation instances that have relations of
    their own are queued and loaded only after the last row of the last spec
    has been consumed, so the driver never has two results open.
    """

    def __init__(self, owner: "Entity", mode: LoadMode, *, visited: Optional[VisitedKeys] = None) -> None:
        self.owner = owner
        self.mode = mode
        self.driver = owner.reader
        self.index = ReconstructionIndex()
        self.results: List["Entity"] = []
        self.materialized: List["Entity"] = []
        self.waiting: List["Entity"] = []
        self.visited: VisitedKeys = visited if visited is not None else set()
        self._tracked: Set[int] = set()
        self._queued: Set[int] = set()
        self._children_seen: Set[Tuple[int, str, Any]] = set()

    def drain(self, queue: List[QuerySpec]) -> bool:
        """Return False as soon as a spec yields no rows."""
        if self.mode is LoadMode.THIS:
            self._reset_relations(self.owner)
        for spec in queue:
            self.driver.execute_select(
                spec.tables, spec.fields, spec.conditions, spec.order, spec.limit, spec.offset
            )
            if self.driver.row_count() == 0:
                logger.debug("No rows for %s; nothing loaded", spec.primary_table)
                return False
            try:
                row = self.driver.fetch_next_row()
                while row is not None:
                    self._merge_row(spec, row)
                    row = self.driver.fetch_next_row()
            finally:
                self.driver.free_result()
        self._load_waiting()
        return True

    # ------------------------------------------------------------------ #
    def _merge_row(self, spec: QuerySpec, row: Dict[str, Any]) -> None:
        grouped: Dict[str, Dict[str, Any]] = {}
        for alias, value in row.items():
            ref = spec.fields.get(alias)
            if ref is not None:
                grouped.setdefault(ref.prefix, {})[ref.attribute] = value

        own = grouped.get(self.owner._meta.alias, {})
        if self.mode is LoadMode.THIS:
            parent = self.owner
            parent._hydrate(own)
        else:
            parent = self._parent_for(own)

        for relation in parent._meta.relations.values():
            data = grouped.get(relation.related_entity._meta.alias)
            if data is not None:
                self._attach(parent, relation, data)

    def _parent_for(self, values: Dict[str, Any]) -> "Entity":
        owner_type = type(self.owner)
        pk = owner_type._meta.primary_key
        key = values.get(pk) if pk else None
        existing = self.index.get(owner_type, key)
        if existing is not None:
            return existing
        parent = self.owner._spawn(owner_type, same_store=True)
        parent._hydrate(values)
        self.index.add(parent, key)
        self.results.append(parent)
        return parent

    def _attach(self, parent: "Entity", relation: "Relation", data: Dict[str, Any]) -> None:
        if all(value is None for value in data.values()):
            return
        related = relation.related_entity
        if relation.type.is_singular:
            child = parent._relation_value(relation)
            child._hydrate(data)
        else:
            pk = related._meta.primary_key
            key = data.get(pk) if pk else None
            marker = (id(parent), relation.name or "", key)
            if key is not None and marker in self._children_seen:
                return
            self._children_seen.add(marker)
            child = parent._spawn(related)
            child._hydrate(data)
            parent._relation_value(relation).append(child)

        if relation.descriptor.link_table is None:
            child._link_to_parent(parent, relation)
        if id(child) not in self._tracked:
            self._tracked.add(id(child))
            self.materialized.append(child)
        if parent.nested_relations_enabled and related._meta.relations and id(child) not in self._queued:
            self._queued.add(id(child))
            self.waiting.append(child)

    def _reset_relations(self, entity: "Entity") -> None:
        for relation in entity._meta.relations.values():
            if relation.type.is_plural:
                entity._relations[relation.name] = []
            else:
                entity._relations.pop(relation.name, None)

    def _load_waiting(self) -> None:
        for instance in [self.owner, *self.results]:
            key = instance.primary_key_value
            if key is not None:
                self.visited.add((type(instance), key))
        for child in self.waiting:
            key = child.primary_key_value
            if key is None or (type(child), key) in self.visited:
                continue
            self.visited.add((type(child), key))
            child._load_relations(self.visited)
