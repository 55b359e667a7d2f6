"""
Insert, update, delete and cascading writes for entity instances.

Lifecycle: a new instance is unsynced; ``save`` inserts it (synced, clean);
assignments make it dirty and the next ``save`` updates it; ``delete``
removes the row and clears the instance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Set, Tuple

from ..core.errors import CascadeError, InvalidStateError, ModelConfigurationError
from ..hooks import hooks
from ..query.conditions import ConditionsTranslator
from ..query.spec import Condition
from ..utils import get_logger
from .transaction import TransactionScope

if TYPE_CHECKING:
    from ..core.entity import Entity
    from ..core.relations import Relation

logger = get_logger("persistence.engine")

_EntityState = Tuple["Entity", Dict[str, Any], bool, bool, Dict[str, Any]]


class CascadeSnapshot:
    """
    In-memory state of every entity touched by a cascade, restored when the
    cascade fails. Also tracks which entities the cascade has visited, so
    cyclic graphs terminate.
    """

    def __init__(self) -> None:
        self._states: Dict[int, _EntityState] = {}
        self._visited: Set[int] = set()

    def capture(self, entity: "Entity") -> None:
        """Record the state of ``entity`` unless it was recorded earlier."""
        if id(entity) in self._states:
            return
        relations = {
            name: list(value) if isinstance(value, list) else value
            for name, value in entity._relations.items()
        }
        self._states[id(entity)] = (entity, dict(entity._values), entity._synced, entity._dirty, relations)

    def visit(self, entity: "Entity") -> bool:
        """Mark ``entity`` visited; False when it was visited before."""
        self.capture(entity)
        if id(entity) in self._visited:
            return False
        self._visited.add(id(entity))
        return True

    def restore(self) -> None:
        for entity, values, synced, dirty, relations in self._states.values():
            entity._values = dict(values)
            entity._synced = synced
            entity._dirty = dirty
            entity._relations = dict(relations)

    def __len__(self) -> int:
        return len(self._states)


class PersistenceEngine:
    def __init__(self, entity: "Entity") -> None:
        self.entity = entity

    # ------------------------------------------------------------------ #
    # Single-row operations
    # ------------------------------------------------------------------ #
    def save(self) -> bool:
        """Insert or update; a no-op returning False when nothing changed."""
        if not self.entity.is_dirty():
            return False
        if self.entity.is_synced():
            self.update()
            return True
        return self.insert()

    def insert(self) -> bool:
        entity = self.entity
        hooks.fire("before_save", entity)
        pk = self._require_primary_key()
        entity.full_clean()

        table = entity.store_table_name
        pk_column = entity.attribute_map.column_for(pk)
        generate_key = entity._values.get(pk) is None
        values = {
            column: entity._values[attribute]
            for attribute, column in entity.attribute_map.items()
            if entity._values.get(attribute) is not None
        }
        writer = entity.writer
        execute = writer.execute_upsert_ignore if entity._meta.unique else writer.execute_insert
        written = execute(table, values, returning=pk_column if generate_key else None)

        if entity._meta.unique and not written:
            logger.info("Insert into %s ignored by a unique constraint", table)
            return False
        if generate_key:
            entity._values[pk] = entity._convert(pk, writer.last_generated_key(table, pk_column))
        entity._synced = True
        entity._dirty = False
        logger.debug("Inserted %s %s=%r", type(entity).__name__, pk, entity._values.get(pk))
        hooks.fire("after_save", entity)
        return True

    def update(self) -> None:
        entity = self.entity
        hooks.fire("before_update", entity)
        key_condition = self._key_condition("update")
        entity.full_clean()
        pk = entity._meta.primary_key
        values = {
            column: entity._values.get(attribute)
            for attribute, column in entity.attribute_map.items()
            if attribute != pk
        }
        entity.writer.execute_update(entity.store_table_name, values, [key_condition], limit=1)
        entity._dirty = False
        hooks.fire("after_update", entity)

    def delete(self) -> None:
        entity = self.entity
        key_condition = self._key_condition("delete")
        hooks.fire("before_delete", entity)
        entity.writer.execute_delete(entity.store_table_name, [key_condition], limit=1)
        entity._clear()
        hooks.fire("after_delete", entity)

    def quick_update(self, fields: Mapping[str, Any], conditions: Any, limit: Optional[int] = None) -> int:
        """
        One UPDATE over every row matching ``conditions``; no hooks, no
        validation, in-memory state untouched. Returns the affected row count.
        """
        entity = self.entity
        attribute_map = entity.attribute_map
        columns: Dict[str, Any] = {}
        for name, value in fields.items():
            attribute = attribute_map.resolve(name)
            if attribute is None:
                logger.debug("quick_update ignores unmapped attribute %r", name)
                continue
            columns[attribute_map.column_for(attribute)] = value
        if not columns:
            return 0

        translated = ConditionsTranslator(attribute_map, entity.auto_conditions).translate(conditions)
        if (
            conditions
            and not isinstance(conditions, str)
            and len(translated) == len(entity.auto_conditions)
        ):
            raise InvalidStateError(
                "quick_update conditions reference no mapped attribute; refusing to update every row."
            )
        return entity.writer.execute_update(entity.store_table_name, columns, translated, limit)

    # ------------------------------------------------------------------ #
    # Cascades
    # ------------------------------------------------------------------ #
    def cascade_save(self, transactions: Optional[bool] = None) -> None:
        self._run_cascade("save", self._cascade_save_one, transactions)

    def cascade_delete(self, transactions: Optional[bool] = None) -> None:
        self._run_cascade("delete", self._cascade_delete_one, transactions)

    def _run_cascade(self, operation: str, step, transactions: Optional[bool]) -> None:
        entity = self.entity
        use_transaction = entity._meta.transactions if transactions is None else transactions
        snapshot = CascadeSnapshot()
        scope = TransactionScope(entity.writer) if use_transaction else None
        label = type(entity).__name__

        if scope is not None:
            try:
                scope.begin()
            except Exception as exc:
                raise CascadeError(
                    f"Cascade {operation} of {label} could not begin a transaction: {exc}",
                    cause=exc,
                    rolled_back=False,
                ) from exc
            logger.info("Cascade %s of %s started in a transaction", operation, label)

        try:
            step(entity, snapshot)
            if scope is not None:
                scope.commit()
        except Exception as exc:
            if scope is None:
                raise CascadeError(
                    f"Cascade {operation} failure: {exc}: no transaction rollback attempted",
                    cause=exc,
                    rolled_back=False,
                ) from exc
            rolled_back = _roll_back(scope)
            snapshot.restore()
            if not rolled_back:
                raise CascadeError(
                    f"Cascade {operation} failure: {exc}: transaction rollback failed",
                    cause=exc,
                    rolled_back=False,
                ) from exc
            logger.warning("Cascade %s of %s rolled back: %s", operation, label, exc)
            raise CascadeError(
                f"Cascade {operation} transaction rollback: {exc}", cause=exc, rolled_back=True
            ) from exc

        if scope is not None:
            logger.info("Cascade %s of %s committed (%s entities)", operation, label, len(snapshot))

    def _cascade_save_one(self, entity: "Entity", snapshot: CascadeSnapshot) -> None:
        if not snapshot.visit(entity):
            # saved earlier in this cascade; keys propagated since then still need writing
            PersistenceEngine(entity).save()
            return
        PersistenceEngine(entity).save()
        for relation, children in _materialized_children(entity):
            local_value = _owner_key(entity, relation)
            for child in children:
                _inherit_drivers(child, entity)
                snapshot.capture(child)
                if local_value is not None:
                    _propagate_key(child, relation, local_value)
                self._cascade_save_one(child, snapshot)

    def _cascade_delete_one(self, entity: "Entity", snapshot: CascadeSnapshot) -> None:
        if not snapshot.visit(entity):
            return
        owned = [
            (relation, children, _owner_key(entity, relation))
            for relation, children in _materialized_children(entity)
            if relation.type.owns_children
        ]
        PersistenceEngine(entity).delete()
        for relation, children, local_value in owned:
            for child in children:
                if not child.is_synced():
                    continue
                _inherit_drivers(child, entity)
                snapshot.capture(child)
                _propagate_key(child, relation, local_value)
                self._cascade_delete_one(child, snapshot)

    # ------------------------------------------------------------------ #
    def _require_primary_key(self) -> str:
        pk = self.entity._meta.primary_key
        if pk is None:
            raise ModelConfigurationError(
                f"Entity '{type(self.entity).__name__}' does not declare a primary key."
            )
        return pk

    def _key_condition(self, operation: str) -> Condition:
        pk = self._require_primary_key()
        value = self.entity._values.get(pk)
        if value is None:
            raise InvalidStateError(
                f"Cannot {operation} '{type(self.entity).__name__}': primary key '{pk}' is not set."
            )
        return Condition(self.entity.attribute_map.qualified(pk), "=", value)


def _materialized_children(entity: "Entity") -> List[Tuple["Relation", List["Entity"]]]:
    """Relations holding in-memory data, in declaration order."""
    found = []
    for relation in entity._meta.relations.values():
        value = entity._relations.get(relation.name)
        if value is None:
            continue
        children = list(value) if isinstance(value, list) else [value]
        children = [child for child in children if child.is_synced() or child.get_attributes()]
        if children:
            found.append((relation, children))
    return found


def _owner_key(entity: "Entity", relation: "Relation") -> Any:
    """The parent value owned children must carry, or None for non-owning relations."""
    if not relation.type.owns_children:
        return None
    local_attribute, _ = relation.descriptor.keys()
    value = entity.get(local_attribute)
    if value is None:
        raise InvalidStateError(
            f"Cannot cascade into '{relation.name}': '{type(entity).__name__}.{local_attribute}' is not set."
        )
    return value


def _propagate_key(child: "Entity", relation: "Relation", value: Any) -> None:
    _, foreign_attribute = relation.descriptor.keys()
    if child.get(foreign_attribute) != value:
        child.set(foreign_attribute, value)


def _inherit_drivers(child: "Entity", parent: "Entity") -> None:
    if child._reader is None:
        child._reader = parent._reader
    if child._writer is None:
        child._writer = parent._writer


def _roll_back(scope: TransactionScope) -> bool:
    """Roll back after a failed step or a failed commit; False if the store refused."""
    try:
        if scope.active:
            scope.rollback()
        else:
            # a failed commit has already released the scope
            scope.driver.rollback()
    except Exception as exc:
        logger.error("Cascade rollback failed: %s", exc)
        return False
    return True
