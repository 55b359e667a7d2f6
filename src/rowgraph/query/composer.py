"""
Composition of the select specs needed to load an entity and its relations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional

from ..core.errors import InvalidStateError, ModelConfigurationError
from ..utils import field_alias
from .spec import LEFT_JOIN, ColumnRef, Conditions, FieldRef, JoinClause, OrderBy, QuerySpec

if TYPE_CHECKING:
    from ..core.attributes import AttributeMap
    from ..core.entity import Entity
    from ..core.relations import Relation


def select_fields(entity_type: type, attribute_map: "AttributeMap", prefix: str) -> Dict[str, FieldRef]:
    """Alias every mapped attribute of ``attribute_map`` as ``<prefix>_<attribute>``."""
    return {
        field_alias(prefix, attribute): FieldRef(
            attribute_map.table, column, entity=entity_type, attribute=attribute, prefix=prefix
        )
        for attribute, column in attribute_map.items()
    }


class QueryComposer:
    """
    Builds the ordered list of :class:`QuerySpec` objects for one load.

    Singular relations are joined into the primary spec. Each plural relation
    is a fan-out and goes to the first spec that has none yet, otherwise to a
    new spec that repeats the primary table, fields and filters, so ``N``
    plural relations produce ``max(1, N)`` specs.
    """

    def __init__(self, entity: "Entity") -> None:
        self.entity = entity

    def compose(
        self,
        conditions: Conditions = None,
        order: OrderBy = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[QuerySpec]:
        entity = self.entity
        table = entity.store_table_name
        own_fields = select_fields(type(entity), entity.attribute_map, entity._meta.alias)

        def new_spec() -> QuerySpec:
            return QuerySpec(
                tables={table: None},
                fields=dict(own_fields),
                conditions=conditions,
                order=order,
                limit=limit,
                offset=offset,
            )

        queue = [new_spec()]
        for relation in entity._meta.relations.values():
            joins = self._joins_for(relation)
            related = relation.related_entity
            fields = select_fields(related, related._meta.attribute_map, related._meta.alias)

            if relation.type.is_singular:
                target = queue[0]
            else:
                target = next((spec for spec in queue if not spec.has_fan_out), None)
                if target is None:
                    target = new_spec()
                    queue.append(target)
                target.has_fan_out = True

            for join in joins:
                self._add_join(target, join)
            target.fields.update(fields)
        return queue

    def _joins_for(self, relation: "Relation") -> List[JoinClause]:
        local_attr, foreign_attr = relation.descriptor.keys()
        related = relation.related_entity
        related_map = related._meta.attribute_map

        local = self.entity.attribute_map.qualified(local_attr)
        if local is None:
            raise InvalidStateError(
                f"Relation '{relation.name}' uses unmapped local attribute '{local_attr}' "
                f"on '{type(self.entity).__name__}'."
            )
        foreign = related_map.qualified(foreign_attr)
        if foreign is None:
            raise InvalidStateError(
                f"Relation '{relation.name}' uses unmapped foreign attribute '{foreign_attr}' "
                f"on '{related.__name__}'."
            )

        link_table = relation.descriptor.link_table
        if link_table is None:
            return [JoinClause(relation.type.join_kind, foreign.table, local, foreign)]
        return [
            JoinClause(LEFT_JOIN, link_table, local, ColumnRef(link_table, local.column)),
            JoinClause(LEFT_JOIN, foreign.table, ColumnRef(link_table, foreign.column), foreign),
        ]

    @staticmethod
    def _add_join(spec: QuerySpec, join: JoinClause) -> None:
        if join.table in spec.tables:
            raise ModelConfigurationError(
                f"Table '{join.table}' would be joined twice into one select; "
                "relations sharing a store table cannot be loaded together."
            )
        spec.tables[join.table] = join
