"""
Entity base class and metadata orchestration.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from functools import partialmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Type, Union

from ..hooks import hooks
from ..persistence import PersistenceEngine
from ..query.loader import EntityLoader
from ..query.reconstructor import LoadMode, VisitedKeys
from ..query.spec import Condition
from ..utils import camel_to_snake, entity_alias, get_logger
from .attributes import AttributeMap
from .errors import InvalidStateError, ModelConfigurationError
from .fields import Field
from .relations import RELATION_CLASSES, Relation, RelationType, relation_registry

logger = get_logger("core.entity")

_GENERATED_FINDERS = (
    ("load_by_{}", "load_by"),
    ("find_by_{}", "find_by"),
    ("find_all_by_{}", "find_all_by"),
)


@dataclass
class EntityOptions:
    """
    Container for entity metadata calculated by :class:`EntityMeta`.
    """

    entity: Type["Entity"]
    table_name: str = ""
    alias: str = ""
    fields: "OrderedDict[str, Field]" = field(default_factory=OrderedDict)
    relations: "OrderedDict[str, Relation]" = field(default_factory=OrderedDict)
    primary_key: Optional[str] = None
    unique: bool = False
    transactions: bool = True
    nested_relations: bool = True
    attribute_map: AttributeMap = field(default_factory=lambda: AttributeMap(""))

    @property
    def store_table_name(self) -> str:
        return self.attribute_map.table

    def add_field(self, field_obj: Field) -> None:
        name = field_obj.require_name()
        if name in self.fields:
            raise ModelConfigurationError(
                f"Duplicate attribute '{name}' on entity '{self.entity.__name__}'"
            )
        if field_obj.primary_key:
            if self.primary_key is not None:
                raise ModelConfigurationError(
                    f"Multiple primary keys defined on entity '{self.entity.__name__}'"
                )
            self.primary_key = name
        if field_obj.unique:
            self.unique = True
        self.fields[name] = field_obj
        self.attribute_map.add_mapping(name, field_obj.column_name())

    def add_relation(self, relation: Relation) -> None:
        name = relation.name or ""
        if relation.target_name == self.entity.__name__:
            raise ModelConfigurationError(
                f"Entity '{self.entity.__name__}' cannot relate to itself through '{name}'; "
                "selected columns of both sides would share one alias."
            )
        if name in self.fields or name in self.relations:
            raise ModelConfigurationError(
                f"Relation '{name}' clashes with an existing member of '{self.entity.__name__}'"
            )
        for existing in self.relations.values():
            if existing.target_name == relation.target_name:
                raise ModelConfigurationError(
                    f"Entity '{self.entity.__name__}' already relates to '{relation.target_name}' "
                    f"through '{existing.name}'"
                )
        self.relations[name] = relation

    def get_field(self, name: str) -> Optional[Field]:
        return self.fields.get(name)

    def get_fields(self) -> Iterable[Field]:
        return self.fields.values()


class EntityMeta(type):
    """
    Metaclass collecting fields and relations into :class:`EntityOptions`.
    """

    def __new__(mcls, name: str, bases: tuple[type, ...], attrs: Dict[str, Any]) -> "EntityMeta":
        # The Entity base itself carries no metadata.
        if not any(isinstance(base, EntityMeta) for base in bases):
            return super().__new__(mcls, name, bases, attrs)

        declared_fields: Dict[str, Field] = {}
        declared_relations: Dict[str, Relation] = {}
        for attr_name, value in list(attrs.items()):
            if isinstance(value, Field):
                declared_fields[attr_name] = attrs.pop(attr_name)
            elif isinstance(value, Relation):
                declared_relations[attr_name] = attrs.pop(attr_name)

        cls = super().__new__(mcls, name, bases, attrs)

        meta = getattr(cls, "Meta", None)
        store_table = getattr(meta, "table", None) or camel_to_snake(name)
        unique = getattr(meta, "unique", False)
        cls._meta = EntityOptions(
            entity=cls,
            table_name=name,
            alias=entity_alias(name),
            unique=bool(unique),
            transactions=getattr(meta, "transactions", True),
            nested_relations=getattr(meta, "nested_relations", True),
            attribute_map=AttributeMap(store_table),
        )

        # TODO: Support inheriting fields from base entities.
        for attr_name, field_obj in sorted(declared_fields.items(), key=lambda item: item[1].creation_counter):
            field_obj.contribute_to_class(cls, attr_name)
            cls._meta.add_field(field_obj)

        for attr_name, relation in declared_relations.items():
            relation.contribute_to_class(cls, attr_name)
            cls._meta.add_relation(relation)
            relation_registry.register_relation(relation)

        for attribute in cls._meta.fields:
            for template, target in _GENERATED_FINDERS:
                method_name = template.format(attribute)
                if method_name not in attrs and method_name not in vars(Entity):
                    setattr(cls, method_name, partialmethod(getattr(cls, target), attribute))

        relation_registry.register_entity(cls)
        return cls


class Entity(metaclass=EntityMeta):
    """
    Base entity: one instance holds one row's attribute values plus the
    related instances materialized for it.

    Reads go through the reader driver, writes through the writer driver;
    :meth:`use_driver` sets both.
    """

    _meta: EntityOptions

    def __init__(self, **kwargs: Any) -> None:
        self._init_state()
        self._apply_defaults()
        if kwargs:
            self.set_attributes(kwargs)

    def _init_state(self) -> None:
        self._values: Dict[str, Any] = {}
        self._relations: Dict[str, Any] = {}
        self._dirty = False
        self._synced = False
        self._reader: Any = None
        self._writer: Any = None
        self._attribute_map: Optional[AttributeMap] = None
        self._nested_relations = self._meta.nested_relations
        self.auto_conditions: List[Condition] = []
        self.last_conditions: Any = []

    def _apply_defaults(self) -> None:
        for field_obj in self._meta.get_fields():
            if field_obj.has_default:
                self._values[field_obj.require_name()] = field_obj.clean_value(field_obj.get_default())

    def __repr__(self) -> str:
        parts = ", ".join(f"{name}={value!r}" for name, value in self._values.items())
        return f"<{type(self).__name__} {parts}>"

    # ------------------------------------------------------------------ #
    # Metadata
    # ------------------------------------------------------------------ #
    @property
    def attribute_map(self) -> AttributeMap:
        if self._attribute_map is not None:
            return self._attribute_map
        return self._meta.attribute_map

    @property
    def store_table_name(self) -> str:
        return self.attribute_map.table

    @property
    def table_name(self) -> str:
        return self._meta.table_name

    def add_mapping(self, attribute: str, column: str) -> None:
        """Map an extra attribute for this instance only."""
        mapping = self.attribute_map.remap(self.store_table_name)
        mapping.add_mapping(attribute, column)
        self._attribute_map = mapping
        self._dirty = False

    def set_store_table_name(self, table: str) -> None:
        self._attribute_map = self.attribute_map.remap(table)

    @property
    def primary_key_value(self) -> Any:
        pk = self._meta.primary_key
        if pk is None:
            return None
        return self._values.get(pk)

    @property
    def pk(self) -> Any:
        return self.primary_key_value

    def is_dirty(self) -> bool:
        return self._dirty

    def is_synced(self) -> bool:
        return self._synced

    # ------------------------------------------------------------------ #
    # Drivers
    # ------------------------------------------------------------------ #
    def use_driver(self, driver: Any) -> "Entity":
        self._reader = driver
        self._writer = driver
        return self

    def set_reader(self, driver: Any) -> "Entity":
        self._reader = driver
        return self

    def set_writer(self, driver: Any) -> "Entity":
        self._writer = driver
        return self

    @property
    def reader(self) -> Any:
        if self._reader is None:
            raise InvalidStateError(f"No reader driver set on '{type(self).__name__}'.")
        return self._reader

    @property
    def writer(self) -> Any:
        if self._writer is None:
            raise InvalidStateError(f"No writer driver set on '{type(self).__name__}'.")
        return self._writer

    def enable_nested_relations(self) -> None:
        self._nested_relations = True

    def disable_nested_relations(self) -> None:
        self._nested_relations = False

    @property
    def nested_relations_enabled(self) -> bool:
        return self._nested_relations

    # ------------------------------------------------------------------ #
    # Attribute access
    # ------------------------------------------------------------------ #
    def get(self, name: str) -> Any:
        relation = self._meta.relations.get(name)
        if relation is not None:
            return self._relation_value(relation)
        return self._values.get(name)

    def set(self, name: str, value: Any) -> bool:
        """
        Assign one attribute; returns True when the stored value changed.

        ``before_attribute_set`` handlers may return a replacement value.
        Names that are neither mapped attributes nor relations are ignored.
        """
        relation = self._meta.relations.get(name)
        if relation is not None:
            self._assign_relation(relation, value)
            return True
        if name not in self.attribute_map:
            logger.debug("Ignoring assignment to unmapped attribute %r on %s", name, type(self).__name__)
            return False

        value = self._clean(name, value)
        if value == self._values.get(name):
            return False
        for replacement in hooks.fire("before_attribute_set", self, name, value):
            if replacement is not None:
                value = self._clean(name, replacement)
        self._values[name] = value
        self._dirty = True
        hooks.fire("after_attribute_set", self, name, value)
        return True

    def get_attributes(self) -> Dict[str, Any]:
        return {
            attribute: self._values[attribute]
            for attribute in self.attribute_map
            if self._values.get(attribute) is not None
        }

    def get_store_attributes(self) -> Dict[str, Any]:
        return {
            column: self._values[attribute]
            for attribute, column in self.attribute_map.items()
            if self._values.get(attribute) is not None
        }

    def set_attributes(self, data: Mapping[str, Any]) -> None:
        """
        Assign attributes and relation data from a mapping.

        Relation keys (relation name or related type name) take a mapping or
        an entity for singular relations and a list of them for plural ones;
        a shape that does not match the relation raises
        :class:`InvalidStateError`. Plural children are matched to the ones
        already in memory by primary key, unmatched ones are appended as new.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"set_attributes expects a mapping, got {type(data).__name__}")
        for key, value in data.items():
            relation = self._relation_for_key(key)
            if relation is not None:
                self._set_relation_data(relation, value)
            else:
                self.set(key, value)

    def update_attributes(self, data: Mapping[str, Any]) -> None:
        """Like :meth:`set_attributes` but only for mapped attributes."""
        for key, value in data.items():
            if key in self.attribute_map:
                self.set(key, value)

    def get_relations(self) -> Dict[str, Any]:
        """Relation values that carry in-memory data."""
        relations: Dict[str, Any] = {}
        for name, value in self._relations.items():
            if isinstance(value, list):
                relations[name] = value
            elif value is not None and (value.is_synced() or value.get_attributes()):
                relations[name] = value
        return relations

    def to_dict(self, include_relations: bool = True) -> Dict[str, Any]:
        return self._to_dict(include_relations, set())

    def _to_dict(self, include_relations: bool, seen: Set[int]) -> Dict[str, Any]:
        seen.add(id(self))
        data: Dict[str, Any] = {attribute: self._values.get(attribute) for attribute in self.attribute_map}
        if not include_relations:
            return data
        for name, value in self.get_relations().items():
            if isinstance(value, list):
                data[name] = [child._to_dict(True, seen) for child in value if id(child) not in seen]
            elif id(value) not in seen:
                data[name] = value._to_dict(True, seen)
        return data

    # ------------------------------------------------------------------ #
    # Loading and finding
    # ------------------------------------------------------------------ #
    def load(self, key: Any) -> bool:
        """Load the row with primary key ``key`` (and its relations) into this instance."""
        pk = self._require_primary_key("load")
        return self._loader().run(LoadMode.THIS, [(pk, "=", key)])

    def load_by(self, attribute: str, value: Any) -> bool:
        resolved = self.attribute_map.resolve(attribute)
        if resolved is None:
            raise KeyError(f"Unknown attribute '{attribute}' on entity '{type(self).__name__}'")
        return self._loader().run(LoadMode.THIS, [(resolved, "=", value)])

    def load_relations(self) -> bool:
        return self._load_relations(None)

    def find(
        self,
        conditions: Any = None,
        order: Any = None,
        limit: Optional[int] = None,
        force_list: bool = False,
        *,
        offset: Optional[int] = None,
    ) -> Union["Entity", List["Entity"], None]:
        """
        Find matching rows as new instances.

        One result comes back as the instance itself unless ``force_list`` is
        set; nothing found gives ``None`` (or ``[]`` when a list is forced).
        """
        results = self._loader().run(LoadMode.NEW, conditions, order, limit, offset)
        if force_list:
            return results
        if not results:
            return None
        if len(results) == 1:
            return results[0]
        return results

    def find_all(
        self,
        conditions: Any = None,
        order: Any = None,
        limit: Optional[int] = None,
        *,
        offset: Optional[int] = None,
    ) -> List["Entity"]:
        return self.find(conditions, order, limit, True, offset=offset)

    def find_first(self, conditions: Any = None, order: Any = None) -> Optional["Entity"]:
        results = self.find_all(conditions, order)
        return results[0] if results else None

    def find_by(
        self,
        attribute: str,
        value: Any,
        conditions: Any = None,
        order: Any = None,
        limit: Optional[int] = None,
        force_list: bool = False,
        *,
        offset: Optional[int] = None,
    ) -> Union["Entity", List["Entity"], None]:
        resolved = self.attribute_map.resolve(attribute)
        if resolved is None:
            logger.debug("find_by on unmapped attribute %r of %s", attribute, type(self).__name__)
            return [] if force_list else None
        if isinstance(conditions, str):
            raise ValueError("find_by cannot be combined with a literal condition clause")
        merged = [(resolved, "=", value)]
        if isinstance(conditions, Mapping):
            merged.extend((name, "=", item) for name, item in conditions.items())
        elif conditions:
            merged.extend(conditions)
        return self.find(merged, order, limit, force_list, offset=offset)

    def find_all_by(
        self,
        attribute: str,
        value: Any,
        conditions: Any = None,
        order: Any = None,
        limit: Optional[int] = None,
        *,
        offset: Optional[int] = None,
    ) -> List["Entity"]:
        return self.find_by(attribute, value, conditions, order, limit, True, offset=offset)

    def find_by_key(self, key: Any) -> Optional["Entity"]:
        pk = self._meta.primary_key
        if pk is None:
            return None
        results = self.find_all([(pk, "=", key)])
        return results[0] if results else None

    def count_table_rows(self) -> int:
        return self.reader.execute_count(self.store_table_name, self._primary_key_column())

    def count_total_rows_for_last_query(self) -> int:
        """Row count of the last load/find ignoring its limit and offset."""
        return self.reader.execute_count(
            self.store_table_name, self._primary_key_column(), self.last_conditions or None
        )

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    def save(self) -> bool:
        return PersistenceEngine(self).save()

    def cascade_save(self, transactions: Optional[bool] = None) -> None:
        PersistenceEngine(self).cascade_save(transactions)

    def delete(self) -> None:
        PersistenceEngine(self).delete()

    def cascade_delete(self, transactions: Optional[bool] = None) -> None:
        PersistenceEngine(self).cascade_delete(transactions)

    def quick_update(self, fields: Mapping[str, Any], conditions: Any, limit: Optional[int] = None) -> int:
        return PersistenceEngine(self).quick_update(fields, conditions, limit)

    # ------------------------------------------------------------------ #
    # Validation and hooks
    # ------------------------------------------------------------------ #
    def full_clean(self) -> None:
        from ..validation import validate_instance

        validate_instance(self)

    def clean(self) -> None:
        """
        Hook for subclasses to implement entity-level validation.
        """
        return None

    @classmethod
    def register_hook(cls, event: str, handler) -> None:
        hooks.register(event, handler, entity=cls)

    @classmethod
    def declare_relation(
        cls,
        relation_type: RelationType,
        related: Union[Type["Entity"], str],
        key_map: str,
        link_table: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Relation:
        """Declare a relation after class creation."""
        relation = RELATION_CLASSES[relation_type](related, key=key_map, link_table=link_table)
        relation.contribute_to_class(cls, name or camel_to_snake(relation.target_name))
        cls._meta.add_relation(relation)
        relation_registry.register_relation(relation)
        return relation

    # ------------------------------------------------------------------ #
    # Internals used by the loader, reconstructor and persistence engine
    # ------------------------------------------------------------------ #
    def _loader(self) -> EntityLoader:
        return EntityLoader(self)

    def _require_primary_key(self, operation: str) -> str:
        pk = self._meta.primary_key
        if pk is None:
            raise ModelConfigurationError(
                f"Entity '{type(self).__name__}' declares no primary key; cannot {operation}."
            )
        return pk

    def _primary_key_column(self) -> Optional[str]:
        pk = self._meta.primary_key
        return self.attribute_map.column_for(pk) if pk else None

    def _clean(self, name: str, value: Any) -> Any:
        field_obj = self._meta.get_field(name)
        return field_obj.clean_value(value) if field_obj is not None else value

    def _convert(self, name: str, value: Any) -> Any:
        field_obj = self._meta.get_field(name)
        if field_obj is None or value is None:
            return value
        return field_obj.to_python(value)

    def _hydrate(self, values: Mapping[str, Any]) -> None:
        """Store values read from the store; no hooks, no dirty tracking."""
        for name, value in values.items():
            self._values[name] = self._convert(name, value)
        self._synced = True
        self._dirty = False

    def _clear(self) -> None:
        self._values = {}
        self._relations = {}
        self._synced = False
        self._dirty = False

    def _spawn(self, entity_type: Type["Entity"], *, same_store: bool = False, defaults: bool = True) -> "Entity":
        instance = entity_type.__new__(entity_type)
        instance._init_state()
        if defaults:
            instance._apply_defaults()
        instance._reader = self._reader
        instance._writer = self._writer
        instance._nested_relations = self._nested_relations
        if same_store:
            instance._attribute_map = self._attribute_map
        return instance

    def _relation_value(self, relation: Relation) -> Any:
        value = self._relations.get(relation.name)
        if value is None:
            if relation.type.is_plural:
                value = []
            else:
                value = self._spawn(relation.related_entity, defaults=False)
            self._relations[relation.name] = value
        return value

    def _relation_for_key(self, key: str) -> Optional[Relation]:
        relation = self._meta.relations.get(key)
        if relation is not None:
            return relation
        for candidate in self._meta.relations.values():
            if candidate.target_name == key:
                return candidate
        return None

    def _assign_relation(self, relation: Relation, value: Any) -> None:
        if relation.type.is_plural:
            if isinstance(value, (list, tuple)) and all(isinstance(item, Entity) for item in value):
                self._relations[relation.name] = list(value)
                return
        elif value is None or isinstance(value, Entity):
            self._relations[relation.name] = value
            return
        self._set_relation_data(relation, value)

    def _set_relation_data(self, relation: Relation, value: Any) -> None:
        if relation.type.is_plural:
            if isinstance(value, (str, bytes, Mapping, Entity)) or not isinstance(value, (list, tuple)):
                raise InvalidStateError(
                    f"Relation '{relation.name}' on '{type(self).__name__}' is plural; "
                    f"expected a list, got {type(value).__name__}."
                )
            for item in value:
                self._merge_child(relation, item)
            return
        if not isinstance(value, (Mapping, Entity)):
            raise InvalidStateError(
                f"Relation '{relation.name}' on '{type(self).__name__}' is singular; "
                f"expected a mapping or an entity, got {type(value).__name__}."
            )
        if isinstance(value, Entity):
            self._relations[relation.name] = value
            return
        existing = self._relations.get(relation.name)
        if existing is None:
            existing = self._new_child(relation)
            self._relations[relation.name] = existing
        existing.set_attributes(value)

    def _merge_child(self, relation: Relation, item: Any) -> None:
        children = self._relation_value(relation)
        if isinstance(item, Entity):
            if not any(child is item for child in children):
                children.append(item)
            return
        if not isinstance(item, Mapping):
            raise InvalidStateError(
                f"Items of relation '{relation.name}' must be mappings or entities, got {type(item).__name__}."
            )
        pk = relation.related_entity._meta.primary_key
        key = item.get(pk) if pk else None
        if key is not None:
            for child in children:
                if child.primary_key_value == key:
                    child.set_attributes(item)
                    return
        child = self._new_child(relation)
        child.set_attributes(item)
        children.append(child)

    def _new_child(self, relation: Relation) -> "Entity":
        child = self._spawn(relation.related_entity)
        if self._synced and relation.type.owns_children:
            local, foreign = relation.descriptor.keys()
            value = self._values.get(local)
            if value is not None:
                child.set(foreign, value)
        return child

    def _link_to_parent(self, parent: "Entity", relation: Relation) -> None:
        local, foreign = relation.descriptor.keys()
        value = parent._values.get(local)
        column = self.attribute_map.qualified(foreign)
        if value is None or column is None:
            return
        self._values[foreign] = self._convert(foreign, value)
        condition = Condition(column, "=", value)
        if condition not in self.auto_conditions:
            self.auto_conditions.append(condition)

    def _load_relations(self, visited: Optional[VisitedKeys]) -> bool:
        if not self._meta.relations:
            return True
        key = self.primary_key_value
        if key is None:
            return False
        return self._loader().run(LoadMode.THIS, [(self._meta.primary_key, "=", key)], visited=visited)
