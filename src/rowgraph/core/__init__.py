"""
Core building blocks: entities, fields, relations and attribute maps.
"""

from .errors import CascadeError, InvalidStateError, ModelConfigurationError, ORMError
from .attributes import AttributeMap
from .fields import BooleanField, Field, FloatField, IntegerField, StringField
from .relations import (
    BelongsTo,
    HasMany,
    HasOne,
    ManyToMany,
    MightHaveOne,
    Relation,
    RelationDescriptor,
    RelationRegistry,
    RelationType,
    relation_registry,
)
from .entity import Entity, EntityMeta, EntityOptions

__all__ = [
    "AttributeMap",
    "BelongsTo",
    "BooleanField",
    "CascadeError",
    "Entity",
    "EntityMeta",
    "EntityOptions",
    "Field",
    "FloatField",
    "HasMany",
    "HasOne",
    "IntegerField",
    "InvalidStateError",
    "ManyToMany",
    "MightHaveOne",
    "ModelConfigurationError",
    "ORMError",
    "Relation",
    "RelationDescriptor",
    "RelationRegistry",
    "RelationType",
    "StringField",
    "relation_registry",
]
