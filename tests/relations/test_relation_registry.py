import pytest

from rowgraph.core import (
    Entity,
    HasMany,
    HasOne,
    IntegerField,
    InvalidStateError,
    ManyToMany,
    ModelConfigurationError,
    RelationDescriptor,
    RelationRegistry,
    RelationType,
    relation_registry,
)


class Author(Entity):
    id = IntegerField(primary_key=True)
    books = HasMany("Book", key="id:author_id")
    profile = HasOne("AuthorProfile", key="id:author_id")


class Book(Entity):
    id = IntegerField(primary_key=True)
    author_id = IntegerField()


class AuthorProfile(Entity):
    id = IntegerField(primary_key=True)
    author_id = IntegerField()


def test_forward_references_resolve_once_target_is_declared():
    assert Author._meta.relations["books"].related_entity is Book
    assert Author._meta.relations["profile"].related_entity is AuthorProfile


def test_registry_prefers_declaring_module():
    registry = RelationRegistry()

    class Local(Entity):
        id = IntegerField(primary_key=True)

    registry.register_entity(Book)
    registry.register_entity(Local)
    assert registry.resolve("Book") is Book
    assert registry.resolve("Local", module=Local.__module__) is Local
    assert registry.resolve("Missing") is None
    assert relation_registry.resolve(Book) is Book


def test_pending_relation_binds_when_target_registers():
    registry = RelationRegistry()
    relation = HasMany("Chapter", key="id:book_id")
    relation.contribute_to_class(Book, "chapters_for_test")
    registry.register_relation(relation)
    assert registry.unresolved() == [relation]

    class Chapter(Entity):
        id = IntegerField(primary_key=True)

    registry.register_entity(Chapter)
    assert registry.unresolved() == []
    assert relation.related_entity is Chapter


def test_relation_type_helpers():
    assert RelationType.HAS_MANY.is_plural
    assert RelationType.MANY_TO_MANY.is_plural
    assert RelationType.BELONGS_TO.is_singular
    assert RelationType.HAS_ONE.join_kind == "INNER"
    assert RelationType.MIGHT_HAVE_ONE.join_kind == "LEFT"
    assert RelationType.HAS_MANY.owns_children
    assert not RelationType.BELONGS_TO.owns_children


def test_link_table_only_for_many_to_many():
    with pytest.raises(ModelConfigurationError):
        RelationDescriptor(RelationType.MANY_TO_MANY, "id:id")
    with pytest.raises(ModelConfigurationError):
        RelationDescriptor(RelationType.HAS_MANY, "id:book_id", "links")
    descriptor = ManyToMany("Book", key="id:id", link_table="shelf_books").descriptor
    assert descriptor.link_table == "shelf_books"


def test_malformed_key_map_fails_when_split():
    descriptor = RelationDescriptor(RelationType.HAS_ONE, "id")
    with pytest.raises(InvalidStateError):
        descriptor.keys()
    assert RelationDescriptor(RelationType.HAS_ONE, " id : author_id ").keys() == ("id", "author_id")


def test_unknown_target_raises_on_use():
    relation = HasMany("Nowhere", key="id:x")
    relation.contribute_to_class(Book, "nowhere_for_test")
    with pytest.raises(ModelConfigurationError):
        relation.related_entity
