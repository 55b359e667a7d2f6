import pytest

from rowgraph.core import (
    BelongsTo,
    Entity,
    HasMany,
    HasOne,
    IntegerField,
    InvalidStateError,
    ModelConfigurationError,
    RelationType,
    StringField,
)
from rowgraph.validation import MinValueValidator, ValidationError


class Gadget(Entity):
    id = IntegerField(primary_key=True)
    name = StringField(nullable=False)
    colour = StringField(db_column="color", default="black")
    rating = IntegerField(validators=[MinValueValidator(0)])
    size = StringField(choices=("S", "M", "L"))
    parts = HasMany("Part", key="id:gadget_id")

    class Meta:
        table = "gadgets"


class Part(Entity):
    id = IntegerField(primary_key=True)
    gadget_id = IntegerField()
    label = StringField()
    gadget = BelongsTo(Gadget, key="gadget_id:id")


class Note(Entity):
    body = StringField()


class Trimmed(Entity):
    id = IntegerField(primary_key=True)
    name = StringField()

    def before_attribute_set(self, name, value):
        if name == "name" and isinstance(value, str):
            return value.strip()
        return None


def test_meta_collects_fields_and_relations():
    meta = Gadget._meta
    assert meta.table_name == "Gadget"
    assert meta.store_table_name == "gadgets"
    assert meta.alias == "gadget"
    assert meta.primary_key == "id"
    assert list(meta.fields) == ["id", "name", "colour", "rating", "size"]
    assert meta.attribute_map.column_for("colour") == "color"
    assert list(meta.relations) == ["parts"]
    assert meta.relations["parts"].type is RelationType.HAS_MANY
    assert meta.relations["parts"].related_entity is Part


def test_default_store_table_is_snake_case_class_name():
    assert Part._meta.store_table_name == "part"
    assert Note._meta.primary_key is None


def test_defaults_do_not_mark_instance_dirty():
    gadget = Gadget()
    assert gadget.colour == "black"
    assert not gadget.is_dirty()
    assert not gadget.is_synced()


def test_constructor_and_assignment_mark_dirty():
    gadget = Gadget(name="Widget")
    assert gadget.is_dirty()
    assert gadget.name == "Widget"

    other = Gadget()
    other.name = "Sprocket"
    assert other.is_dirty()
    assert other.get("name") == "Sprocket"


def test_set_reports_whether_value_changed():
    gadget = Gadget()
    assert gadget.set("rating", "3") is True
    assert gadget.rating == 3
    assert gadget.set("rating", 3) is False
    assert gadget.set("colour", "black") is False


def test_unmapped_assignment_is_ignored():
    gadget = Gadget()
    assert gadget.set("nope", 1) is False
    assert "nope" not in gadget.get_attributes()
    assert not gadget.is_dirty()


def test_choices_are_checked_on_assignment():
    gadget = Gadget()
    with pytest.raises(ValueError):
        gadget.size = "XL"


def test_set_attributes_round_trip_keeps_dirty_state():
    gadget = Gadget()
    gadget._hydrate({"id": 4, "name": "Widget", "colour": "red", "rating": 2, "size": None})
    assert gadget.is_synced() and not gadget.is_dirty()

    gadget.set_attributes(gadget.get_attributes())
    assert not gadget.is_dirty()
    assert gadget.get_attributes() == {"id": 4, "name": "Widget", "colour": "red", "rating": 2}


def test_store_attributes_use_column_names():
    gadget = Gadget(name="Widget")
    assert gadget.get_store_attributes() == {"name": "Widget", "color": "black"}


def test_add_mapping_is_per_instance_and_resets_dirty():
    gadget = Gadget(name="Widget")
    gadget.add_mapping("nickname", "nick")
    assert not gadget.is_dirty()

    gadget.set("nickname", "wid")
    assert gadget.get_store_attributes()["nick"] == "wid"
    assert "nickname" not in Gadget._meta.attribute_map


def test_set_store_table_name_keeps_attribute_names():
    gadget = Gadget()
    gadget.set_store_table_name("gadgets_archive")
    assert gadget.store_table_name == "gadgets_archive"
    assert gadget.attribute_map.column_for("colour") == "color"
    assert Gadget._meta.store_table_name == "gadgets"


def test_relation_defaults_are_placeholder_and_empty_list():
    gadget = Gadget()
    part = Part()
    assert gadget.parts == []
    assert isinstance(part.gadget, Gadget)
    assert part.gadget is part.gadget
    assert part.gadget.get_attributes() == {}
    assert part.get_relations() == {}


def test_set_attributes_builds_children_and_matches_by_key():
    gadget = Gadget()
    gadget._hydrate({"id": 1, "name": "Widget"})
    gadget.set_attributes({"parts": [{"label": "bolt"}, {"id": 7, "label": "nut"}]})
    assert [part.label for part in gadget.parts] == ["bolt", "nut"]
    assert all(part.gadget_id == 1 for part in gadget.parts)

    gadget.parts[1]._hydrate({"id": 7, "gadget_id": 1, "label": "nut"})
    gadget.set_attributes({"Part": [{"id": 7, "label": "washer"}]})
    assert len(gadget.parts) == 2
    assert gadget.parts[1].label == "washer"
    assert gadget.parts[1].is_dirty()


def test_set_attributes_rejects_mismatched_relation_shapes():
    with pytest.raises(InvalidStateError):
        Gadget().set_attributes({"parts": {"label": "bolt"}})
    with pytest.raises(InvalidStateError):
        Part().set_attributes({"gadget": [{"name": "Widget"}]})


def test_update_attributes_skips_relations():
    gadget = Gadget()
    gadget.update_attributes({"name": "Widget", "parts": [{"label": "bolt"}]})
    assert gadget.name == "Widget"
    assert gadget.parts == []


def test_to_dict_flattens_relations():
    gadget = Gadget(name="Widget")
    gadget.set_attributes({"parts": [{"label": "bolt"}]})
    data = gadget.to_dict()
    assert data["name"] == "Widget"
    assert data["parts"][0]["label"] == "bolt"
    assert "parts" not in gadget.to_dict(include_relations=False)


def test_generated_finders_are_declared_per_attribute():
    for name in ("load_by_name", "find_by_name", "find_all_by_name", "find_by_colour"):
        assert hasattr(Gadget, name)
    assert not hasattr(Gadget, "find_by_nope")


def test_hook_method_can_replace_assigned_value():
    item = Trimmed(name="  padded  ")
    assert item.name == "padded"


def test_missing_driver_raises_invalid_state():
    with pytest.raises(InvalidStateError):
        Gadget().reader
    with pytest.raises(InvalidStateError):
        Gadget().writer


def test_load_requires_primary_key_declaration():
    note = Note().use_driver(object())
    with pytest.raises(ModelConfigurationError):
        note.load(1)


def test_load_by_unknown_attribute_raises_key_error():
    with pytest.raises(KeyError):
        Gadget().use_driver(object()).load_by("nope", 1)


def test_full_clean_collects_field_errors():
    gadget = Gadget(rating=-1)
    with pytest.raises(ValidationError) as excinfo:
        gadget.full_clean()
    assert "name" in excinfo.value.errors
    assert "rating" in excinfo.value.errors


def test_duplicate_primary_key_is_rejected():
    with pytest.raises(ModelConfigurationError):

        class TwoKeys(Entity):
            a = IntegerField(primary_key=True)
            b = IntegerField(primary_key=True)


def test_self_relation_is_rejected():
    with pytest.raises(ModelConfigurationError):

        class Folder(Entity):
            id = IntegerField(primary_key=True)
            children = HasMany("Folder", key="id:parent_id")


def test_one_relation_per_related_type():
    with pytest.raises(ModelConfigurationError):

        class Assembly(Entity):
            id = IntegerField(primary_key=True)
            main_part = HasOne(Part, key="id:gadget_id")
            spare_part = HasOne(Part, key="id:gadget_id")


def test_declare_relation_adds_relation_after_class_creation():
    class Bin(Entity):
        id = IntegerField(primary_key=True)

    relation = Bin.declare_relation(RelationType.HAS_MANY, "Note", "id:bin_id")
    assert relation.name == "note"
    assert Bin._meta.relations["note"] is relation
    assert Bin().note == []
