import pytest

from rowgraph.adapters import SQLiteAdapter
from rowgraph.core import IntegerField, StringField
from rowgraph.core.entity import Entity
from rowgraph.driver import SQLQueryDriver
from rowgraph.hooks import hooks


@pytest.fixture(autouse=True)
def clear_hooks():
    hooks.clear()
    yield
    hooks.clear()


@pytest.fixture
def driver(tmp_path):
    driver = SQLQueryDriver.connect(SQLiteAdapter(), f"sqlite:///{tmp_path / 'hooks.db'}")
    driver.execute(
        'CREATE TABLE "sample" (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, age INTEGER)'
    )
    yield driver
    driver.close()


class Sample(Entity):
    id = IntegerField(primary_key=True)
    name = StringField(nullable=False)
    age = IntegerField(default=0)


class Audited(Entity):
    id = IntegerField(primary_key=True)
    name = StringField()

    def after_attribute_set(self, name, value):
        self.trail.append(("method", name))

    def __init__(self, **kwargs):
        self.trail = []
        super().__init__(**kwargs)


def test_write_hooks_fire_in_order(driver):
    events = []

    for event_name in ("before_save", "after_save", "before_update", "after_update"):

        def handler(instance, *args, event=event_name):
            events.append((event, instance.name))

        hooks.register(event_name, handler)

    sample = Sample(name="Alice", age=21).use_driver(driver)
    assert sample.save() is True
    sample.age = 22
    assert sample.save() is True

    assert events == [
        ("before_save", "Alice"),
        ("after_save", "Alice"),
        ("before_update", "Alice"),
        ("after_update", "Alice"),
    ]


def test_entity_specific_hook_on_delete(driver):
    fired = []
    Sample.register_hook("before_delete", lambda instance: fired.append(("before", instance.name)))
    Sample.register_hook("after_delete", lambda instance: fired.append(("after", instance.name)))

    sample = Sample(name="Bob", age=30).use_driver(driver)
    sample.save()
    sample.delete()

    assert fired == [("before", "Bob"), ("after", None)]
    assert not sample.is_synced()
    assert Sample().use_driver(driver).count_table_rows() == 0


def test_method_then_global_then_type_handlers():
    item = Audited()
    hooks.register("after_attribute_set", lambda instance, name, value: instance.trail.append(("global", name)))
    Audited.register_hook(
        "after_attribute_set", lambda instance, name, value: instance.trail.append(("type", name))
    )
    item.name = "x"
    assert item.trail == [("method", "name"), ("global", "name"), ("type", "name")]


def test_type_handlers_do_not_leak_to_other_entities():
    calls = []
    Audited.register_hook("after_attribute_set", lambda instance, name, value: calls.append(name))
    Sample(name="x")
    assert calls == []


def test_veto_stops_at_first_false():
    calls = []
    hooks.register("before_load", lambda instance, context: calls.append("first") or False)
    hooks.register("before_load", lambda instance, context: calls.append("second"))
    assert hooks.veto("before_load", Sample(), None) is True
    assert calls == ["first"]


def test_unknown_event_is_rejected():
    with pytest.raises(ValueError):
        hooks.register("before_commit", lambda instance: None)
