from __future__ import annotations

from datetime import date, datetime, timezone

import pydantic
import pytest

from collection_factory import (
    AccessDeniedError,
    Collection,
    ConfigurationError,
    DocumentSchema,
    ValidationError,
    create_collection_factory,
    schema_from_definition,
)
from collection_factory.config import StoreConfig


class CustomCollection(Collection):
    def insert(self, doc):
        return super().insert({**doc, "created_at": datetime.now(timezone.utc)})


class PlainCollection(Collection):
    """Handle without schema attachment support."""

    attach_schema = None


class StubConnection:
    def call(self, name, *args):
        return None

    def subscribe(self, name, *args):
        return None

    def apply(self, name, args, options=None):
        return None

    def status(self):
        return {"connected": True}

    def reconnect(self):
        return None

    def disconnect(self):
        return None


def test_factory_without_parameters_creates_collection(random_name):
    create_collection = create_collection_factory()

    collection = create_collection(name=random_name)

    assert isinstance(collection, Collection)
    assert collection.name == random_name
    assert collection.schema is None


@pytest.mark.parametrize("custom", [date, dict, object(), "Collection", 42])
def test_custom_must_be_a_collection_class(custom):
    with pytest.raises(ConfigurationError):
        create_collection_factory(custom=custom)


def test_custom_collection_instance_is_rejected(random_name):
    with pytest.raises(ConfigurationError):
        create_collection_factory(custom=Collection(random_name))


def test_custom_collection_class_is_used(random_name):
    create_collection = create_collection_factory(custom=CustomCollection)
    collection = create_collection(name=random_name)

    doc_id = collection.insert({"title": "Dune"})
    stored = collection.find_one(doc_id)

    assert isinstance(collection, CustomCollection)
    assert stored["title"] == "Dune"
    assert isinstance(stored["created_at"], datetime)


@pytest.mark.parametrize(
    "schema_factory",
    ["some string", {"foo": "BAR"}, 100.1, [], datetime.now(), True],
)
def test_schema_factory_must_be_callable(schema_factory):
    with pytest.raises(ConfigurationError):
        create_collection_factory(schema_factory=schema_factory)


def test_schema_factory_attaches_schema(random_name):
    create_collection = create_collection_factory(schema_factory=schema_from_definition)
    collection = create_collection(name=random_name, schema={"title": str})

    with pytest.raises(pydantic.ValidationError):
        collection.insert({"age": 10})

    doc_id = collection.insert({"title": "Dune"})

    assert collection.find_one(doc_id) == {"_id": doc_id, "title": "Dune"}
    assert isinstance(collection.schema, DocumentSchema)
    assert collection.attached_schema is collection.schema


def test_schema_factory_receives_definition_unmodified(random_name):
    received = []

    def schema_factory(definition):
        received.append(definition)
        return schema_from_definition(definition)

    definition = {"title": str}
    create_collection_factory(schema_factory=schema_factory)(name=random_name, schema=definition)

    assert received == [definition]
    assert received[0] is definition


def test_schema_is_required_with_schema_factory(random_name):
    create_collection = create_collection_factory(schema_factory=schema_from_definition)

    with pytest.raises(ValidationError) as excinfo:
        create_collection(name=random_name)

    assert excinfo.value.field == "schema"


@pytest.mark.parametrize("schema_factory", [None, schema_from_definition])
def test_schema_must_be_a_mapping(random_name, schema_factory):
    create_collection = create_collection_factory(schema_factory=schema_factory)

    with pytest.raises(ValidationError) as excinfo:
        create_collection(name=random_name, schema="title")

    assert excinfo.value.field == "schema"


def test_schema_without_schema_factory_is_ignored(random_name):
    collection = create_collection_factory()(name=random_name, schema={"title": str})

    assert collection.schema is None
    collection.insert({"age": 10})


def test_attach_schema_false_skips_validation(random_name):
    create_collection = create_collection_factory(schema_factory=schema_from_definition)
    collection = create_collection(name=random_name, schema={"title": str}, attach_schema=False)

    doc_id = collection.insert({"age": 10})

    assert isinstance(doc_id, str)
    assert isinstance(collection.schema, DocumentSchema)
    assert collection.attached_schema is None


def test_missing_attach_capability_is_skipped(random_name):
    create_collection = create_collection_factory(
        custom=PlainCollection, schema_factory=schema_from_definition
    )

    collection = create_collection(name=random_name, schema={"title": str})

    assert isinstance(collection.schema, DocumentSchema)
    assert collection.attached_schema is None
    assert isinstance(collection.insert({"age": 10}), str)


def test_existing_collection_must_be_a_collection():
    create_collection = create_collection_factory()

    with pytest.raises(ValidationError) as excinfo:
        create_collection(collection=datetime.now())

    assert excinfo.value.field == "collection"


def test_existing_collection_class_is_rejected():
    with pytest.raises(ValidationError) as excinfo:
        create_collection_factory()(collection=Collection)

    assert excinfo.value.field == "collection"


def test_existing_collection_is_returned_unaltered(random_name):
    existing = create_collection_factory()(name=random_name)

    actual = create_collection_factory()(collection=existing)

    assert actual is existing
    assert actual.schema is None


def test_existing_collection_accepts_a_name(random_name):
    existing = Collection(random_name)

    assert create_collection_factory()(collection=existing, name="ignored") is existing


def test_schema_attaches_to_existing_collection(random_name):
    existing = create_collection_factory()(name=random_name)
    existing.insert({})

    create_collection = create_collection_factory(schema_factory=schema_from_definition)
    create_collection(collection=existing, schema={"title": str})

    with pytest.raises(pydantic.ValidationError):
        existing.insert({})
    existing.insert({"title": "Dune"})

    assert existing.count() == 2


def test_name_is_required_without_existing_collection():
    create_collection = create_collection_factory()

    with pytest.raises(ValidationError) as excinfo:
        create_collection()

    assert excinfo.value.field == "name"
    assert "name" in str(excinfo.value)


@pytest.mark.parametrize(
    ("options", "field"),
    [
        ({"name": 123}, "name"),
        ({"attach_schema": "yes"}, "attach_schema"),
        ({"attach_schema": 1}, "attach_schema"),
        ({"id_generation": 5}, "id_generation"),
        ({"id_generation": "UUID"}, "id_generation"),
        ({"transform": "upper"}, "transform"),
        ({"define_mutation_methods": 0}, "define_mutation_methods"),
        ({"connection": object()}, "connection"),
        ({"connection": {"call": print}}, "connection"),
    ],
)
def test_invalid_options_name_the_field(random_name, options, field):
    create_collection = create_collection_factory()
    call_options = {"name": random_name, **options}

    with pytest.raises(ValidationError) as excinfo:
        create_collection(**call_options)

    assert excinfo.value.field == field


def test_validation_runs_before_existing_collection_is_touched(random_name):
    existing = Collection(random_name)
    calls = []

    def schema_factory(definition):
        calls.append(definition)
        return schema_from_definition(definition)

    create_collection = create_collection_factory(schema_factory=schema_factory)

    with pytest.raises(ValidationError):
        create_collection(collection=existing, schema={"title": str}, connection=object())

    assert calls == []
    assert existing.restricted is False
    assert existing.schema is None


def test_passthrough_options_reach_the_new_handle(random_name):
    connection = StubConnection()
    transform = lambda doc: {**doc, "seen": True}  # noqa: E731

    collection = create_collection_factory()(
        name=random_name,
        connection=connection,
        id_generation="MONGO",
        transform=transform,
        define_mutation_methods=False,
    )

    assert collection.connection is connection
    assert collection.id_generation == "MONGO"
    assert collection.transform is transform
    assert collection.define_mutation_methods is False

    doc_id = collection.insert({"title": "Dune"})
    assert len(doc_id) == 24
    assert collection.find_one(doc_id)["seen"] is True


def test_unset_passthrough_options_keep_handle_defaults(random_name):
    collection = create_collection_factory()(name=random_name)

    assert collection.connection is None
    assert collection.id_generation == "STRING"
    assert collection.transform is None
    assert collection.define_mutation_methods is True


def test_client_mutations_are_denied_by_default(random_name, monkeypatch):
    monkeypatch.setenv("COLLECTION_FACTORY_INSECURE", "1")
    collection = create_collection_factory()(name=random_name)
    doc_id = collection.insert({"title": "Dune"})

    with pytest.raises(AccessDeniedError):
        collection.client_insert({"title": "Emma"})
    with pytest.raises(AccessDeniedError):
        collection.client_update(doc_id, {"$set": {"title": "Emma"}})
    with pytest.raises(AccessDeniedError):
        collection.client_remove(doc_id)

    assert collection.find() == [{"_id": doc_id, "title": "Dune"}]


def test_allow_rules_open_client_mutations(random_name):
    collection = create_collection_factory()(name=random_name)
    collection.allow({"insert": lambda user_id, doc: user_id is not None})

    doc_id = collection.client_insert({"title": "Emma"}, user_id="user-1")

    assert collection.find_one(doc_id)["title"] == "Emma"
    with pytest.raises(AccessDeniedError):
        collection.client_insert({"title": "Emma"})


def test_reused_collection_is_restricted(random_name):
    existing = Collection(random_name, config=StoreConfig(insecure=True))
    existing.client_insert({"title": "Dune"})

    create_collection_factory()(collection=existing)

    with pytest.raises(AccessDeniedError):
        existing.client_insert({"title": "Emma"})
    assert existing.count() == 1


def test_schema_date_fields_round_trip(random_name):
    create_collection = create_collection_factory(schema_factory=schema_from_definition)
    collection = create_collection(name=random_name, schema={"title": str, "published": date})

    doc_id = collection.insert({"title": "Dune", "published": date(1965, 8, 1)})
    stored = collection.find_one(doc_id)

    assert stored == {"_id": doc_id, "title": "Dune", "published": date(1965, 8, 1)}
    assert type(stored["published"]) is date
    collection.update(doc_id, {"$set": {"title": "Dune Messiah"}})
    assert collection.find_one(doc_id)["published"] == date(1965, 8, 1)
