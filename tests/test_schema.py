from __future__ import annotations

import pydantic
import pytest

from collection_factory.schema import DocumentSchema, schema_from_definition


def test_plain_types_are_required():
    schema = schema_from_definition({"title": str, "pages": int})

    schema.validate({"title": "Dune", "pages": 412})
    with pytest.raises(pydantic.ValidationError):
        schema.validate({"title": "Dune"})
    with pytest.raises(pydantic.ValidationError):
        schema.validate({"title": 5, "pages": 412})


def test_unknown_fields_are_rejected():
    schema = schema_from_definition({"title": str})

    with pytest.raises(pydantic.ValidationError) as excinfo:
        schema.validate({"title": "Dune", "age": 10})

    assert excinfo.value.errors()[0]["loc"] == ("age",)


def test_optional_and_default_fields():
    schema = schema_from_definition(
        {
            "title": str,
            "subtitle": {"type": str, "optional": True},
            "tags": {"type": list[str], "default": []},
        }
    )

    schema.validate({"title": "Dune"})
    assert schema.clean({"title": "Dune"}) == {"title": "Dune", "subtitle": None, "tags": []}
    assert schema.field_names == ["title", "subtitle", "tags"]


def test_definition_is_kept_for_introspection():
    definition = {"title": str}
    schema = schema_from_definition(definition, name="book schema")

    assert isinstance(schema, DocumentSchema)
    assert schema.definition is definition
    assert schema.model.__name__ == "book_schema"


@pytest.mark.parametrize(
    "definition",
    [
        "title",
        ["title"],
        {"title": {"optional": True}},
        {"title": {"type": str, "required": True}},
        {"": str},
    ],
)
def test_invalid_definitions(definition):
    with pytest.raises(TypeError):
        schema_from_definition(definition)
