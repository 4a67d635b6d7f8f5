"""Pydantic-backed document schemas built from plain field definitions."""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, create_model

_IDENTIFIER = re.compile(r"[^0-9a-zA-Z_]")


class DocumentSchema:
    """Compiled validator for the documents of one collection."""

    def __init__(self, model: type[BaseModel], definition: Mapping[str, Any] | None = None):
        self.model = model
        self.definition = definition

    def __repr__(self) -> str:
        return f"DocumentSchema({self.model.__name__}, fields={self.field_names!r})"

    @property
    def field_names(self) -> list[str]:
        return list(self.model.model_fields)

    def validate(self, document: Mapping[str, Any]) -> None:
        """Raise ``pydantic.ValidationError`` when ``document`` does not fit the schema."""
        self.model.model_validate(dict(document))

    def clean(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Return the validated document with defaults filled in."""
        return self.model.model_validate(dict(document)).model_dump()


def schema_from_definition(
    definition: Mapping[str, Any],
    *,
    name: str = "Document",
) -> DocumentSchema:
    """Compile a field definition into a :class:`DocumentSchema`.

    Each value is either a type (a required field) or a mapping with ``type``
    plus optional ``optional`` and ``default`` keys::

        {"title": str, "tags": {"type": list[str], "optional": True}}

    Fields outside the definition are rejected.
    """
    if not isinstance(definition, Mapping):
        raise TypeError(
            f"Schema definitions must be mappings, received {type(definition).__name__}."
        )

    fields: dict[str, Any] = {}
    for field_name, spec in definition.items():
        if not isinstance(field_name, str) or not field_name:
            raise TypeError("Schema field names must be non-empty strings.")
        fields[field_name] = _field_from_spec(field_name, spec)

    model = create_model(
        _IDENTIFIER.sub("_", name) or "Document",
        __config__=ConfigDict(extra="forbid"),
        **fields,
    )
    return DocumentSchema(model, definition)


def _field_from_spec(field_name: str, spec: Any) -> tuple[Any, Any]:
    if not isinstance(spec, Mapping):
        return spec, ...

    if "type" not in spec:
        raise TypeError(f"Schema field {field_name!r} is missing its 'type'.")
    unknown = set(spec) - {"type", "optional", "default"}
    if unknown:
        raise TypeError(f"Schema field {field_name!r} has unknown keys: {sorted(unknown)}.")

    field_type = spec["type"]
    if "default" in spec:
        return field_type, spec["default"]
    if spec.get("optional", False):
        return Optional[field_type], None
    return field_type, ...


__all__ = ["DocumentSchema", "schema_from_definition"]
