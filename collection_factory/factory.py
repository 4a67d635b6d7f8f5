"""Factory builder for collection handles with default-deny policy and optional schemas."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from collection_factory.connection import CONNECTION_CAPABILITIES, is_connection
from collection_factory.errors import ConfigurationError, ValidationError
from collection_factory.id_generation import ID_GENERATION_STRATEGIES
from collection_factory.store.access import DENY_NOTHING
from collection_factory.store.collection import Collection, Transform

logger = logging.getLogger(__name__)

SchemaFactory = Callable[[Any], Any]
CollectionConstructor = Callable[..., Collection]


class CollectionOptions(BaseModel):
    """Per-call options accepted by a collection constructor.

    Validation runs with ``context={"schema_required": bool}`` so the schema
    requirement follows the factory's configuration.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        extra="forbid",
        frozen=True,
        strict=True,
    )

    # ``collection`` is declared first so the ``name`` validator can see it.
    collection: Optional[Collection] = None
    name: Optional[str] = Field(default=None, validate_default=True)
    schema_definition: Optional[Any] = Field(default=None, alias="schema", validate_default=True)
    attach_schema: Optional[bool] = None
    connection: Optional[Any] = None
    id_generation: Optional[str] = None
    transform: Optional[Callable[..., Any]] = None
    define_mutation_methods: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def _require_name_without_collection(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is None and info.data.get("collection") is None:
            raise ValueError("a collection name is required unless an existing collection is given")
        return value

    @field_validator("schema_definition")
    @classmethod
    def _check_schema_definition(cls, value: Any, info: ValidationInfo) -> Any:
        required = bool(info.context and info.context.get("schema_required"))
        if value is None:
            if required:
                raise ValueError("a schema definition is required when a schema factory is configured")
            return value
        if not isinstance(value, Mapping):
            raise ValueError(f"expected a mapping, received {type(value).__name__}")
        return value

    @field_validator("connection")
    @classmethod
    def _check_connection(cls, value: Any) -> Any:
        if value is not None and not is_connection(value):
            raise ValueError(
                "connection must expose callable " + ", ".join(CONNECTION_CAPABILITIES)
            )
        return value

    @field_validator("id_generation")
    @classmethod
    def _check_id_generation(cls, value: str | None) -> str | None:
        if value is not None and value not in ID_GENERATION_STRATEGIES:
            raise ValueError(f"expected one of {', '.join(ID_GENERATION_STRATEGIES)}")
        return value

    def handle_kwargs(self) -> dict[str, Any]:
        """Keyword arguments passed through to a new handle; unset options keep its defaults."""
        passthrough = {
            "connection": self.connection,
            "id_generation": self.id_generation,
            "transform": self.transform,
            "define_mutation_methods": self.define_mutation_methods,
        }
        return {key: value for key, value in passthrough.items() if value is not None}


def create_collection_factory(
    *,
    custom: type[Collection] | None = None,
    schema_factory: SchemaFactory | None = None,
) -> CollectionConstructor:
    """Return a constructor that builds collection handles.

    ``custom`` replaces :class:`Collection` as the class of new handles and must
    be that class or a subclass of it. ``schema_factory`` compiles the per-call
    ``schema`` definition; when given, every call must supply a schema.

    Raises :class:`ConfigurationError` for an invalid ``custom`` or a
    non-callable ``schema_factory``.
    """
    if custom is not None and not (isinstance(custom, type) and issubclass(custom, Collection)):
        raise ConfigurationError(
            f"custom must be Collection or a subclass of it, received {custom!r}."
        )
    if schema_factory is not None and not callable(schema_factory):
        raise ConfigurationError(
            f"schema_factory must be callable, received {type(schema_factory).__name__}."
        )

    product_class = custom or Collection
    schema_required = schema_factory is not None

    def create_collection(
        *,
        name: str | None = None,
        schema: Mapping[str, Any] | None = None,
        collection: Collection | None = None,
        attach_schema: bool | None = None,
        connection: Any = None,
        id_generation: str | None = None,
        transform: Transform | None = None,
        define_mutation_methods: bool | None = None,
    ) -> Collection:
        """Create a handle (or configure ``collection``) and return it.

        Every option is validated before anything is created or mutated; the
        first invalid option raises :class:`ValidationError`.
        """
        options = _validate_options(
            {
                "name": name,
                "schema": schema,
                "collection": collection,
                "attach_schema": attach_schema,
                "connection": connection,
                "id_generation": id_generation,
                "transform": transform,
                "define_mutation_methods": define_mutation_methods,
            },
            schema_required=schema_required,
        )

        if options.collection is not None:
            product = options.collection
            logger.debug("Reusing existing collection %r", product)
        else:
            product = product_class(options.name, **options.handle_kwargs())

        # Client mutations are denied unless an allow rule is registered later.
        product.deny(DENY_NOTHING)

        if schema_factory is not None:
            product.schema = schema_factory(options.schema_definition)

            attach = getattr(product, "attach_schema", None)
            if options.attach_schema is not False and callable(attach):
                attach(product.schema)
            elif options.attach_schema is not False:
                logger.debug("%r has no attach_schema capability; schema kept unattached", product)

        return product

    return create_collection


def _validate_options(raw: dict[str, Any], *, schema_required: bool) -> CollectionOptions:
    try:
        return CollectionOptions.model_validate(raw, context={"schema_required": schema_required})
    except PydanticValidationError as exc:
        error = exc.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else "options"
        raise ValidationError(field, error["msg"]) from None


__all__ = [
    "CollectionConstructor",
    "CollectionOptions",
    "SchemaFactory",
    "create_collection_factory",
]
