"""Collection factory: build document collection handles with default-deny policy."""

__version__ = "1.0.3"

from .errors import (  # noqa: E402
    AccessDeniedError,
    CollectionFactoryError,
    ConfigurationError,
    MutationMethodsDisabledError,
    ValidationError,
)
from .factory import create_collection_factory  # noqa: E402
from .schema import DocumentSchema, schema_from_definition  # noqa: E402
from .store import Collection  # noqa: E402

__all__ = [
    "__version__",
    "AccessDeniedError",
    "Collection",
    "CollectionFactoryError",
    "ConfigurationError",
    "DocumentSchema",
    "MutationMethodsDisabledError",
    "ValidationError",
    "create_collection_factory",
    "schema_from_definition",
]
