"""Exception types raised by the collection factory and its handles."""

from __future__ import annotations


class CollectionFactoryError(RuntimeError):
    """Base class for collection factory errors."""


class ConfigurationError(CollectionFactoryError):
    """Raised when a collection factory is built with invalid configuration."""


class ValidationError(CollectionFactoryError):
    """Raised when a collection constructor receives an invalid option."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Invalid option '{field}': {message}")


class AccessDeniedError(CollectionFactoryError):
    """Raised when a client mutation is rejected by the collection policy."""


class MutationMethodsDisabledError(CollectionFactoryError):
    """Raised when client mutations are attempted on a handle without mutation methods."""


__all__ = [
    "AccessDeniedError",
    "CollectionFactoryError",
    "ConfigurationError",
    "MutationMethodsDisabledError",
    "ValidationError",
]
