"""Collection handle: a named set of documents with trusted and client mutation paths."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Protocol

from sqlalchemy.orm import Session, sessionmaker

from collection_factory.config import StoreConfig
from collection_factory.connection import Connection
from collection_factory.db.engine import get_default_session_factory
from collection_factory.errors import AccessDeniedError, MutationMethodsDisabledError
from collection_factory.id_generation import ID_GENERATION_STRATEGIES, generate_id, random_string_id
from collection_factory.repositories.document_repository import Document, DocumentRepository
from collection_factory.repositories.selectors import (
    ID_FIELD,
    Selector,
    modified_fields,
    selector_id,
)
from collection_factory.store.access import AccessRules, Rule

logger = logging.getLogger(__name__)

Transform = Callable[[Document], Any]

_UNSET: Any = object()


class CompiledSchema(Protocol):
    """Validator produced by a schema factory."""

    def validate(self, document: Mapping[str, Any]) -> Any: ...


class Collection:
    """Handle to a named collection of documents in the store."""

    def __init__(
        self,
        name: str | None,
        *,
        connection: Connection | None = None,
        id_generation: str = "STRING",
        transform: Transform | None = None,
        define_mutation_methods: bool = True,
        session_factory: sessionmaker[Session] | None = None,
        config: StoreConfig | None = None,
    ):
        if name is not None and not isinstance(name, str):
            raise TypeError(f"Collection name must be a string or None, received {type(name).__name__}.")
        if id_generation not in ID_GENERATION_STRATEGIES:
            raise ValueError(
                f"Unknown id generation strategy {id_generation!r}; "
                f"expected one of {ID_GENERATION_STRATEGIES}."
            )
        if transform is not None and not callable(transform):
            raise TypeError("transform must be callable or None.")

        self._name = name
        # Unnamed handles are local: they get a private namespace nobody else can address.
        self._namespace = name if name is not None else f"__local__.{random_string_id()}"
        self._config = config or StoreConfig()
        self._repository = DocumentRepository(
            session_factory or get_default_session_factory(self._config)
        )
        self._rules = AccessRules()
        self._attached_schema: CompiledSchema | None = None

        self.connection = connection
        self.id_generation = id_generation
        self.transform = transform
        self.define_mutation_methods = define_mutation_methods
        self.schema: Any = None

        logger.debug("Created collection handle %s", self._namespace)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r})"

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def attached_schema(self) -> CompiledSchema | None:
        return self._attached_schema

    @property
    def restricted(self) -> bool:
        """True once any allow or deny rule has been registered."""
        return self._rules.restricted

    # ------------------------------------------------------------------ Queries
    def find(
        self,
        selector: Selector = None,
        *,
        limit: int | None = None,
        transform: Transform | None = _UNSET,
    ) -> list[Any]:
        """Return matching documents in insertion order, transformed on read."""
        documents = self._repository.query(self._namespace, selector, limit=limit)
        return [self._apply_transform(doc, transform) for doc in documents]

    def find_one(self, selector: Selector = None, *, transform: Transform | None = _UNSET) -> Any:
        documents = self._repository.query(self._namespace, selector, limit=1)
        if not documents:
            return None
        return self._apply_transform(documents[0], transform)

    def count(self, selector: Selector = None) -> int:
        return self._repository.count(self._namespace, selector)

    # --------------------------------------------------------- Trusted writes
    def insert(self, doc: Mapping[str, Any]) -> str:
        """Insert ``doc`` and return its id, generating one when missing."""
        document = self._prepare_insert(doc)
        self._validate_document(document)
        return self._repository.insert(self._namespace, document)

    def update(
        self,
        selector: Selector,
        modifier: Mapping[str, Any],
        *,
        multi: bool = False,
        upsert: bool = False,
    ) -> int:
        """Apply ``modifier`` to matching documents; returns the number written."""
        return self._repository.update(
            self._namespace,
            selector,
            modifier,
            multi=multi,
            upsert=upsert,
            validator=self._validate_document,
            id_factory=lambda: generate_id(self.id_generation),
        )

    def remove(self, selector: Selector) -> int:
        if selector is None:
            raise ValueError("remove() requires a selector; pass {} to remove every document.")
        return self._repository.remove(self._namespace, selector)

    # ------------------------------------------------------------------ Policy
    def allow(self, rules: Mapping[str, Rule]) -> None:
        """Register rules that may permit client mutations."""
        self._rules.register("allow", rules)

    def deny(self, rules: Mapping[str, Rule]) -> None:
        """Register rules that veto client mutations; any registration restricts the handle."""
        self._rules.register("deny", rules)

    def attach_schema(self, schema: CompiledSchema) -> None:
        """Validate every subsequent trusted insert and update against ``schema``."""
        if not callable(getattr(schema, "validate", None)):
            raise TypeError("Attached schemas must expose a callable 'validate'.")
        self._attached_schema = schema
        logger.debug("Attached schema %r to %s", schema, self._namespace)

    # ---------------------------------------------------------- Client writes
    def client_insert(self, doc: Mapping[str, Any], *, user_id: str | None = None) -> str:
        """Insert on behalf of an untrusted caller, subject to allow/deny rules."""
        self._require_mutation_methods("insert")
        document = self._prepare_insert(doc)
        if not self._rules.check("insert", user_id, dict(document), insecure=self._insecure):
            raise AccessDeniedError(f"Access denied: insert into {self._label}.")
        return self.insert(document)

    def client_update(
        self,
        selector: Selector,
        modifier: Mapping[str, Any],
        *,
        user_id: str | None = None,
    ) -> int:
        """Update a single document by id on behalf of an untrusted caller."""
        self._require_mutation_methods("update")
        doc_id = self._require_id_selector(selector, "update")
        current = self._repository.get(self._namespace, doc_id)
        if current is None:
            return 0
        fields = modified_fields(modifier)
        if not self._rules.check("update", user_id, current, fields, modifier, insecure=self._insecure):
            raise AccessDeniedError(f"Access denied: update in {self._label}.")
        return self.update(doc_id, modifier)

    def client_remove(self, selector: Selector, *, user_id: str | None = None) -> int:
        """Remove a single document by id on behalf of an untrusted caller."""
        self._require_mutation_methods("remove")
        doc_id = self._require_id_selector(selector, "remove")
        current = self._repository.get(self._namespace, doc_id)
        if current is None:
            return 0
        if not self._rules.check("remove", user_id, current, insecure=self._insecure):
            raise AccessDeniedError(f"Access denied: remove from {self._label}.")
        return self.remove(doc_id)

    # ----------------------------------------------------------------- Helpers
    @property
    def _insecure(self) -> bool:
        return bool(self._config.insecure)

    @property
    def _label(self) -> str:
        return repr(self._name) if self._name is not None else "local collection"

    def _prepare_insert(self, doc: Mapping[str, Any]) -> Document:
        if not isinstance(doc, Mapping):
            raise TypeError(f"Documents must be mappings, received {type(doc).__name__}.")
        document = dict(doc)
        if document.get(ID_FIELD) is None:
            document[ID_FIELD] = generate_id(self.id_generation)
        return document

    def _validate_document(self, document: Mapping[str, Any]) -> None:
        if self._attached_schema is None:
            return
        self._attached_schema.validate(
            {key: value for key, value in document.items() if key != ID_FIELD}
        )

    def _apply_transform(self, document: Document, transform: Transform | None) -> Any:
        fn = self.transform if transform is _UNSET else transform
        return fn(document) if fn is not None else document

    def _require_mutation_methods(self, mutation: str) -> None:
        if not self.define_mutation_methods:
            raise MutationMethodsDisabledError(
                f"Client {mutation} is not available: mutation methods are not defined for {self._label}."
            )

    def _require_id_selector(self, selector: Selector, mutation: str) -> str:
        doc_id = selector_id(selector)
        if doc_id is None:
            raise AccessDeniedError(
                f"Not permitted. Untrusted code may only {mutation} documents by id."
            )
        return doc_id


__all__ = ["Collection", "CompiledSchema", "Transform"]
