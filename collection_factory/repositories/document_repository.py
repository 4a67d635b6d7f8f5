"""SQLAlchemy-backed repository for collection documents."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path, PurePath
from typing import Any, Callable, Mapping
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from collection_factory.db.schema import DbDocument
from collection_factory.repositories.selectors import (
    ID_FIELD,
    Selector,
    apply_modifier,
    equality_seed,
    matches,
    selector_id,
)

logger = logging.getLogger(__name__)

# Type tags for values JSON cannot hold natively.
DATETIME_TAG = "$date"
DATE_TAG = "$day"
UUID_TAG = "$uuid"
PATH_TAG = "$path"
TUPLE_TAG = "$tuple"
SET_TAG = "$set"
FROZENSET_TAG = "$frozenset"

Document = dict[str, Any]
DocumentValidator = Callable[[Document], None]


class RepositoryError(RuntimeError):
    """Base class for repository-level errors."""


class DuplicateDocumentError(RepositoryError):
    """Raised when a document id already exists in the target collection."""


class DocumentRepository:
    """Repository that persists documents of every collection in one table."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get(self, collection: str, doc_id: str) -> Document | None:
        with self._session_factory() as session:
            row = session.get(DbDocument, (collection, doc_id))
            return self._to_document(row) if row is not None else None

    def query(
        self,
        collection: str,
        selector: Selector = None,
        *,
        limit: int | None = None,
    ) -> list[Document]:
        """Return documents of ``collection`` matching ``selector`` in insertion order."""
        if limit is not None and limit < 0:
            raise ValueError("Limit must be a non-negative integer or None.")

        with self._session_factory() as session:
            rows = self._matching_rows(session, collection, selector, limit=limit)
            return [self._to_document(row) for row in rows]

    def count(self, collection: str, selector: Selector = None) -> int:
        with self._session_factory() as session:
            return len(self._matching_rows(session, collection, selector))

    def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        """Persist ``document``; it must already carry a string ``_id``."""
        doc_id = document.get(ID_FIELD)
        if not isinstance(doc_id, str) or not doc_id:
            raise ValueError("Documents must carry a non-empty string '_id' before insert.")

        with self._session_factory() as session:
            self._add_row(session, collection, document)
            self._commit(session, collection, doc_id)

        logger.debug("Inserted document %s into %s", doc_id, collection)
        return doc_id

    def update(
        self,
        collection: str,
        selector: Selector,
        modifier: Mapping[str, Any],
        *,
        multi: bool = False,
        upsert: bool = False,
        validator: DocumentValidator | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> int:
        """Apply ``modifier`` to matching documents and return how many were written.

        ``validator`` sees every resulting document before anything is written;
        a failure leaves the collection untouched.
        """
        with self._session_factory() as session:
            rows = self._matching_rows(session, collection, selector, limit=None if multi else 1)

            if not rows:
                if not upsert:
                    return 0
                document = apply_modifier(equality_seed(selector), modifier)
                if ID_FIELD not in document:
                    if id_factory is None:
                        raise ValueError("An id factory is required to upsert without an '_id'.")
                    document[ID_FIELD] = id_factory()
                if validator is not None:
                    validator(document)
                self._add_row(session, collection, document)
                self._commit(session, collection, document[ID_FIELD])
                logger.debug("Upserted document %s into %s", document[ID_FIELD], collection)
                return 1

            for row in rows:
                updated = apply_modifier(self._to_document(row), modifier)
                if validator is not None:
                    validator(updated)
                row.body = _to_body(updated)
            session.commit()

        logger.debug("Updated %d document(s) in %s", len(rows), collection)
        return len(rows)

    def remove(self, collection: str, selector: Selector) -> int:
        with self._session_factory() as session:
            rows = self._matching_rows(session, collection, selector)
            for row in rows:
                session.delete(row)
            session.commit()

        logger.debug("Removed %d document(s) from %s", len(rows), collection)
        return len(rows)

    # ----------------------------------------------------------------- Helpers
    def _matching_rows(
        self,
        session: Session,
        collection: str,
        selector: Selector,
        *,
        limit: int | None = None,
    ) -> list[DbDocument]:
        query = session.query(DbDocument).filter(DbDocument.collection == collection)
        target_id = selector_id(selector)
        if target_id is not None:
            query = query.filter(DbDocument.id == target_id)
        query = query.order_by(DbDocument.seq)

        matched: list[DbDocument] = []
        for row in query.all():
            if limit is not None and len(matched) >= limit:
                break
            if matches(self._to_document(row), selector):
                matched.append(row)
        return matched

    @staticmethod
    def _add_row(session: Session, collection: str, document: Mapping[str, Any]) -> None:
        doc_id = document[ID_FIELD]
        if session.get(DbDocument, (collection, doc_id)) is not None:
            raise DuplicateDocumentError(
                f"Document {doc_id!r} already exists in collection {collection!r}."
            )
        last_seq = (
            session.query(func.max(DbDocument.seq))
            .filter(DbDocument.collection == collection)
            .scalar()
        )
        session.add(
            DbDocument(
                collection=collection,
                id=doc_id,
                seq=(last_seq or 0) + 1,
                body=_to_body(document),
            )
        )

    @staticmethod
    def _commit(session: Session, collection: str, doc_id: str) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise DuplicateDocumentError(
                f"Document {doc_id!r} already exists in collection {collection!r}."
            ) from exc

    @staticmethod
    def _to_document(row: DbDocument) -> Document:
        document: Document = {ID_FIELD: row.id}
        document.update(_from_jsonable(row.body or {}))
        return document


def _to_body(document: Mapping[str, Any]) -> dict[str, Any]:
    return {
        _escape_key(str(key)): _jsonable(value)
        for key, value in document.items()
        if key != ID_FIELD
    }


# User keys starting with "$" are stored with one extra "$", so a stored
# single-key mapping whose key has exactly one leading "$" is always a type tag.
def _escape_key(key: str) -> str:
    return f"${key}" if key.startswith("$") else key


def _unescape_key(key: str) -> str:
    return key[1:] if key.startswith("$$") else key


def _jsonable(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, UUID):
        return {UUID_TAG: str(value)}
    if isinstance(value, datetime):
        return {DATETIME_TAG: value.isoformat()}
    if isinstance(value, date):
        return {DATE_TAG: value.isoformat()}
    if isinstance(value, PurePath):
        return {PATH_TAG: str(value)}
    if isinstance(value, Mapping):
        return {_escape_key(str(key)): _jsonable(val) for key, val in value.items()}
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    if isinstance(value, tuple):
        return {TUPLE_TAG: [_jsonable(item) for item in value]}
    if isinstance(value, frozenset):
        return {FROZENSET_TAG: [_jsonable(item) for item in value]}
    if isinstance(value, set):
        return {SET_TAG: [_jsonable(item) for item in value]}
    return value


def _from_jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1:
            (key, payload), = value.items()
            decode = _TAG_DECODERS.get(key)
            if decode is not None:
                return decode(payload)
        return {_unescape_key(key): _from_jsonable(val) for key, val in value.items()}
    if isinstance(value, list):
        return [_from_jsonable(item) for item in value]
    return value


_TAG_DECODERS: dict[str, Callable[[Any], Any]] = {
    DATETIME_TAG: datetime.fromisoformat,
    DATE_TAG: date.fromisoformat,
    UUID_TAG: UUID,
    PATH_TAG: Path,
    TUPLE_TAG: lambda items: tuple(_from_jsonable(item) for item in items),
    SET_TAG: lambda items: {_from_jsonable(item) for item in items},
    FROZENSET_TAG: lambda items: frozenset(_from_jsonable(item) for item in items),
}


__all__ = [
    "DocumentRepository",
    "DuplicateDocumentError",
    "RepositoryError",
]
