"""SQLAlchemy declarative schema for collection documents."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.sqltypes import JSON

JSON_TYPE = JSON().with_variant(JSONB, "postgresql")


class Base(DeclarativeBase):
    """Base class for SQLAlchemy declarative mappings."""


class DbDocument(Base):
    """ORM mapping for a single document within a named collection."""

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_collection", "collection"),
        Index("ix_documents_collection_seq", "collection", "seq"),
    )

    collection: Mapped[str] = mapped_column(String(255), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Insertion order within a collection; find() returns rows in this order.
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    body: Mapped[dict[str, Any]] = mapped_column(JSON_TYPE, default=dict, nullable=False)


def create_all(engine: Engine) -> None:
    """Create database tables for the schema."""
    Base.metadata.create_all(engine, checkfirst=True)


__all__ = ["Base", "DbDocument", "JSON_TYPE", "create_all"]
