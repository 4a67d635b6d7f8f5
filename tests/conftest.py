from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from collection_factory.db.engine import (
    create_engine,
    create_session_factory,
    reset_default_session_factory,
    set_default_session_factory,
)
from collection_factory.db.schema import Base, DbDocument, create_all
from collection_factory.id_generation import random_string_id
from collection_factory.repositories.document_repository import DocumentRepository


@pytest.fixture(scope="session")
def postgres_url() -> str | None:
    """Return the Postgres test URL if provided via env."""
    return os.getenv("POSTGRES_TEST_URL") or os.getenv("DATABASE_URL")


@pytest.fixture
def engine(postgres_url: str | None) -> Iterator[Engine]:
    """Yield an engine targeting Postgres when configured; otherwise SQLite in-memory."""
    engine = create_engine(postgres_url) if postgres_url else create_engine()
    create_all(engine)
    try:
        yield engine
    finally:
        with engine.begin() as connection:
            if engine.dialect.name == "sqlite":
                Base.metadata.drop_all(bind=connection)
            else:
                connection.execute(DbDocument.__table__.delete())
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture(autouse=True)
def default_store(session_factory: sessionmaker[Session], monkeypatch) -> Iterator[sessionmaker[Session]]:
    """Point handles created without a session factory at the per-test engine."""
    monkeypatch.delenv("COLLECTION_FACTORY_INSECURE", raising=False)
    set_default_session_factory(session_factory)
    try:
        yield session_factory
    finally:
        reset_default_session_factory()


@pytest.fixture
def repository(session_factory: sessionmaker[Session]) -> DocumentRepository:
    return DocumentRepository(session_factory)


@pytest.fixture
def random_name() -> str:
    return random_string_id()
