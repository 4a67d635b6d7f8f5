"""Database engine helpers and the process-wide default store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from collection_factory.config import StoreConfig
from collection_factory.db.schema import create_all

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_URL = "sqlite+pysqlite:///:memory:"

_default_session_factory: sessionmaker[Session] | None = None


def create_engine(
    connection_string: str | None = None,
    *,
    sqlite_path: str | Path | None = None,
    echo: bool = False,
    connect_args: Mapping[str, Any] | None = None,
) -> Engine:
    """Create a SQLAlchemy engine for the document store.

    Parameters
    ----------
    connection_string:
        Full SQLAlchemy URL. Takes precedence over ``sqlite_path``.
    sqlite_path:
        Filesystem path to a SQLite database file. Expanded to an absolute path.
    echo:
        Enable SQLAlchemy engine echo logging.
    connect_args:
        Optional mapping passed through to ``sqlalchemy.create_engine``.

    Notes
    -----
    - When neither ``connection_string`` nor ``sqlite_path`` are provided, an
      in-memory SQLite database is used. It is held on a single shared
      connection so every session sees the same documents.
    """
    if connection_string and sqlite_path is not None:
        raise ValueError("Provide either 'connection_string' or 'sqlite_path', not both.")

    if connection_string:
        url = connection_string
    elif sqlite_path is not None:
        db_path = Path(sqlite_path).expanduser().resolve()
        url = f"sqlite+pysqlite:///{db_path.as_posix()}"
    else:
        url = DEFAULT_SQLITE_URL

    if url == DEFAULT_SQLITE_URL:
        args = {"check_same_thread": False, **(connect_args or {})}
        return sa_create_engine(url, echo=echo, connect_args=args, poolclass=StaticPool)

    return sa_create_engine(url, echo=echo, connect_args=connect_args or {})


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a configured session factory bound to the given engine."""
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


def get_default_session_factory(config: StoreConfig | None = None) -> sessionmaker[Session]:
    """Return the shared session factory, building it from ``config`` on first use."""
    global _default_session_factory
    if _default_session_factory is None:
        cfg = config or StoreConfig()
        engine = create_engine(cfg.database_url, echo=bool(cfg.echo))
        create_all(engine)
        logger.debug("Initialised default document store on %s", engine.url.render_as_string())
        _default_session_factory = create_session_factory(engine)
    return _default_session_factory


def set_default_session_factory(session_factory: sessionmaker[Session]) -> None:
    """Replace the shared session factory used by handles created without one."""
    global _default_session_factory
    _default_session_factory = session_factory


def reset_default_session_factory() -> None:
    global _default_session_factory
    _default_session_factory = None


__all__ = [
    "DEFAULT_SQLITE_URL",
    "create_engine",
    "create_session_factory",
    "get_default_session_factory",
    "reset_default_session_factory",
    "set_default_session_factory",
]
