"""Runtime configuration for the default document store."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUTHY


@dataclass(slots=True)
class StoreConfig:
    """Settings for the default store, with environment fallbacks for unset fields."""

    database_url: str | None = None
    echo: bool | None = None
    insecure: bool | None = None

    def __post_init__(self) -> None:
        if self.database_url is None:
            self.database_url = (
                os.getenv("COLLECTION_FACTORY_DATABASE_URL") or os.getenv("DATABASE_URL")
            )
        if self.echo is None:
            self.echo = _env_flag("COLLECTION_FACTORY_ECHO")
        if self.insecure is None:
            self.insecure = _env_flag("COLLECTION_FACTORY_INSECURE")


__all__ = ["StoreConfig"]
