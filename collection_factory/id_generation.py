"""Identifier strategies for new documents."""

from __future__ import annotations

import secrets

UNMISTAKABLE_CHARS = "23456789ABCDEFGHJKLMNPQRSTWXYZabcdefghijkmnopqrstuvwxyz"
STRING_ID_LENGTH = 17
MONGO_ID_BYTES = 12

ID_GENERATION_STRATEGIES: tuple[str, ...] = ("STRING", "MONGO")


def random_string_id(length: int = STRING_ID_LENGTH) -> str:
    return "".join(secrets.choice(UNMISTAKABLE_CHARS) for _ in range(length))


def random_object_id() -> str:
    return secrets.token_hex(MONGO_ID_BYTES)


def generate_id(strategy: str = "STRING") -> str:
    """Return a fresh document id for ``strategy``."""
    if strategy == "STRING":
        return random_string_id()
    if strategy == "MONGO":
        return random_object_id()
    raise ValueError(
        f"Unknown id generation strategy {strategy!r}; expected one of {ID_GENERATION_STRATEGIES}."
    )


__all__ = [
    "ID_GENERATION_STRATEGIES",
    "UNMISTAKABLE_CHARS",
    "generate_id",
    "random_object_id",
    "random_string_id",
]
