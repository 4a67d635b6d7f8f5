"""Structural checks for transport connections passed to collections."""

from __future__ import annotations

from typing import Any, Protocol

CONNECTION_CAPABILITIES: tuple[str, ...] = (
    "call",
    "subscribe",
    "apply",
    "status",
    "reconnect",
    "disconnect",
)


class Connection(Protocol):
    """Transport a collection can be bound to instead of the default store."""

    def call(self, name: str, *args: Any) -> Any: ...

    def subscribe(self, name: str, *args: Any) -> Any: ...

    def apply(self, name: str, args: list[Any], options: dict[str, Any] | None = None) -> Any: ...

    def status(self) -> Any: ...

    def reconnect(self) -> None: ...

    def disconnect(self) -> None: ...


def is_connection(candidate: Any) -> bool:
    """Return True when ``candidate`` exposes every connection capability as a callable.

    :class:`Connection` is a static typing aid only; this is the runtime check.
    """
    if candidate is None:
        return False
    return all(callable(getattr(candidate, name, None)) for name in CONNECTION_CAPABILITIES)


__all__ = ["CONNECTION_CAPABILITIES", "Connection", "is_connection"]
