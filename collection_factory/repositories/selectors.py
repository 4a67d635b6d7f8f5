"""Selector matching and modifier application for collection documents."""

from __future__ import annotations

import copy
from typing import Any, Callable, Mapping

ID_FIELD = "_id"

Selector = str | Mapping[str, Any] | None

_MISSING = object()


def normalise_selector(selector: Selector) -> dict[str, Any]:
    """Return ``selector`` as a field mapping; id strings become ``{"_id": id}``."""
    if selector is None:
        return {}
    if isinstance(selector, str):
        return {ID_FIELD: selector}
    if isinstance(selector, Mapping):
        return dict(selector)
    raise TypeError(f"Unsupported selector type: {type(selector).__name__}.")


def selector_id(selector: Selector) -> str | None:
    """Return the document id when ``selector`` targets exactly one document by id."""
    normalised = normalise_selector(selector)
    if set(normalised) != {ID_FIELD}:
        return None
    value = normalised[ID_FIELD]
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping) and set(value) == {"$eq"} and isinstance(value["$eq"], str):
        return value["$eq"]
    return None


def equality_seed(selector: Selector) -> dict[str, Any]:
    """Return the plain-equality fields of ``selector`` (used to seed upserts)."""
    seed: dict[str, Any] = {}
    for path, condition in normalise_selector(selector).items():
        if isinstance(condition, Mapping) and _is_operator_mapping(condition):
            if "$eq" not in condition:
                continue
            condition = condition["$eq"]
        _set_path(seed, path, copy.deepcopy(condition))
    return seed


def matches(document: Mapping[str, Any], selector: Selector) -> bool:
    """Return True when ``document`` satisfies every field condition in ``selector``."""
    for path, condition in normalise_selector(selector).items():
        value = _get_path(document, path)
        if isinstance(condition, Mapping) and _is_operator_mapping(condition):
            for operator, operand in condition.items():
                if not _apply_operator(operator, value, operand):
                    return False
        elif value is _MISSING or value != condition:
            return False
    return True


def apply_modifier(document: Mapping[str, Any], modifier: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new document with ``modifier`` applied to ``document``.

    A modifier without ``$`` keys replaces the whole document, keeping ``_id``.
    """
    if not isinstance(modifier, Mapping):
        raise TypeError(f"Modifier must be a mapping, received {type(modifier).__name__}.")

    operator_keys = [key for key in modifier if key.startswith("$")]
    if operator_keys and len(operator_keys) != len(modifier):
        raise ValueError("Modifier cannot mix update operators with plain fields.")

    if not operator_keys:
        if ID_FIELD in modifier and modifier[ID_FIELD] != document.get(ID_FIELD):
            raise ValueError("The '_id' field cannot be modified.")
        replacement = copy.deepcopy(dict(modifier))
        if ID_FIELD in document:
            replacement[ID_FIELD] = document[ID_FIELD]
        return replacement

    updated = copy.deepcopy(dict(document))
    for operator, fields in modifier.items():
        handler = _MODIFIERS.get(operator)
        if handler is None:
            raise ValueError(f"Unsupported modifier operator: {operator}")
        if not isinstance(fields, Mapping):
            raise TypeError(f"Modifier {operator} expects a mapping of fields.")
        for path, operand in fields.items():
            if path == ID_FIELD or path.startswith(f"{ID_FIELD}."):
                raise ValueError("The '_id' field cannot be modified.")
            handler(updated, path, operand)
    return updated


def modified_fields(modifier: Mapping[str, Any]) -> list[str]:
    """Return the top-level field names touched by ``modifier``."""
    if any(key.startswith("$") for key in modifier):
        names = {
            path.split(".", 1)[0]
            for fields in modifier.values()
            if isinstance(fields, Mapping)
            for path in fields
        }
    else:
        names = {key for key in modifier if key != ID_FIELD}
    return sorted(names)


def _is_operator_mapping(condition: Mapping[str, Any]) -> bool:
    return bool(condition) and all(isinstance(key, str) and key.startswith("$") for key in condition)


def _get_path(document: Mapping[str, Any], path: str) -> Any:
    current: Any = document
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return _MISSING
        current = current[segment]
    return current


def _set_path(document: dict[str, Any], path: str, value: Any) -> None:
    segments = path.split(".")
    current = document
    for segment in segments[:-1]:
        nested = current.get(segment)
        if not isinstance(nested, dict):
            nested = {}
            current[segment] = nested
        current = nested
    current[segments[-1]] = value


def _unset_path(document: dict[str, Any], path: str) -> None:
    segments = path.split(".")
    current: Any = document
    for segment in segments[:-1]:
        current = current.get(segment) if isinstance(current, dict) else None
        if current is None:
            return
    if isinstance(current, dict):
        current.pop(segments[-1], None)


def _comparable(value: Any, operand: Any) -> bool:
    if value is _MISSING or value is None or operand is None:
        return False
    if isinstance(value, bool) or isinstance(operand, bool):
        return False
    numbers = (int, float)
    if isinstance(value, numbers) and isinstance(operand, numbers):
        return True
    return type(value) is type(operand)


def _apply_operator(operator: str, value: Any, operand: Any) -> bool:
    if operator == "$eq":
        return value is not _MISSING and value == operand
    if operator == "$ne":
        return value is _MISSING or value != operand
    if operator == "$in":
        return value is not _MISSING and value in list(operand)
    if operator == "$nin":
        return value is _MISSING or value not in list(operand)
    if operator == "$exists":
        return (value is not _MISSING) == bool(operand)
    if operator in _COMPARISONS:
        return _comparable(value, operand) and _COMPARISONS[operator](value, operand)
    raise ValueError(f"Unsupported selector operator: {operator}")


_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "$gt": lambda value, operand: value > operand,
    "$gte": lambda value, operand: value >= operand,
    "$lt": lambda value, operand: value < operand,
    "$lte": lambda value, operand: value <= operand,
}


def _modify_set(document: dict[str, Any], path: str, operand: Any) -> None:
    _set_path(document, path, copy.deepcopy(operand))


def _modify_unset(document: dict[str, Any], path: str, operand: Any) -> None:
    _unset_path(document, path)


def _modify_inc(document: dict[str, Any], path: str, operand: Any) -> None:
    if isinstance(operand, bool) or not isinstance(operand, (int, float)):
        raise TypeError(f"$inc expects a number for '{path}'.")
    current = _get_path(document, path)
    if current is _MISSING:
        current = 0
    if isinstance(current, bool) or not isinstance(current, (int, float)):
        raise TypeError(f"Cannot apply $inc to non-numeric field '{path}'.")
    _set_path(document, path, current + operand)


def _modify_push(document: dict[str, Any], path: str, operand: Any) -> None:
    current = _get_path(document, path)
    if current is _MISSING:
        current = []
    if not isinstance(current, list):
        raise TypeError(f"Cannot apply $push to non-array field '{path}'.")
    _set_path(document, path, [*current, copy.deepcopy(operand)])


_MODIFIERS: dict[str, Callable[[dict[str, Any], str, Any], None]] = {
    "$set": _modify_set,
    "$unset": _modify_unset,
    "$inc": _modify_inc,
    "$push": _modify_push,
}


__all__ = [
    "ID_FIELD",
    "Selector",
    "apply_modifier",
    "equality_seed",
    "matches",
    "modified_fields",
    "normalise_selector",
    "selector_id",
]
