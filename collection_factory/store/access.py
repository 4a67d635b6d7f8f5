"""Allow/deny rules guarding client-initiated mutations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Mapping

MUTATIONS: tuple[str, ...] = ("insert", "update", "remove")

RuleKind = Literal["allow", "deny"]
Rule = Callable[..., Any]


@dataclass(slots=True)
class AccessRules:
    """Ordered allow and deny rules per mutation.

    Rules receive the data the mutation touches:

    - ``insert(user_id, doc)``
    - ``update(user_id, doc, field_names, modifier)``
    - ``remove(user_id, doc)``
    """

    allow_rules: dict[str, list[Rule]] = field(default_factory=lambda: {m: [] for m in MUTATIONS})
    deny_rules: dict[str, list[Rule]] = field(default_factory=lambda: {m: [] for m in MUTATIONS})
    restricted: bool = False

    def register(self, kind: RuleKind, rules: Mapping[str, Rule]) -> None:
        """Validate ``rules`` in full, then add them to the ``kind`` rule lists."""
        if kind not in ("allow", "deny"):
            raise ValueError(f"Unknown rule kind: {kind!r}")
        if not isinstance(rules, Mapping):
            raise TypeError(f"{kind}() expects a mapping of mutation name to rule.")

        for name, rule in rules.items():
            if name not in MUTATIONS:
                raise ValueError(f"{kind}: invalid key {name!r}; expected one of {MUTATIONS}.")
            if not callable(rule):
                raise TypeError(f"{kind}: value for {name!r} must be callable.")

        target = self.allow_rules if kind == "allow" else self.deny_rules
        for name, rule in rules.items():
            target[name].append(rule)
        self.restricted = True

    def check(self, mutation: str, *args: Any, insecure: bool = False) -> bool:
        """Return True when a client may perform ``mutation`` with ``args``."""
        if mutation not in MUTATIONS:
            raise ValueError(f"Unknown mutation: {mutation!r}")

        if not self.restricted:
            return insecure
        if any(rule(*args) for rule in self.deny_rules[mutation]):
            return False
        return any(rule(*args) for rule in self.allow_rules[mutation])


# Deny rules that never fire; registering them still restricts the handle.
DENY_NOTHING: dict[str, Rule] = {
    "insert": lambda *args: False,
    "update": lambda *args: False,
    "remove": lambda *args: False,
}


__all__ = ["AccessRules", "DENY_NOTHING", "MUTATIONS", "Rule", "RuleKind"]
