"""
Ordered extraction rules for provider profile payloads.

Each provider lists the fields it accepts for a value (display name,
account id) in priority order; the first populated one wins, otherwise a
provider-specific default applies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class FieldRule:
    """Pick one value out of a (possibly nested) JSON object."""

    name: str
    path: Tuple[str, ...]

    def extract(self, payload: Mapping[str, Any]) -> Optional[str]:
        value: Any = payload
        for key in self.path:
            if not isinstance(value, Mapping):
                return None
            value = value.get(key)
        if value is None or value == "":
            return None
        return str(value)


def field(*path: str) -> FieldRule:
    return FieldRule(name=".".join(path), path=tuple(path))


def first_match(
    payloads: Sequence[Mapping[str, Any]],
    rules: Sequence[FieldRule],
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Apply ``rules`` in order against each payload in order; return the first
    non-empty value, else ``default``.
    """
    for rule in rules:
        for payload in payloads:
            value = rule.extract(payload)
            if value is not None:
                return value
    return default
