from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .models import MirrorRecord
from .properties import PropertyValue

MAX_DIFF_VALUE = 120


def _existing_properties(
    existing: MirrorRecord | Mapping[str, PropertyValue],
) -> Mapping[str, PropertyValue]:
    if isinstance(existing, MirrorRecord):
        return existing.properties
    return existing


def canonical(value: PropertyValue | None) -> str | None:
    return None if value is None else value.canonical()


def needs_write(
    existing: MirrorRecord | Mapping[str, PropertyValue], target: Mapping[str, PropertyValue]
) -> bool:
    """True when any field listed in ``target`` differs from ``existing``.

    Fields absent from ``target`` are never looked at.
    """
    current = _existing_properties(existing)
    for name, desired in target.items():
        have = current.get(name)
        if have is None or desired is None:
            return True
        if have.canonical() != desired.canonical():
            return True
    return False


def _truncate(text: str | None) -> str | None:
    if text is None or len(text) <= MAX_DIFF_VALUE:
        return text
    return text[:MAX_DIFF_VALUE] + "..."


def compute_diff(
    existing: MirrorRecord | Mapping[str, PropertyValue], target: Mapping[str, PropertyValue]
) -> dict[str, dict[str, Any]]:
    """Per-field ``{"from": ..., "to": ...}`` for every differing target field."""
    current = _existing_properties(existing)
    d: dict[str, dict[str, Any]] = {}
    for name, desired in target.items():
        before = canonical(current.get(name))
        after = canonical(desired)
        if before != after:
            d[name] = {"from": _truncate(before), "to": _truncate(after)}
    return d


__all__ = ["MAX_DIFF_VALUE", "canonical", "compute_diff", "needs_write"]
