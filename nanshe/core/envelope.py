"""
Collection unwrapper for envelope payloads.

Backends return lists bare, under a conventional key, inside a pagination
object or under ``values``. ``unwrap`` finds the list with a fixed probe
order; changing the order changes which field wins when a payload carries
two candidate arrays, so it is covered by tests.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from .coercion import conventional_keys

MAX_NESTING_DEPTH = 3


def unwrap(payload: Any, plural: str | Sequence[str] | None = None) -> list[Any]:
    """
    Locate the list inside an envelope payload.

    Probe order: list passthrough, ``pagination.items``, conventional keys
    (``items, results, data, <plural>, list, entries, records``), ``values``.
    Returns ``[]`` when nothing matches.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, tuple):
        return list(payload)
    if not isinstance(payload, Mapping):
        return []

    pagination = payload.get("pagination")
    if isinstance(pagination, Mapping) and isinstance(pagination.get("items"), list):
        return pagination["items"]

    for key in conventional_keys(plural):
        candidate = payload.get(key)
        if isinstance(candidate, list):
            return candidate

    if isinstance(payload.get("values"), list):
        return payload["values"]

    return []


def unwrap_nested(
    payload: Any,
    plural: str | Sequence[str] | None = None,
    depth: int = 0,
) -> list[Any]:
    """
    ``unwrap`` that also descends into mapping-valued conventional keys.

    Used for payloads such as ``{"data": {"entries": [...]}}``. Recursion
    stops after ``MAX_NESTING_DEPTH`` levels.
    """
    if payload is None or depth > MAX_NESTING_DEPTH:
        return []
    found = unwrap(payload, plural)
    if found or not isinstance(payload, Mapping):
        return found

    for key in conventional_keys(plural):
        candidate = payload.get(key)
        if isinstance(candidate, Mapping):
            nested = unwrap_nested(candidate, plural, depth + 1)
            if nested:
                return nested
    return []
