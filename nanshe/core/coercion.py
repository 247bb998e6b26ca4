"""
Primitive coercers for loosely-shaped backend payloads.

Every function here is total: malformed, missing or alternate-shaped input
degrades to a fallback value, never to an exception. Entity normalizers are
built on top of these so that call sites never branch on payload versions.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

TRUE_STRINGS = frozenset({"true", "1", "yes"})
FALSE_STRINGS = frozenset({"false", "0", "no"})

# Conventional list-holding keys, in priority order. The entity plural
# (e.g. "capsules") slots in right after "data".
LEADING_ARRAY_KEYS = ("items", "results", "data")
TRAILING_ARRAY_KEYS = ("list", "entries", "records")

TAG_LABEL_KEYS = ("label", "name", "title", "tag")

# Epoch values above this are already milliseconds.
EPOCH_MILLIS_THRESHOLD = 1e12


def conventional_keys(plural: str | Sequence[str] | None = None) -> tuple[str, ...]:
    """Ordered list-holding keys with the entity plural(s) in their slot."""
    if plural is None:
        extra: tuple[str, ...] = ()
    elif isinstance(plural, str):
        extra = (plural,)
    else:
        extra = tuple(plural)
    keys = LEADING_ARRAY_KEYS + extra + TRAILING_ARRAY_KEYS
    # Preserve first occurrence when a plural duplicates a trailing key.
    return tuple(dict.fromkeys(keys))


def to_number(value: Any, fallback: float = 0) -> float:
    """Return ``value`` as a finite number, or ``fallback``."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else fallback
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return fallback
        try:
            number = float(text)
        except ValueError:
            return fallback
        if not math.isfinite(number):
            return fallback
        return int(number) if number.is_integer() and "." not in text and "e" not in text.lower() else number
    return fallback


def to_boolean(value: Any, fallback: bool = False) -> bool:
    """Interpret booleans, yes/no-ish strings and numbers; else ``fallback``."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
        return fallback
    if isinstance(value, (int, float)):
        return value != 0
    return fallback


def to_array(payload: Any, plural: str | Sequence[str] | None = None) -> list[Any]:
    """
    Return the list held by ``payload``.

    Lists pass through; mappings are probed with the conventional keys in
    order and the first list found wins. Anything else yields ``[]``.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, tuple):
        return list(payload)
    if not isinstance(payload, Mapping):
        return []
    for key in conventional_keys(plural):
        candidate = payload.get(key)
        if isinstance(candidate, list):
            return candidate
    return []


def pick_first_string(source: Any, keys: Iterable[str], fallback: str = "") -> str:
    """First non-empty trimmed string among ``keys`` on ``source``."""
    if not isinstance(source, Mapping):
        return fallback
    for key in keys:
        value = source.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return fallback


def metadata_bags(source: Any, names: Iterable[str] = ("metadata", "meta")) -> tuple[Mapping, ...]:
    """Nested metadata mappings carried by ``source``, in lookup order."""
    if not isinstance(source, Mapping):
        return ()
    return tuple(source[name] for name in names if isinstance(source.get(name), Mapping))


def pick_first(
    source: Any,
    keys: Iterable[str],
    default: Any = None,
    bags: Iterable[Mapping] = (),
    bag_keys: Iterable[str] | None = None,
) -> Any:
    """
    Resolve a field from an ordered list of candidate keys.

    The first value that is not ``None`` wins. ``source`` is tried first,
    then each mapping in ``bags`` (typically the ``metadata``/``meta`` bags)
    with ``bag_keys`` (defaults to ``keys``), then ``default``.
    """
    keys = tuple(keys)
    if isinstance(source, Mapping):
        for key in keys:
            value = source.get(key)
            if value is not None:
                return value
    lookup = keys if bag_keys is None else tuple(bag_keys)
    for bag in bags:
        if not isinstance(bag, Mapping):
            continue
        for key in lookup:
            value = bag.get(key)
            if value is not None:
                return value
    return default


def _walk(source: Any, path: str | Sequence[str]) -> Any:
    segments = path.split(".") if isinstance(path, str) else path
    current = source
    for segment in segments:
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment)
    return current


def pick_first_path(source: Any, paths: Iterable[str | Sequence[str]], fallback: Any = None) -> Any:
    """
    Resolve the first non-null value among nested ``paths``.

    Strings are trimmed (blank means ``fallback``), numbers and booleans are
    returned as-is, and ``{"value": x}`` wrappers are unwrapped. Other shapes
    yield ``fallback``.
    """
    value = None
    for path in paths:
        value = _walk(source, path)
        if value is not None:
            break

    if value is None:
        return fallback
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed if trimmed else fallback
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, Mapping) and "value" in value:
        return value["value"]
    return fallback


def _format_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_iso_string(value: Any) -> str | None:
    """
    Convert a date-ish value to an ISO-8601 UTC string.

    Accepts ``datetime`` objects, epoch seconds or milliseconds and ISO
    strings. Returns ``None`` for anything empty or unparseable.
    """
    if not value:
        return None
    try:
        if isinstance(value, datetime):
            return _format_iso(value)
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            if not math.isfinite(value):
                return None
            seconds = value / 1000 if value > EPOCH_MILLIS_THRESHOLD else value
            return _format_iso(datetime.fromtimestamp(seconds, tz=UTC))
        if isinstance(value, str):
            trimmed = value.strip()
            if not trimmed:
                return None
            return _format_iso(datetime.fromisoformat(trimmed))
    except (ValueError, OverflowError, OSError):
        return None
    return None


def normalize_tags(value: Any) -> list[str]:
    """Flatten tag lists, tag objects or comma-separated strings to ``list[str]``."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        tags = []
        for entry in value:
            if isinstance(entry, str):
                tag = entry.strip()
            elif isinstance(entry, Mapping):
                tag = pick_first_string(entry, TAG_LABEL_KEYS)
            else:
                tag = ""
            if tag:
                tags.append(tag)
        return tags
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return []


def to_mapping(value: Any) -> dict[str, Any]:
    """Return ``value`` when it is a mapping, else an empty dict."""
    return dict(value) if isinstance(value, Mapping) else {}


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(value, upper))
