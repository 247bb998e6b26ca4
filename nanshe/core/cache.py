"""
Query cache keyed by stable tuples, e.g. ``("atoms", molecule_id)``.

Invalidation is prefix-based and broad: after a mutation every entry under
a coarse prefix such as ``("capsule",)`` is dropped rather than patched.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Hashable, Iterable, Mapping
from typing import Any

from loguru import logger

QueryKey = tuple[Hashable, ...]

# Prefixes dropped after any progress mutation.
LEARNING_PREFIXES: tuple[QueryKey, ...] = (
    ("capsule",),
    ("learningSession",),
    ("atoms",),
)


def _freeze(value: Any) -> Hashable:
    if isinstance(value, Mapping):
        return params_key(value)
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return tuple(sorted((_freeze(item) for item in value), key=repr))
    return value if isinstance(value, Hashable) else repr(value)


def params_key(params: Mapping[str, Any] | None) -> QueryKey:
    """Hashable, order-independent key part for query parameters."""
    items = ((name, _freeze(value)) for name, value in (params or {}).items())
    return tuple(sorted(items, key=lambda item: str(item[0])))


class QueryCache:
    """In-memory cache of normalized query results."""

    def __init__(self) -> None:
        self._entries: dict[QueryKey, Any] = {}

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: QueryKey, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def set(self, key: QueryKey, value: Any) -> None:
        self._entries[key] = value

    async def fetch(self, key: QueryKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key``, loading it on a miss."""
        if key in self._entries:
            logger.debug(f"Cache hit: {key}")
            return self._entries[key]
        value = await loader()
        self._entries[key] = value
        return value

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry whose key starts with ``prefix``. Returns the count."""
        size = len(prefix)
        stale = [key for key in self._entries if key[:size] == prefix]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"Invalidated {len(stale)} cached queries under {prefix}")
        return len(stale)

    def invalidate_many(self, prefixes: Iterable[QueryKey]) -> int:
        return sum(self.invalidate(prefix) for prefix in prefixes)

    def clear(self) -> None:
        self._entries.clear()
