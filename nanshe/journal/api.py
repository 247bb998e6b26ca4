"""
Journal endpoints.

The journal moved several times between API versions; every call walks
the same four path families with the 404/405 fallback policy.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from nanshe.core.cache import QueryCache, params_key
from nanshe.core.http import ApiClient, response_json

from .models import JournalEntry, JournalList
from .normalizers import extract_first_entry, normalize_journal_entry, normalize_journal_list

JOURNAL_BASE_PATHS = (
    "/journal/entries",
    "/learning/journal/entries",
    "/journal",
    "/toolbox/journal",
)

# Keys the UI layer attaches to drafts that must never reach the backend.
INTERNAL_KEYS = frozenset({"__internal"})


def entry_paths(entry_id: Any = None) -> list[str]:
    if entry_id is None:
        return list(JOURNAL_BASE_PATHS)
    return [f"{base}/{entry_id}" for base in JOURNAL_BASE_PATHS]


def _clean(payload: Mapping[str, Any] | None) -> dict[str, Any]:
    return {key: value for key, value in (payload or {}).items() if key not in INTERNAL_KEYS}


class JournalApi:
    """CRUD over journal entries."""

    def __init__(self, client: ApiClient, cache: QueryCache | None = None):
        self.client = client
        self.cache = cache if cache is not None else QueryCache()

    async def fetch_entries(self, params: dict[str, Any] | None = None) -> JournalList:
        """List entries. A 204 response is an empty journal."""

        async def load() -> JournalList:
            response = await self.client.request_with_fallback(
                "get", entry_paths(), params=params, accept=(200, 204)
            )
            if response.status_code == 204:
                return JournalList()
            return normalize_journal_list(response_json(response, []))

        key = ("journal", *params_key(params))
        return await self.cache.fetch(key, load)

    async def create_entry(self, payload: Mapping[str, Any] | None = None) -> JournalEntry | None:
        response = await self.client.request_with_fallback("post", entry_paths(), json=_clean(payload))
        body = response_json(response, {})
        self.cache.invalidate(("journal",))

        if isinstance(body, Mapping) and any(isinstance(body.get(key), list) for key in ("entries", "items", "data")):
            listed = normalize_journal_list(body)
            return listed.items[0] if listed.items else None
        entry = extract_first_entry(body)
        return normalize_journal_entry(body if entry is None else entry)

    async def update_entry(self, entry_id: Any, payload: Mapping[str, Any] | None = None) -> JournalEntry:
        if not entry_id:
            raise ValueError("entry_id is required")
        response = await self.client.request_with_fallback("patch", entry_paths(entry_id), json=_clean(payload))
        body = response_json(response, {})
        self.cache.invalidate(("journal",))
        entry = extract_first_entry(body)
        return normalize_journal_entry(body if entry is None else entry)

    async def delete_entry(self, entry_id: Any) -> dict[str, bool]:
        if not entry_id:
            raise ValueError("entry_id is required")
        await self.client.request_with_fallback("delete", entry_paths(entry_id))
        self.cache.invalidate(("journal",))
        logger.info(f"Deleted journal entry {entry_id}")
        return {"success": True}
