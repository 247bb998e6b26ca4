"""
SRS endpoints under ``/learning/srs`` with the legacy ``/srs`` fallback.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from nanshe.core.cache import QueryCache
from nanshe.core.http import ApiClient, response_json

from .models import SrsSession, SrsSummary
from .normalizers import normalize_srs_session, normalize_srs_summary

PRIMARY_PREFIX = "/learning/srs"
LEGACY_PREFIX = "/srs"
RATINGS = ("again", "hard", "good", "easy")
SUMMARY_KEY = ("srs", "summary")


def srs_paths(resource: str) -> list[str]:
    return [f"{PRIMARY_PREFIX}/{resource}", f"{LEGACY_PREFIX}/{resource}"]


class SrsApi:
    def __init__(self, client: ApiClient, cache: QueryCache | None = None):
        self.client = client
        self.cache = cache if cache is not None else QueryCache()

    async def fetch_summary(self) -> SrsSummary:
        async def load() -> SrsSummary:
            response = await self.client.request_with_fallback("get", srs_paths("summary"))
            return normalize_srs_summary(response_json(response, {}))

        return await self.cache.fetch(SUMMARY_KEY, load)

    async def fetch_queue(self, params: dict[str, Any] | None = None) -> SrsSession:
        response = await self.client.request_with_fallback("get", srs_paths("queue"), params=params)
        return normalize_srs_session(response_json(response, {}))

    async def start_session(self, params: dict[str, Any] | None = None) -> SrsSession:
        response = await self.client.request_with_fallback("post", srs_paths("session"), json=params or {})
        return normalize_srs_session(response_json(response, {}))

    async def submit_review(
        self,
        item_id: Any = None,
        rating: str | None = None,
        session_id: Any = None,
        difficulty: Any = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> SrsSession:
        """
        Post one review and return the server's next session state.

        ``item_id`` and ``session_id`` may also be supplied through
        ``metadata`` (``item_id``/``card_id``, ``session_id``/``sessionId``).

        Raises:
            ValueError: If no item id can be resolved
        """
        metadata = dict(metadata or {})
        resolved_item = item_id or metadata.get("item_id") or metadata.get("card_id")
        if not resolved_item:
            raise ValueError("item_id is required to submit a review")

        if session_id is None:
            session_id = metadata.get("session_id", metadata.get("sessionId"))
        body = {
            "session_id": session_id,
            "item_id": resolved_item,
            "rating": rating,
            "difficulty": difficulty,
            "metadata": metadata,
        }
        response = await self.client.request_with_fallback("post", srs_paths("review"), json=body)
        return normalize_srs_session(response_json(response, {}))
