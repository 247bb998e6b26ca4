"""
Progress endpoints: answer logging, exercise answers, completion and reset.

Every successful mutation drops all cached capsule, learning-session and
atom queries (plus the user profile, whose XP total changed).
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from nanshe.core.cache import LEARNING_PREFIXES, QueryCache
from nanshe.core.http import ApiClient, response_json

from .models import ProgressStatus, Verdict
from .state import AtomProgress

INVALIDATED_PREFIXES = (*LEARNING_PREFIXES, ("user",))


def _require(atom_id: Any) -> None:
    if atom_id is None or atom_id == "":
        raise ValueError("atom_id is required")


class ProgressApi:
    def __init__(self, client: ApiClient, cache: QueryCache | None = None):
        self.client = client
        self.cache = cache if cache is not None else QueryCache()

    def _invalidate(self) -> None:
        self.cache.invalidate_many(INVALIDATED_PREFIXES)

    async def log_answer(self, atom_id: Any, is_correct: bool, answer: Any = None) -> Verdict:
        """Record a locally graded answer (quiz-style atoms)."""
        _require(atom_id)
        response = await self.client.request(
            "post",
            "/progress/log-answer",
            json={"atom_id": atom_id, "is_correct": bool(is_correct), "answer": answer or {}},
        )
        self._invalidate()
        return Verdict.from_payload(response_json(response, {}))

    async def submit_answer(self, component_id: Any, user_answer_json: dict[str, Any]) -> Verdict:
        """Submit an exercise answer for server-side grading."""
        _require(component_id)
        response = await self.client.request(
            "post",
            "/progress/answer",
            json={"component_id": component_id, "user_answer_json": user_answer_json},
        )
        self._invalidate()
        return Verdict.from_payload(response_json(response, {}))

    async def complete_atom(self, atom_id: Any) -> Any:
        _require(atom_id)
        response = await self.client.request("post", f"/progress/atom/{atom_id}/complete")
        self._invalidate()
        return response_json(response)

    async def reset_atom(self, atom_id: Any) -> Any:
        _require(atom_id)
        response = await self.client.request("post", f"/progress/atom/{atom_id}/reset")
        self._invalidate()
        return response_json(response)

    async def mark_as_read(self, progress: AtomProgress) -> ProgressStatus:
        """
        Complete a lesson atom on the server, then locally.

        Raises:
            AtomLockedError: If the atom is locked
            ApiError: If the server refuses; local state is left untouched
        """
        progress.ensure_unlocked()
        if progress.status == ProgressStatus.COMPLETED:
            logger.debug(f"Atom {progress.atom_id} already completed")
            return progress.status
        await self.complete_atom(progress.atom_id)
        return progress.complete()
