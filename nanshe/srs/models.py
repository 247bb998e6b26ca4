"""Spaced-repetition records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SrsItem:
    """One review card. Scheduling is owned by the server."""

    id: Any = None
    prompt: Any = ""
    answer: Any = ""
    hint: Any = None
    type: str = "flashcard"
    difficulty: str = ""
    due_at: str | None = None
    due_in_seconds: float = 0
    capsule_id: Any = None
    capsule_title: str = ""
    molecule_id: Any = None
    molecule_title: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    raw: Any = None


@dataclass(frozen=True)
class SrsSummary:
    due_count: float = 0
    overdue_count: float = 0
    new_count: float = 0
    total_count: float = 0
    upcoming_count: float = 0
    next_review_at: str | None = None
    raw: Any = None


@dataclass(frozen=True)
class SrsSession:
    """
    Server view of a review session.

    ``review`` carries the result of the last submitted review, if any.
    """

    session_id: Any = None
    item: SrsItem | None = None
    queue: list[SrsItem] = field(default_factory=list)
    remaining: float = 0
    review: Any = None
    raw: Any = None

    @property
    def is_complete(self) -> bool:
        return self.remaining == 0 and self.item is None
