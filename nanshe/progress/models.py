"""Progress status vocabulary and the answer verdict record."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from nanshe.core.coercion import pick_first, to_boolean, to_number


class ProgressStatus(str, Enum):
    """Per-item learning progress."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: Any, fallback: ProgressStatus | None = None) -> ProgressStatus:
        """Map a raw status string onto the enum; unknown values use ``fallback``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return fallback or cls.NOT_STARTED


# Status strings that do not count as an attempt when aggregating.
UNATTEMPTED_STATUSES = frozenset({ProgressStatus.NOT_STARTED.value, "locked"})


@dataclass(frozen=True)
class Verdict:
    """Server verdict for one answer submission."""

    is_correct: bool
    feedback: str = ""
    xp_awarded: float = 0
    error: bool = False
    raw: Any = None

    @classmethod
    def from_payload(cls, data: Any) -> Verdict:
        """Parse a verdict from a loosely-shaped response body."""
        if not isinstance(data, Mapping):
            return cls(is_correct=False, raw=data)
        feedback = pick_first(data, ("feedback", "message", "detail"), default="")
        return cls(
            is_correct=to_boolean(pick_first(data, ("is_correct", "correct"))),
            feedback=feedback if isinstance(feedback, str) else str(feedback),
            xp_awarded=to_number(pick_first(data, ("xp_awarded", "xp", "reward_xp"))),
            raw=data,
        )

    @classmethod
    def transport_failure(cls, message: str) -> Verdict:
        """Local verdict for a submission that never reached the server."""
        return cls(is_correct=False, feedback=message, error=True)
