"""Journal entry records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class JournalEntry:
    """One learner note, optionally attached to a capsule or molecule."""

    id: Any = None
    title: str = "Journal"
    content: Any = ""
    summary: str = ""
    mood: str = ""
    tags: list[str] = field(default_factory=list)
    capsule_id: Any = None
    capsule_title: str = ""
    molecule_id: Any = None
    molecule_title: str = ""
    is_pinned: bool = False
    created_at: str | None = None
    updated_at: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    raw: Any = None


@dataclass(frozen=True)
class JournalList:
    items: list[JournalEntry] = field(default_factory=list)
    total: int = 0
    next: Any = None
    previous: Any = None
    raw: Any = None
