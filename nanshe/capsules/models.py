"""Canonical capsule tree entities: capsule > granule > molecule > atom."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Atom:
    """Smallest content unit: a lesson, quiz, code example or exercise."""

    id: Any = None
    order: float = 0
    title: str = ""
    content: Any = ""
    markdown: Any = ""
    html: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    content_type: str = "lesson"
    progress_status: str = "not_started"
    reward_xp: float = 0
    is_bonus: bool = False
    is_locked: bool = False
    capsule_id: Any = None
    molecule_id: Any = None
    raw: Any = None

    @property
    def body(self) -> Any:
        return self.content

    @property
    def type(self) -> str:
        return self.content_type

    @property
    def xp_value(self) -> float:
        return self.reward_xp


@dataclass(frozen=True)
class Molecule:
    """Lesson unit composed of atoms."""

    id: Any = None
    order: float = 0
    title: str = ""
    description: str = ""
    atoms: list[Atom] = field(default_factory=list)
    atom_count: int = 0
    generation_status: str = "completed"
    progress_status: str = "not_started"
    xp_reward: float = 0
    is_locked: bool = False
    is_bonus_available: bool = False
    raw: Any = None


@dataclass(frozen=True)
class Granule:
    """A level within a capsule; molecules are sorted by ``order``."""

    id: Any = None
    order: float = 0
    title: str = ""
    description: str = ""
    molecules: list[Molecule] = field(default_factory=list)
    raw: Any = None


@dataclass(frozen=True)
class Capsule:
    """Top-level learning unit (course)."""

    id: Any = None
    title: str = "Capsule"
    description: str = ""
    domain: str = "others"
    area: str = ""
    main_skill: str = ""
    level_count: int = 0
    atom_count: int = 0
    xp_reward: float = 0
    xp_target: float = 6000
    xp_current: float = 0
    progress_percentage: float = 0
    progress_status: str = "not_started"
    is_locked: bool = False
    is_enrolled: bool = False
    lesson_count: int = 0
    coach_enabled: bool = True
    unread_messages_count: int = 0
    icon: Any = None
    generation_status: str = "completed"
    tags: list[str] = field(default_factory=list)
    author_name: str = ""
    created_at: Any = None
    objectives: list[Any] = field(default_factory=list)
    prerequisites: list[Any] = field(default_factory=list)
    granules: list[Granule] = field(default_factory=list)
    raw: Any = None

    # Aliases kept for callers written against older payload names.
    @property
    def xp_goal(self) -> float:
        return self.xp_target

    @property
    def user_xp(self) -> float:
        return self.xp_current

    @property
    def progress(self) -> float:
        return self.progress_percentage

    @property
    def chat_unread_count(self) -> int:
        return self.unread_messages_count

    def iter_atoms(self):
        """Yield every atom in granule/molecule order."""
        for granule in self.granules:
            for molecule in granule.molecules:
                yield from molecule.atoms


@dataclass(frozen=True)
class CapsuleList:
    """A page of capsule summaries."""

    items: list[Capsule] = field(default_factory=list)
    total: int = 0
    next: Any = None
    previous: Any = None
    raw: Any = None


@dataclass(frozen=True)
class AtomsResponse:
    """Atoms of one molecule plus generation/progress state."""

    atoms: list[Atom] = field(default_factory=list)
    generation_status: str = "completed"
    progress_status: str = "not_started"

    @property
    def is_pending(self) -> bool:
        return self.generation_status == "pending"
