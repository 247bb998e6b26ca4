"""
Interactive exercise controllers.

Each exercise kind (QCM, fill-in-blank, reorder, ...) has its own module
with a controller class registered for its kind. The kind is resolved once
when the exercise is loaded, from the atom's content type or, failing
that, from the shape of its payload.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from nanshe.capsules.models import Atom
    from nanshe.progress.api import ProgressApi

    from .base import ExerciseController


class ExerciseKind(str, Enum):
    """Supported exercise kinds."""
    QCM = "qcm"
    QUIZ = "quiz"
    FILL_IN_BLANK = "fill_in_the_blank"
    REORDER = "reorder"
    ASSOCIATION = "association"
    SENTENCE_CONSTRUCTION = "sentence_construction"
    WRITING = "writing"
    CHARACTER_RECOGNITION = "character_recognition"


# Alternate content_type spellings used by older payloads.
KIND_ALIASES: dict[str, ExerciseKind] = {
    "mcq": ExerciseKind.QCM,
    "multiple_choice": ExerciseKind.QCM,
    "fill_in_blank": ExerciseKind.FILL_IN_BLANK,
    "cloze": ExerciseKind.FILL_IN_BLANK,
    "ordering": ExerciseKind.REORDER,
    "association_drag_drop": ExerciseKind.ASSOCIATION,
    "drag_drop": ExerciseKind.ASSOCIATION,
    "matching": ExerciseKind.ASSOCIATION,
    "essay": ExerciseKind.WRITING,
}

# Atom content types that are read or run, never answered.
CONTENT_ONLY_TYPES = frozenset({
    "lesson",
    "vocabulary",
    "code_example",
    "code_challenge",
    "live_code_executor",
    "code_sandbox_setup",
    "code_project_brief",
})

# Controller registry - populated by @register decorator
HANDLERS: dict[ExerciseKind, type[ExerciseController]] = {}


def register(kind: ExerciseKind):
    """Decorator to register an exercise controller."""
    def decorator(cls):
        cls.kind = kind
        HANDLERS[kind] = cls
        return cls
    return decorator


def parse_kind(value: Any) -> ExerciseKind | None:
    if isinstance(value, ExerciseKind):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower().replace("-", "_")
    try:
        return ExerciseKind(key)
    except ValueError:
        return KIND_ALIASES.get(key)


def get_handler(kind: str | ExerciseKind) -> type[ExerciseController] | None:
    """Get the controller class for an exercise kind."""
    resolved = parse_kind(kind)
    return HANDLERS.get(resolved) if resolved else None


def _kind_from_shape(payload: dict[str, Any]) -> ExerciseKind | None:
    def has_list(key: str) -> bool:
        return isinstance(payload.get(key), list)

    if has_list("characters"):
        return ExerciseKind.CHARACTER_RECOGNITION
    if "pairs" in payload or (has_list("items_left") and has_list("items_right")):
        return ExerciseKind.ASSOCIATION
    if has_list("scrambled") or has_list("choices"):
        return ExerciseKind.SENTENCE_CONSTRUCTION
    if "text_with_blanks" in payload or has_list("answers"):
        return ExerciseKind.FILL_IN_BLANK
    if has_list("options"):
        graded_here = any(isinstance(o, dict) and "is_correct" in o for o in payload["options"])
        return ExerciseKind.QUIZ if graded_here else ExerciseKind.QCM
    if has_list("items"):
        return ExerciseKind.REORDER
    return None


def detect_kind(atom: Atom) -> ExerciseKind | None:
    """Exercise kind of an atom, or ``None`` for non-exercise content."""
    if str(atom.content_type).strip().lower() in CONTENT_ONLY_TYPES:
        return None
    kind = parse_kind(atom.content_type)
    if kind is None:
        kind = parse_kind(exercise_payload(atom).get("component_type"))
    if kind is None:
        kind = _kind_from_shape(exercise_payload(atom))
    return kind


def load_exercise(atom: Atom, api: ProgressApi, **options: Any) -> ExerciseController | None:
    """
    Build the controller for an atom.

    ``options`` are passed to the controller (``progress``, ``events``,
    ``submitted_answer`` and per-kind extras such as ``rng``). Returns
    ``None`` when the atom is not an exercise.
    """
    kind = detect_kind(atom)
    handler = HANDLERS.get(kind) if kind else None
    if handler is None:
        logger.debug(f"Atom {atom.id} ({atom.content_type}) is not an exercise")
        return None
    return handler(atom, api, **options)


# Import controllers to trigger registration
from .base import ExerciseController, ExerciseState, ExerciseView, exercise_payload  # noqa: E402
from . import qcm  # noqa: E402
from . import quiz  # noqa: E402
from . import fill_in_blank  # noqa: E402
from . import reorder  # noqa: E402
from . import association  # noqa: E402
from . import sentence_construction  # noqa: E402
from . import writing  # noqa: E402
from . import character_recognition  # noqa: E402

__all__ = [
    "ExerciseController",
    "ExerciseKind",
    "ExerciseState",
    "ExerciseView",
    "HANDLERS",
    "detect_kind",
    "get_handler",
    "load_exercise",
    "register",
]
