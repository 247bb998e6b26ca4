"""
Single-choice question (QCM).

The learner picks an option by its text; the text is mapped back to its
index only when the answer is submitted. With duplicate option texts the
first occurrence wins.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from nanshe.core.coercion import pick_first_string

from . import ExerciseKind, register
from .base import ExerciseController, mutator

OPTION_TEXT_KEYS = ("text", "label", "value", "option")


def option_text(option: Any) -> str:
    """Display text of an option given as a string or a record."""
    if isinstance(option, Mapping):
        return pick_first_string(option, OPTION_TEXT_KEYS)
    return "" if option is None else str(option)


def option_index(options: Sequence[str], selected: str | None) -> int:
    """Index of the first option equal to ``selected``, ``-1`` if absent."""
    try:
        return list(options).index(selected)
    except ValueError:
        return -1


@register(ExerciseKind.QCM)
class QcmExercise(ExerciseController):

    def setup(self) -> None:
        self.question = pick_first_string(self.payload, ("question", "prompt", "text"))
        raw_options = self.payload.get("options")
        self.options = [option_text(option) for option in raw_options] if isinstance(raw_options, list) else []
        self.selected: str | None = None

    @mutator
    def select(self, option: str | int) -> None:
        """Select an option by text or by position."""
        if isinstance(option, int) and not isinstance(option, bool):
            option = self.options[option]
        if option not in self.options:
            raise ValueError(f"Unknown option: {option!r}")
        self.selected = option

    def draft(self) -> str | None:
        return self.selected

    def validate(self) -> bool:
        return self.selected is not None and self.selected in self.options

    def answer_body(self) -> dict[str, Any]:
        return {"selected_option": option_index(self.options, self.selected)}

    def restore_draft(self, answer: Mapping[str, Any]) -> None:
        index = answer.get("selected_option")
        if isinstance(index, int) and 0 <= index < len(self.options):
            self.selected = self.options[index]
