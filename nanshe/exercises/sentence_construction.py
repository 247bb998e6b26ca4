"""
Sentence construction exercise.

Two modes, fixed when the exercise is loaded: when the payload carries a
``choices`` list the learner picks one (as in a QCM), otherwise the
learner orders the ``scrambled`` words.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from . import ExerciseKind, register
from .base import ExerciseController, mutator
from .qcm import option_index, option_text
from .reorder import move_item


class SentenceMode(str, Enum):
    CHOICE = "choice"
    ORDERING = "ordering"


@register(ExerciseKind.SENTENCE_CONSTRUCTION)
class SentenceConstructionExercise(ExerciseController):

    def setup(self) -> None:
        choices = self.payload.get("choices")
        self.mode = SentenceMode.CHOICE if isinstance(choices, list) else SentenceMode.ORDERING
        self.choices = [option_text(choice) for choice in choices] if isinstance(choices, list) else []
        scrambled = self.payload.get("scrambled")
        self.words = list(scrambled) if isinstance(scrambled, list) else []
        self.selected: str | None = None

    @mutator
    def select(self, choice: str | int) -> None:
        if self.mode != SentenceMode.CHOICE:
            raise ValueError("select() is only available for choice sentences")
        if isinstance(choice, int) and not isinstance(choice, bool):
            choice = self.choices[choice]
        if choice not in self.choices:
            raise ValueError(f"Unknown choice: {choice!r}")
        self.selected = choice

    @mutator
    def move(self, source: int, destination: int) -> None:
        if self.mode != SentenceMode.ORDERING:
            raise ValueError("move() is only available for word-ordering sentences")
        self.words = move_item(self.words, source, destination)

    def draft(self) -> Any:
        if self.mode == SentenceMode.CHOICE:
            return self.selected
        return list(self.words)

    def validate(self) -> bool:
        if self.mode == SentenceMode.CHOICE:
            return self.selected is not None
        return bool(self.words)

    def answer_body(self) -> dict[str, Any]:
        if self.mode == SentenceMode.CHOICE:
            return {"selected_option": option_index(self.choices, self.selected)}
        return {"ordered_items": list(self.words)}

    def restore_draft(self, answer: Mapping[str, Any]) -> None:
        if self.mode == SentenceMode.CHOICE:
            index = answer.get("selected_option")
            if isinstance(index, int) and 0 <= index < len(self.choices):
                self.selected = self.choices[index]
            return
        ordered = answer.get("ordered_items")
        if isinstance(ordered, list):
            self.words = list(ordered)
