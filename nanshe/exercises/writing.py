"""
Free-text writing exercise.

Not auto-graded: any submission the server accepts completes the atom,
whatever ``is_correct`` says.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from nanshe.core.coercion import pick_first_string

from . import ExerciseKind, register
from .base import ExerciseController, mutator

SAVED_FEEDBACK = "Your answer has been saved."


@register(ExerciseKind.WRITING)
class WritingExercise(ExerciseController):
    graded = False

    def setup(self) -> None:
        self.prompt = pick_first_string(self.payload, ("prompt", "instruction", "question"))
        self.text = ""

    @property
    def feedback(self) -> str:
        if self.result is None:
            return ""
        return self.result.feedback or SAVED_FEEDBACK

    @mutator
    def write(self, text: str) -> None:
        self.text = text

    def draft(self) -> str:
        return self.text

    def validate(self) -> bool:
        return bool(self.text.strip())

    def answer_body(self) -> dict[str, Any]:
        return {"text": self.text, "auto_corrected": False}

    def restore_draft(self, answer: Mapping[str, Any]) -> None:
        text = answer.get("text")
        self.text = text if isinstance(text, str) else ""
