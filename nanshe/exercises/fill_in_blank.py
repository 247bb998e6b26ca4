"""
Fill-in-the-blank exercise.

The number of inputs comes from the length of the ``answers`` list, not
from the blank markers in the prompt text. When the two disagree the
mismatch is exposed through ``has_marker_mismatch`` but left as-is.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from nanshe.core.coercion import pick_first_string

from . import ExerciseKind, register
from .base import ExerciseController, mutator

# "___", "[blank]" or "{{ }}" placeholders.
BLANK_MARKER = re.compile(r"_{3,}|\[\s*blank\s*\]|\{\{\s*\w*\s*\}\}", re.IGNORECASE)


@register(ExerciseKind.FILL_IN_BLANK)
class FillInBlankExercise(ExerciseController):

    def setup(self) -> None:
        self.text = pick_first_string(self.payload, ("text_with_blanks", "sentence", "text", "prompt"))
        answers = self.payload.get("answers")
        self.blank_count = len(answers) if isinstance(answers, list) else 0
        self.blanks = [""] * self.blank_count

    @property
    def marker_count(self) -> int:
        return len(BLANK_MARKER.findall(self.text))

    @property
    def has_marker_mismatch(self) -> bool:
        return self.marker_count != self.blank_count

    @mutator
    def fill(self, index: int, value: str) -> None:
        self.blanks[index] = value

    def draft(self) -> list[str]:
        return list(self.blanks)

    def validate(self) -> bool:
        return bool(self.blanks) and all(blank.strip() for blank in self.blanks)

    def answer_body(self) -> dict[str, Any]:
        return {"filled_blanks": list(self.blanks)}

    def restore_draft(self, answer: Mapping[str, Any]) -> None:
        filled = answer.get("filled_blanks")
        if isinstance(filled, list):
            restored = [str(value) for value in filled[: self.blank_count]]
            self.blanks = restored + [""] * (self.blank_count - len(restored))
