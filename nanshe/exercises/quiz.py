"""
Quiz atoms graded on the client.

A quiz carries its answer key: each option record has an ``is_correct``
flag. The selection is graded locally and the outcome is logged through
``/progress/log-answer`` with the selected option text.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from nanshe.core.coercion import to_boolean
from nanshe.progress.models import Verdict

from . import ExerciseKind, register
from .qcm import QcmExercise, option_text


def correct_option(options: Any) -> str | None:
    """Text of the first option flagged ``is_correct``."""
    if not isinstance(options, list):
        return None
    for option in options:
        if isinstance(option, Mapping) and to_boolean(option.get("is_correct")):
            return option_text(option)
    return None


@register(ExerciseKind.QUIZ)
class QuizExercise(QcmExercise):

    def setup(self) -> None:
        super().setup()
        self.correct_answer = correct_option(self.payload.get("options"))
        self.explanation = self.payload.get("explanation") or ""

    def is_selection_correct(self) -> bool:
        return self.correct_answer is not None and self.selected == self.correct_answer

    def answer_body(self) -> dict[str, Any]:
        return {"selected": self.selected}

    def restore_draft(self, answer: Mapping[str, Any]) -> None:
        selected = answer.get("selected")
        if selected in self.options:
            self.selected = selected

    async def deliver(self, body: dict[str, Any]) -> Verdict:
        is_correct = self.is_selection_correct()
        logged = await self.api.log_answer(self.atom.id, is_correct, body)
        # The local grade wins; the server reply only adds feedback and XP.
        return replace(logged, is_correct=is_correct, feedback=logged.feedback or self.explanation)
