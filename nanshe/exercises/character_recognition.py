"""
Character recognition drill.

Characters are checked locally one at a time (trimmed, case-insensitive).
A wrong guess can be retried; a right one advances. Once every character
has been recognized the exercise submits ``{"completed_all": true}``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from nanshe.progress.models import Verdict

from . import ExerciseKind, register
from .base import ExerciseController, mutator


@register(ExerciseKind.CHARACTER_RECOGNITION)
class CharacterRecognitionExercise(ExerciseController):
    graded = False

    def setup(self) -> None:
        characters = self.payload.get("characters")
        self.characters = [
            (str(entry.get("char", "")), str(entry.get("answer", "")))
            for entry in (characters if isinstance(characters, list) else [])
            if isinstance(entry, Mapping)
        ]
        self.position = 0
        self.guess = ""
        self.last_check: bool | None = None

    @property
    def current(self) -> tuple[str, str] | None:
        if self.position < len(self.characters):
            return self.characters[self.position]
        return None

    @property
    def is_finished(self) -> bool:
        return bool(self.characters) and self.position >= len(self.characters)

    @mutator
    def enter(self, guess: str) -> None:
        self.guess = guess
        self.last_check = None

    def check(self) -> bool | None:
        """
        Check the current guess against the current character.

        Returns ``None`` when there is nothing to check.
        """
        current = self.current
        if not self.is_editable or current is None or not self.guess.strip():
            return None
        correct = self.guess.strip().lower() == current[1].strip().lower()
        self.last_check = correct
        if correct:
            self.position += 1
            self.guess = ""
        return correct

    async def recognize(self, guess: str) -> Verdict | bool | None:
        """Enter and check a guess, submitting once the last character is done."""
        self.enter(guess)
        correct = self.check()
        if correct and self.is_finished:
            return await self.submit()
        return correct

    def draft(self) -> dict[str, Any]:
        return {"position": self.position, "total": len(self.characters), "guess": self.guess}

    def validate(self) -> bool:
        return self.is_finished

    def answer_body(self) -> dict[str, Any]:
        return {"completed_all": True}

    def restore_draft(self, answer: Mapping[str, Any]) -> None:
        self.position = len(self.characters)
