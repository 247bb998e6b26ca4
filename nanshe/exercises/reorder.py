"""Reorder exercise: the learner permutes a list into the right order."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from . import ExerciseKind, register
from .base import ExerciseController, mutator


def move_item(items: list[Any], source: int, destination: int) -> list[Any]:
    """Copy of ``items`` with the element at ``source`` moved to ``destination``."""
    reordered = list(items)
    moved = reordered.pop(source)
    reordered.insert(destination, moved)
    return reordered


@register(ExerciseKind.REORDER)
class ReorderExercise(ExerciseController):

    def setup(self) -> None:
        items = self.payload.get("items")
        # Server order is the starting order.
        self.items = list(items) if isinstance(items, list) else []

    @mutator
    def move(self, source: int, destination: int) -> None:
        self.items = move_item(self.items, source, destination)

    def draft(self) -> list[Any]:
        return list(self.items)

    def validate(self) -> bool:
        return bool(self.items)

    def answer_body(self) -> dict[str, Any]:
        return {"ordered_items": list(self.items)}

    def restore_draft(self, answer: Mapping[str, Any]) -> None:
        ordered = answer.get("ordered_items")
        if isinstance(ordered, list):
            self.items = list(ordered)
