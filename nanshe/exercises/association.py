"""
Drag-and-drop association exercise.

Prompts are fixed slots; answers start shuffled in a pool. Placing an
answer chip on a prompt removes it from the pool. Each prompt holds at
most one answer: dropping a chip on an occupied prompt sends the previous
chip back to the pool.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from typing import Any

from nanshe.capsules.models import Atom
from nanshe.progress.api import ProgressApi

from . import ExerciseKind, register
from .base import ExerciseController, mutator


def association_pairs(payload: Mapping[str, Any]) -> list[tuple[Any, Any]]:
    """
    ``(prompt, answer)`` pairs from any supported payload format.

    Accepted: ``pairs`` as a list of ``{prompt, answer}``, parallel
    ``items_left``/``items_right`` lists, or ``pairs`` as a mapping.
    """
    pairs = payload.get("pairs")
    if isinstance(pairs, list):
        return [(pair.get("prompt"), pair.get("answer")) for pair in pairs if isinstance(pair, Mapping)]

    left, right = payload.get("items_left"), payload.get("items_right")
    if isinstance(left, list) and isinstance(right, list):
        return [(prompt, right[index] if index < len(right) else None) for index, prompt in enumerate(left)]

    if isinstance(pairs, Mapping):
        return list(pairs.items())
    return []


def slot_id(index: int) -> str:
    return f"prompt-{index}"


@register(ExerciseKind.ASSOCIATION)
class AssociationExercise(ExerciseController):
    """
    Args:
        rng: Random source for the initial shuffle of the answer pool
    """

    def __init__(self, atom: Atom, api: ProgressApi, *, rng: random.Random | None = None, **kwargs: Any):
        self.rng = rng if rng is not None else random.Random()
        super().__init__(atom, api, **kwargs)

    def setup(self) -> None:
        pairs = association_pairs(self.payload)
        self.instruction = self.payload.get("prompt") or self.payload.get("instruction") or ""
        self.prompts = [prompt for prompt, _ in pairs]
        self.pool = [answer for _, answer in pairs]
        self.rng.shuffle(self.pool)
        self.bindings: dict[str, Any] = {}

    @mutator
    def place(self, pool_index: int, prompt_index: int) -> None:
        """Drop the pool chip at ``pool_index`` onto a prompt."""
        if not 0 <= prompt_index < len(self.prompts):
            raise IndexError(f"No prompt at position {prompt_index}")
        answer = self.pool.pop(pool_index)
        slot = slot_id(prompt_index)
        if slot in self.bindings:
            self.pool.append(self.bindings[slot])
        self.bindings[slot] = answer

    @mutator
    def unplace(self, prompt_index: int) -> None:
        """Send the chip on a prompt back to the pool."""
        slot = slot_id(prompt_index)
        if slot in self.bindings:
            self.pool.append(self.bindings.pop(slot))

    def draft(self) -> dict[str, Any]:
        return {"bindings": dict(self.bindings), "pool": list(self.pool)}

    def validate(self) -> bool:
        return bool(self.prompts) and len(self.bindings) == len(self.prompts)

    def answer_body(self) -> dict[str, Any]:
        return {"associations": dict(self.bindings)}

    def restore_draft(self, answer: Mapping[str, Any]) -> None:
        associations = answer.get("associations")
        if isinstance(associations, Mapping):
            self.bindings = dict(associations)
            # An answered exercise has nothing left to drag.
            self.pool = []
