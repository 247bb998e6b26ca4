"""
Shared controller contract for interactive exercises.

    UNANSWERED -> SUBMITTING -> ANSWERED(verdict)
    ANSWERED -> RESETTING -> UNANSWERED          (explicit reset only)

Subclasses hold the per-kind draft and implement ``setup``, ``draft``,
``validate``, ``answer_body`` and ``restore_draft``. Draft mutators are
wrapped with ``@mutator`` so they are ignored unless the exercise is
editable (unanswered and unlocked).
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from loguru import logger

from nanshe.capsules.models import Atom
from nanshe.core.coercion import to_mapping
from nanshe.core.events import EventBus
from nanshe.core.http import ApiError, describe_error
from nanshe.progress.api import ProgressApi
from nanshe.progress.models import ProgressStatus, Verdict
from nanshe.progress.state import AtomProgress, ProgressError

if TYPE_CHECKING:
    from . import ExerciseKind

PAYLOAD_KEYS = ("content_json", "exercise", "data")


class ExerciseState(str, Enum):
    UNANSWERED = "unanswered"
    SUBMITTING = "submitting"
    ANSWERED = "answered"
    RESETTING = "resetting"


@dataclass(frozen=True)
class ExerciseView:
    """Render state of an exercise."""

    draft: Any
    can_submit: bool
    result: Verdict | None
    state: ExerciseState
    locked: bool = False
    error: str | None = None


def exercise_payload(atom: Atom) -> dict[str, Any]:
    """The exercise definition carried by an atom, or ``{}``."""
    raw = to_mapping(atom.raw)
    candidates = [raw.get(key) for key in PAYLOAD_KEYS]
    candidates += [atom.content, atom.metadata.get("content_json")]
    for candidate in candidates:
        if isinstance(candidate, Mapping) and candidate:
            return dict(candidate)
    return {}


def mutator(method: Callable[..., Any]) -> Callable[..., bool]:
    """Run a draft mutation only while the exercise is editable."""

    @functools.wraps(method)
    def wrapper(self: ExerciseController, *args: Any, **kwargs: Any) -> bool:
        if not self.is_editable:
            logger.debug(f"Ignored {method.__name__} on {self.atom.id} ({self.state.value})")
            return False
        method(self, *args, **kwargs)
        return True

    return wrapper


class ExerciseController:
    """
    One interactive exercise bound to one atom.

    Args:
        atom: The normalized atom
        api: Progress endpoints used for submit and reset
        progress: Shared progress state; created from the atom when omitted
        events: Event bus receiving the XP reward
        submitted_answer: A previous submission (``user_answer_json`` plus
            verdict fields); restores an answered view
    """

    kind: ClassVar[ExerciseKind]
    graded: ClassVar[bool] = True

    def __init__(
        self,
        atom: Atom,
        api: ProgressApi,
        *,
        progress: AtomProgress | None = None,
        events: EventBus | None = None,
        submitted_answer: Mapping[str, Any] | None = None,
    ):
        self.atom = atom
        self.api = api
        self.payload = exercise_payload(atom)
        self.progress = progress if progress is not None else AtomProgress(atom, events)
        self.state = ExerciseState.UNANSWERED
        self.result: Verdict | None = None
        self.error: str | None = None
        self.setup()

        if submitted_answer:
            self.restore_draft(to_mapping(submitted_answer.get("user_answer_json")))
            self.result = Verdict.from_payload(submitted_answer)
            self.state = ExerciseState.ANSWERED
        elif self.progress.is_terminal:
            self._adopt_progress()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.atom.id} {self.state.value}>"

    # =========================================================================
    # Per-kind hooks
    # =========================================================================

    def setup(self) -> None:
        """Build the initial draft from ``self.payload``."""

    def draft(self) -> Any:
        raise NotImplementedError

    def validate(self) -> bool:
        """Whether the current draft may be submitted."""
        raise NotImplementedError

    def answer_body(self) -> dict[str, Any]:
        """The ``user_answer_json`` for the current draft."""
        raise NotImplementedError

    def restore_draft(self, answer: Mapping[str, Any]) -> None:
        """Rebuild the draft from a previous ``user_answer_json``."""

    # =========================================================================
    # Contract
    # =========================================================================

    @property
    def is_locked(self) -> bool:
        return self.progress.is_locked

    @property
    def is_editable(self) -> bool:
        return self.state == ExerciseState.UNANSWERED and not self.is_locked

    def view(self) -> ExerciseView:
        return ExerciseView(
            draft=self.draft(),
            can_submit=self.is_editable and self.validate(),
            result=self.result,
            state=self.state,
            locked=self.is_locked,
            error=self.error,
        )

    async def deliver(self, body: dict[str, Any]) -> Verdict:
        """Send the answer and return the verdict; server-graded by default."""
        return await self.api.submit_answer(self.atom.id, body)

    async def submit(self) -> Verdict | None:
        """
        Submit the current draft.

        Returns ``None`` without any request when the exercise is not
        editable, the draft is invalid or the shared progress refuses a new
        attempt (``error`` then says why). Progress that already reached a
        terminal status is adopted as the answered state so it can be reset.
        A transport failure yields a local verdict with ``error=True`` and
        nothing persisted.
        """
        if not self.is_editable:
            logger.debug(f"Submit ignored on {self.atom.id} ({self.state.value}, locked={self.is_locked})")
            return None
        if self.atom.id is None or not self.validate():
            logger.debug(f"Submit blocked on {self.atom.id}: draft is incomplete")
            return None

        body = self.answer_body()
        try:
            self.progress.begin_attempt()
        except ProgressError as e:
            self.error = str(e)
            logger.warning(f"Submit blocked on {self.atom.id}: {e}")
            if self.progress.is_terminal:
                self._adopt_progress()
            return None

        self.state = ExerciseState.SUBMITTING
        self.error = None
        try:
            verdict = await self.deliver(body)
        except ApiError as e:
            self.progress.cancel_attempt()
            verdict = Verdict.transport_failure(describe_error(e))
            logger.warning(f"Answer for {self.atom.id} not delivered: {verdict.feedback}")
        else:
            try:
                self.progress.record_verdict(verdict, graded=self.graded)
            except ProgressError as e:
                logger.warning(f"Verdict for {self.atom.id} not applied to progress: {e}")

        self.result = verdict
        self.state = ExerciseState.ANSWERED
        return verdict

    async def reset(self) -> bool:
        """
        Return to an unanswered draft.

        The server is asked to reset first and local state only changes once
        it agrees. After a transport-failure verdict there is nothing to
        reset server-side, so the draft is cleared locally.
        """
        if self.state != ExerciseState.ANSWERED or self.is_locked:
            return False

        if self.result is not None and self.result.error:
            self._clear()
            return True

        self.state = ExerciseState.RESETTING
        try:
            await self.api.reset_atom(self.atom.id)
        except (ApiError, ValueError) as e:
            self.error = describe_error(e)
            self.state = ExerciseState.ANSWERED
            logger.warning(f"Reset of {self.atom.id} failed: {self.error}")
            return False

        if self.progress.can_transition(ProgressStatus.NOT_STARTED):
            self.progress.reset()
        self._clear()
        return True

    def _adopt_progress(self) -> None:
        """Show the answered state recorded on the shared progress."""
        self.result = Verdict(is_correct=self.progress.status == ProgressStatus.COMPLETED)
        self.state = ExerciseState.ANSWERED

    def _clear(self) -> None:
        self.result = None
        self.error = None
        self.state = ExerciseState.UNANSWERED
        self.setup()
