"""
Per-atom progress state machine.

    not_started -> in_progress -> completed | failed
    not_started -> completed              (mark as read / force complete)
    completed | failed -> not_started     (server-confirmed reset)

``locked`` is an overlay flag, not a status: a locked atom keeps its
underlying status but rejects every transition.
"""

from __future__ import annotations

from loguru import logger

from nanshe.capsules.models import Atom
from nanshe.core.events import XP_REWARD, EventBus

from .models import ProgressStatus, Verdict

TRANSITIONS: dict[ProgressStatus, frozenset[ProgressStatus]] = {
    ProgressStatus.NOT_STARTED: frozenset({ProgressStatus.IN_PROGRESS, ProgressStatus.COMPLETED}),
    ProgressStatus.IN_PROGRESS: frozenset({ProgressStatus.COMPLETED, ProgressStatus.FAILED}),
    ProgressStatus.COMPLETED: frozenset({ProgressStatus.NOT_STARTED}),
    ProgressStatus.FAILED: frozenset({ProgressStatus.NOT_STARTED}),
}


class ProgressError(Exception):
    """Base class for progress state errors."""


class InvalidTransitionError(ProgressError):
    def __init__(self, current: ProgressStatus, target: ProgressStatus):
        super().__init__(f"Cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


class AtomLockedError(ProgressError):
    def __init__(self, atom_id):
        super().__init__(f"Atom {atom_id} is locked")
        self.atom_id = atom_id


class AtomProgress:
    """
    Progress of one atom as seen by the learner.

    The XP reward is emitted on the ``completed`` transition only, and at
    most once until the next reset. An atom that is loaded (or re-synced)
    already completed counts as rewarded.
    """

    def __init__(self, atom: Atom, events: EventBus | None = None):
        self.atom_id = atom.id
        self.reward_xp = atom.reward_xp
        self.is_locked = atom.is_locked
        self.status = ProgressStatus.parse(atom.progress_status)
        self.events = events
        self.reward_granted = self.status == ProgressStatus.COMPLETED
        self._before_attempt: ProgressStatus | None = None

    def __repr__(self) -> str:
        lock = " locked" if self.is_locked else ""
        return f"<AtomProgress {self.atom_id} {self.status.value}{lock}>"

    @property
    def is_terminal(self) -> bool:
        return self.status in (ProgressStatus.COMPLETED, ProgressStatus.FAILED)

    def can_transition(self, target: ProgressStatus) -> bool:
        return not self.is_locked and target in TRANSITIONS[self.status]

    def ensure_unlocked(self) -> None:
        if self.is_locked:
            raise AtomLockedError(self.atom_id)

    def transition(self, target: ProgressStatus) -> ProgressStatus:
        """
        Move to ``target``.

        Raises:
            AtomLockedError: If the atom is locked
            InvalidTransitionError: If ``target`` is not reachable
        """
        self.ensure_unlocked()
        if target not in TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status, target)
        logger.info(f"Atom {self.atom_id}: {self.status.value} -> {target.value}")
        self.status = target
        return target

    # =========================================================================
    # Triggers
    # =========================================================================

    def begin_attempt(self) -> ProgressStatus:
        """First submission sent: optimistic ``in_progress``."""
        self.ensure_unlocked()
        self._before_attempt = self.status
        if self.status == ProgressStatus.IN_PROGRESS:
            return self.status
        return self.transition(ProgressStatus.IN_PROGRESS)

    def cancel_attempt(self) -> ProgressStatus:
        """Undo the optimistic move after a submission never reached the server."""
        if self._before_attempt is not None and self.status == ProgressStatus.IN_PROGRESS:
            logger.debug(f"Atom {self.atom_id}: attempt cancelled, back to {self._before_attempt.value}")
            self.status = self._before_attempt
        self._before_attempt = None
        return self.status

    def record_verdict(self, verdict: Verdict, graded: bool = True) -> ProgressStatus:
        """
        Apply a server verdict to an attempt in progress.

        Ungraded kinds complete on any successful submission.
        """
        self._before_attempt = None
        if verdict.is_correct or not graded:
            return self.complete(verdict.xp_awarded or None)
        return self.transition(ProgressStatus.FAILED)

    def complete(self, xp: float | None = None) -> ProgressStatus:
        """Move to ``completed`` and emit the XP reward if still owed."""
        self.transition(ProgressStatus.COMPLETED)
        self._grant_reward(self.reward_xp if xp is None else xp)
        return self.status

    def reset(self) -> ProgressStatus:
        """Apply a reset the server has already accepted."""
        self.transition(ProgressStatus.NOT_STARTED)
        self.reward_granted = False
        return self.status

    def sync(self, atom: Atom) -> None:
        """
        Adopt a refetched atom's state.

        Never emits a reward: a completed atom is simply marked rewarded.
        """
        self.reward_xp = atom.reward_xp
        self.is_locked = atom.is_locked
        self.status = ProgressStatus.parse(atom.progress_status, self.status)
        if self.status == ProgressStatus.COMPLETED:
            self.reward_granted = True

    def _grant_reward(self, xp: float) -> None:
        if self.reward_granted or not xp or xp <= 0:
            return
        self.reward_granted = True
        if self.events is not None:
            self.events.emit(XP_REWARD, {"atom_id": self.atom_id, "xp": xp})
        logger.info(f"Atom {self.atom_id}: +{xp} XP")
