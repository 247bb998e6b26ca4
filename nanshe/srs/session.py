"""
SRS review session flow.

    IDLE -> LOADING -> REVIEWING(item) -> REVEALED(item) -> LOADING -> ... -> COMPLETED

The server owns ordering and spacing: after each rating the next item and
the remaining count are taken from the review response as-is. ``ERROR`` is
entered when a session cannot be started.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from loguru import logger

from nanshe.core.http import ApiError, describe_error

from .api import SUMMARY_KEY, SrsApi
from .models import SrsItem, SrsSession


class ReviewState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    REVIEWING = "reviewing"
    REVEALED = "revealed"
    COMPLETED = "completed"
    ERROR = "error"


class ReviewRating(str, Enum):
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class SrsReviewFlow:
    """
    Drives one review session against ``SrsApi``.

    Attributes:
        state: Current ``ReviewState``
        session_id: Server session id, sent back with every review
        item: Card being reviewed, ``None`` once the session is over
        remaining: Server-reported count of cards left
        last_review: Review result returned for the previous rating
        error: Message of the last failed call, if any
    """

    def __init__(self, api: SrsApi):
        self.api = api
        self.state = ReviewState.IDLE
        self.session_id: Any = None
        self.item: SrsItem | None = None
        self.remaining: float = 0
        self.last_review: Any = None
        self.error: str | None = None

    @property
    def is_busy(self) -> bool:
        return self.state == ReviewState.LOADING

    @property
    def has_queue(self) -> bool:
        return self.remaining > 0 or self.item is not None

    def _apply(self, session: SrsSession) -> None:
        if session.session_id is not None:
            self.session_id = session.session_id
        self.item = session.item
        self.remaining = session.remaining
        self.api.cache.invalidate(SUMMARY_KEY)

        if self.item is None:
            if self.remaining > 0:
                logger.warning(f"SRS session {self.session_id} reports {self.remaining} cards left but sent none")
            self.state = ReviewState.COMPLETED
            logger.info(f"SRS session {self.session_id} completed")
        else:
            self.state = ReviewState.REVIEWING

    async def start(self, params: dict[str, Any] | None = None) -> ReviewState:
        """Open a session and show its first card."""
        if self.is_busy:
            return self.state
        self.state = ReviewState.LOADING
        self.error = None
        try:
            session = await self.api.start_session(params)
        except ApiError as e:
            self.error = describe_error(e)
            self.state = ReviewState.ERROR
            logger.warning(f"Could not start SRS session: {self.error}")
            return self.state

        self._apply(session)
        return self.state

    def reveal(self) -> ReviewState:
        """Show the answer of the current card."""
        if self.state == ReviewState.REVIEWING:
            self.state = ReviewState.REVEALED
        return self.state

    async def rate(self, rating: ReviewRating | str) -> ReviewState:
        """
        Rate the revealed card and move to whatever the server sends next.

        Ignored unless a card is revealed. On failure the card stays
        revealed and ``error`` holds the message, so the rating can be
        retried.

        Raises:
            ValueError: If ``rating`` is not one of again/hard/good/easy
        """
        rating = ReviewRating(rating)
        if self.state != ReviewState.REVEALED or self.item is None:
            logger.debug(f"Rating ignored in state {self.state.value}")
            return self.state

        item = self.item
        self.state = ReviewState.LOADING
        self.error = None
        try:
            session = await self.api.submit_review(
                item_id=item.id,
                rating=rating.value,
                session_id=self.session_id,
                metadata=item.metadata,
            )
        except (ApiError, ValueError) as e:
            self.error = describe_error(e)
            self.state = ReviewState.REVEALED
            logger.warning(f"SRS review of {item.id} failed: {self.error}")
            return self.state

        self.last_review = session.review
        self._apply(session)
        return self.state
