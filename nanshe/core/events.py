"""
Event bus and best-effort activity beacon.

Cross-component signals (XP rewards, toolbox opening, activity end) go
through an injected ``EventBus`` instead of ambient global dispatch, so the
core can be exercised without any UI host.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from loguru import logger

from .http import ApiClient, ApiError

XP_REWARD = "xp_reward"
TOOLBOX_OPEN = "toolbox_open"
ACTIVITY_END = "activity_end"

Handler = Callable[[dict[str, Any]], None]


class EventBus:
    """Synchronous publish/subscribe dispatcher."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``event``. Returns an unsubscribe callable."""
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    def emit(self, event: str, payload: dict[str, Any] | None = None) -> int:
        """
        Deliver ``payload`` to every handler of ``event``.

        A failing handler is logged and does not prevent delivery to the
        others. Returns the number of handlers invoked.
        """
        handlers = list(self._handlers.get(event, ()))
        for handler in handlers:
            try:
                handler(dict(payload or {}))
            except Exception:
                logger.exception(f"Event handler for '{event}' failed")
        return len(handlers)


class ActivityBeacon:
    """
    Fire-and-forget delivery of the activity end signal.

    ``send`` schedules the POST and returns immediately. The request is
    never retried and its failure is only logged: the signal may be lost
    when the process exits first.
    """

    def __init__(self, client: ApiClient, path: str, events: EventBus | None = None):
        self.client = client
        self.path = path
        self.events = events
        self._pending: set[asyncio.Task] = set()

    def send(self, payload: dict[str, Any]) -> asyncio.Task | None:
        if self.events is not None:
            self.events.emit(ACTIVITY_END, payload)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, activity end beacon dropped")
            return None

        task = loop.create_task(self._deliver(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, payload: dict[str, Any]) -> None:
        try:
            await self.client.request("post", self.path, json=payload)
        except ApiError as e:
            logger.debug(f"Activity end beacon not delivered: {e.message}")
