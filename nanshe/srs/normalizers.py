"""
Normalizers for SRS items, summaries and sessions.

Fields fall back to the item's ``metadata`` bag before their defaults.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from nanshe.core.coercion import (
    metadata_bags,
    pick_first,
    pick_first_string,
    to_iso_string,
    to_mapping,
    to_number,
)

from .models import SrsItem, SrsSession, SrsSummary

SRS_PLURAL = ("cards", "queue")

ITEM_ID_KEYS = ("id", "item_id", "queue_id", "uuid")
PROMPT_KEYS = ("prompt", "question", "front", "text")
ANSWER_KEYS = ("answer", "response", "back")
DUE_AT_KEYS = ("due_at", "due", "next_review_at")
DUE_IN_KEYS = ("due_in_seconds", "seconds_until_due", "time_until_due")

SUMMARY_DUE_KEYS = ("due_count", "due", "pending", "cards_due")
SUMMARY_OVERDUE_KEYS = ("overdue_count", "overdue", "late_count")
SUMMARY_NEW_KEYS = ("new_count", "new", "to_learn")
SUMMARY_TOTAL_KEYS = ("total_count", "total", "card_count")
SUMMARY_UPCOMING_KEYS = ("upcoming_count", "due_later_count", "waiting")
SUMMARY_NEXT_KEYS = ("next_review_at", "next_due_at", "soonest_due_at", "next_review")

SESSION_ID_KEYS = ("session_id", "sessionId", "id", "session")
SESSION_QUEUE_KEYS = ("queue", "items", "remaining")
SESSION_CURRENT_KEYS = ("current", "item", "next")
REMAINING_KEYS = ("remaining_count", "queue_size", "remaining")
REVIEW_KEYS = ("review", "result")


def normalize_srs_item(raw: Any = None) -> SrsItem:
    item = to_mapping(raw)
    bags = metadata_bags(item, ("metadata",))
    metadata = to_mapping(item.get("metadata"))

    return SrsItem(
        id=pick_first(item, ITEM_ID_KEYS, bags=bags, bag_keys=("id",)),
        prompt=pick_first(item, PROMPT_KEYS, default="", bags=bags, bag_keys=("prompt",)),
        answer=pick_first(item, ANSWER_KEYS, default="", bags=bags, bag_keys=("answer",)),
        hint=pick_first(item, ("hint",), bags=bags),
        type=str(pick_first(item, ("type",), default="flashcard", bags=bags)),
        difficulty=pick_first_string(item, ("difficulty", "rating"), metadata.get("difficulty") or ""),
        due_at=to_iso_string(pick_first(item, DUE_AT_KEYS, bags=bags, bag_keys=("due_at",))),
        due_in_seconds=to_number(pick_first(item, DUE_IN_KEYS, bags=bags, bag_keys=("due_in_seconds",))),
        capsule_id=pick_first(item, ("capsule_id",), bags=bags),
        capsule_title=pick_first_string(
            item, ("capsule_title", "capsuleName", "capsule"), metadata.get("capsule_title") or ""
        ),
        molecule_id=pick_first(item, ("molecule_id",), bags=bags),
        molecule_title=pick_first_string(
            item, ("molecule_title", "lesson_title"), metadata.get("molecule_title") or ""
        ),
        metadata=metadata,
        raw=raw,
    )


def normalize_srs_summary(raw: Any = None) -> SrsSummary:
    payload = to_mapping(raw)
    return SrsSummary(
        due_count=to_number(pick_first(payload, SUMMARY_DUE_KEYS)),
        overdue_count=to_number(pick_first(payload, SUMMARY_OVERDUE_KEYS)),
        new_count=to_number(pick_first(payload, SUMMARY_NEW_KEYS)),
        total_count=to_number(pick_first(payload, SUMMARY_TOTAL_KEYS)),
        upcoming_count=to_number(pick_first(payload, SUMMARY_UPCOMING_KEYS)),
        next_review_at=to_iso_string(pick_first(payload, SUMMARY_NEXT_KEYS)),
        raw=raw,
    )


def _queue(payload: Mapping[str, Any]) -> list[Any]:
    source = pick_first(payload, SESSION_QUEUE_KEYS)
    if isinstance(source, list):
        return source
    if isinstance(source, Mapping):
        for key in ("items", "cards", "queue", "results", "data"):
            if isinstance(source.get(key), list):
                return source[key]
    return []


def normalize_srs_session(raw: Any = None) -> SrsSession:
    """
    Normalize a session payload.

    The current item is the explicit ``current``/``item``/``next`` record,
    else the head of the queue. ``remaining`` is the server count when one
    is given, else the queue length.
    """
    payload = to_mapping(raw)
    queue = [normalize_srs_item(entry) for entry in _queue(payload)]

    current = pick_first(payload, SESSION_CURRENT_KEYS)
    if not isinstance(current, Mapping) or not current:
        current = queue[0].raw if queue else None

    remaining = None
    for key in REMAINING_KEYS:
        value = payload.get(key)
        if value is not None and not isinstance(value, (list, Mapping)):
            remaining = value
            break

    return SrsSession(
        session_id=pick_first(payload, SESSION_ID_KEYS),
        item=normalize_srs_item(current) if current is not None else None,
        queue=queue,
        remaining=to_number(remaining, len(queue)) if remaining is not None else len(queue),
        review=pick_first(payload, REVIEW_KEYS),
        raw=raw,
    )
