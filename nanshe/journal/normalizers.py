"""
Normalizers for journal payloads.

Journal endpoints come in several generations (flat records, JSON:API
``attributes`` wrappers, ``data`` envelopes), so fields are resolved with
``pick_first_path`` over the merged record and then its metadata.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from config import get_settings
from nanshe.core.coercion import (
    normalize_tags,
    pick_first_path,
    pick_first_string,
    to_boolean,
    to_iso_string,
    to_mapping,
    to_number,
)
from nanshe.core.envelope import unwrap_nested

from .models import JournalEntry, JournalList

JOURNAL_PLURALS = ("notes", "rows")

# Journal flags also accept single-letter answers.
SHORT_FLAGS = {"y": True, "n": False}

ENTRY_ID_PATHS = ("id", "entry_id", "uuid", "external_id")
CONTENT_PATHS = ("content", "body", "text", "note")
SUMMARY_PATHS = ("summary", "preview", "excerpt")
TITLE_KEYS = ("title", "subject", "heading")
MOOD_KEYS = ("mood", "emotion", "feeling")
CAPSULE_ID_PATHS = ("capsule_id", "capsuleId")
CREATED_PATHS = ("created_at", "createdAt", "inserted_at", "timestamp")
UPDATED_PATHS = ("updated_at", "updatedAt", "modified_at")
CAPSULE_SOURCE_PATHS = ("capsule", "capsule_info", "capsuleData", "relationships.capsule")
MOLECULE_SOURCE_PATHS = ("molecule", "lesson", "relationships.molecule", "relationships.lesson")

TOTAL_KEYS = ("total", "count", "size", "length")
TOTAL_PATHS = (
    "meta.total",
    "meta.count",
    "meta.pagination.total",
    "meta.pagination.count",
    "pagination.total",
    "pagination.count",
    "pagination.total_entries",
    "data.meta.total",
    "data.meta.count",
    "data.pagination.total",
)
NEXT_PATHS = ("links.next", "meta.next", "pagination.next", "data.links.next")
PREVIOUS_PATHS = ("links.prev", "links.previous", "pagination.previous")


def to_flag(value: Any) -> bool:
    if isinstance(value, str) and value.strip().lower() in SHORT_FLAGS:
        return SHORT_FLAGS[value.strip().lower()]
    return to_boolean(value)


def _merge(*sources: Any) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for source in sources:
        merged.update(to_mapping(source))
    return merged


def _first_raw(source: Mapping, paths: tuple[str, ...]) -> Any:
    """First non-null value at ``paths`` without any string/number filtering."""
    for path in paths:
        current: Any = source
        for segment in path.split("."):
            if not isinstance(current, Mapping):
                current = None
                break
            current = current.get(segment)
        if current is not None:
            return current
    return None


def extract_entity_title(entity: Any) -> str:
    """Title of a related capsule/molecule given as a string, list or record."""
    if not entity:
        return ""
    if isinstance(entity, str):
        return entity
    if isinstance(entity, (list, tuple)):
        candidate = next((item for item in entity if isinstance(item, (str, Mapping)) and item), None)
        return extract_entity_title(candidate)
    if not isinstance(entity, Mapping):
        return ""
    for key in ("title", "name", "label"):
        if entity.get(key):
            return str(entity[key])
    if entity.get("data"):
        return extract_entity_title(entity["data"])
    if entity.get("attributes"):
        return extract_entity_title(entity["attributes"])
    return ""


def _or(value: Any, alternative: Any) -> Any:
    return alternative if value is None else value


def normalize_journal_entry(raw: Any = None) -> JournalEntry:
    """
    Normalize one journal entry.

    ``attributes`` and ``data`` wrappers are merged under the top-level
    record (top-level keys win). The summary falls back to the leading
    characters of the content.
    """
    entry = to_mapping(raw)
    attributes = to_mapping(entry.get("attributes"))
    data = to_mapping(entry.get("data"))
    payload = _merge(attributes, data, entry)
    metadata = _merge(
        entry.get("metadata"),
        entry.get("meta"),
        attributes.get("metadata"),
        data.get("metadata"),
        payload.get("metadata"),
    )

    content = _or(
        pick_first_path(payload, CONTENT_PATHS),
        _or(pick_first_path(metadata, ("content",)), ""),
    )
    summary_length = get_settings().journal_summary_length
    summary = _or(
        pick_first_path(payload, SUMMARY_PATHS),
        _or(
            pick_first_path(metadata, ("summary",)),
            content[:summary_length] if isinstance(content, str) else "",
        ),
    )

    capsule_source = _or(_first_raw(payload, CAPSULE_SOURCE_PATHS), metadata.get("capsule"))
    molecule_source = _or(_first_raw(payload, MOLECULE_SOURCE_PATHS), metadata.get("molecule"))

    return JournalEntry(
        id=_or(pick_first_path(payload, ENTRY_ID_PATHS), pick_first_path(metadata, ("entry_id",))),
        title=pick_first_string(payload, TITLE_KEYS, "Journal"),
        content=content,
        summary=summary if isinstance(summary, str) else str(summary),
        mood=pick_first_string(payload, MOOD_KEYS, metadata.get("mood") or ""),
        tags=normalize_tags(_or(payload.get("tags"), _or(payload.get("labels"), metadata.get("tags")))),
        capsule_id=_or(pick_first_path(payload, CAPSULE_ID_PATHS), pick_first_path(metadata, ("capsule_id",))),
        capsule_title=(
            pick_first_string(payload, ("capsule_title", "capsuleName"), metadata.get("capsule_title") or "")
            or extract_entity_title(capsule_source)
        ),
        molecule_id=_or(pick_first_path(payload, ("molecule_id",)), pick_first_path(metadata, ("molecule_id",))),
        molecule_title=(
            pick_first_string(payload, ("molecule_title", "lesson_title"), metadata.get("molecule_title") or "")
            or extract_entity_title(molecule_source)
        ),
        is_pinned=to_flag(_or(pick_first_path(payload, ("is_pinned",)), metadata.get("is_pinned"))),
        created_at=to_iso_string(
            _or(pick_first_path(payload, CREATED_PATHS), pick_first_path(metadata, ("created_at",)))
        ),
        updated_at=to_iso_string(
            _or(pick_first_path(payload, UPDATED_PATHS), pick_first_path(metadata, ("updated_at",)))
        ),
        metadata=metadata,
        raw=raw,
    )


def normalize_journal_list(payload: Any) -> JournalList:
    """Normalize a page of entries with totals and pagination links."""
    entries = [normalize_journal_entry(item) for item in unwrap_nested(payload, JOURNAL_PLURALS)]
    container = to_mapping(payload)

    total = None
    for key in TOTAL_KEYS:
        if container.get(key) is not None:
            total = container[key]
            break
    if total is None:
        total = pick_first_path(container, TOTAL_PATHS, len(entries))

    return JournalList(
        items=entries,
        total=int(to_number(total, len(entries))),
        next=_or(container.get("next"), pick_first_path(container, NEXT_PATHS)),
        previous=_or(container.get("previous"), pick_first_path(container, PREVIOUS_PATHS)),
        raw=payload,
    )


def extract_first_entry(payload: Any) -> Any:
    """
    Pull the single entry out of a create/update response.

    Tries ``entry``, ``data.entry``, ``data.item``, a JSON:API ``data``
    record, then the first listed item. Falls back to the payload itself.
    """
    if not payload:
        return None
    if isinstance(payload, list):
        return payload[0] if payload else None
    if not isinstance(payload, Mapping):
        return None
    if isinstance(payload.get("entry"), Mapping):
        return payload["entry"]

    data = payload.get("data")
    if isinstance(data, Mapping):
        if data.get("entry"):
            return data["entry"]
        if data.get("item"):
            return data["item"]
        if data.get("attributes") or data.get("data"):
            return dict(data)

    listed = unwrap_nested(payload, JOURNAL_PLURALS)
    if listed and listed[0]:
        return listed[0]
    return payload
