"""
Normalizers for capsule, granule, molecule and atom payloads.

Each canonical field is resolved from an ordered tuple of candidate keys
(see the ``*_KEYS`` constants) so that every backend payload version maps
to the same shape without call-site branching. None of these functions
raise: missing or malformed input produces a complete default record.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from loguru import logger

from config import get_settings
from nanshe.core.coercion import (
    clamp,
    metadata_bags,
    normalize_tags,
    pick_first,
    pick_first_string,
    to_boolean,
    to_mapping,
    to_number,
)
from nanshe.core.envelope import unwrap
from nanshe.progress.aggregation import (
    compute_progress_status,
    derive_capsule_status,
    progress_percentage,
)

from .models import Atom, AtomsResponse, Capsule, CapsuleList, Granule, Molecule

ORDER_KEYS = ("order", "position", "index")
TITLE_KEYS = ("title", "name", "label")
DESCRIPTION_KEYS = ("description", "summary", "details")

# Atom
ATOM_ID_KEYS = ("id", "atom_id", "uuid", "external_id")
ATOM_TITLE_KEYS = ("title", "name", "heading", "label")
ATOM_CONTENT_KEYS = ("content", "body", "text", "markdown", "html")
ATOM_TYPE_KEYS = ("content_type", "type", "kind")
ATOM_STATUS_KEYS = ("progress_status", "status")
ATOM_XP_KEYS = ("reward_xp", "xp", "xp_value")
CAPSULE_REF_KEYS = ("capsule_id", "capsuleId")
MOLECULE_REF_KEYS = ("molecule_id", "moleculeId")

# Molecule
MOLECULE_ID_KEYS = ("id", "molecule_id", "uuid")
MOLECULE_ATOMS_KEYS = ("atoms", "contents", "elements")
MOLECULE_COUNT_KEYS = ("atom_count", "atoms_count", "atom_total")
MOLECULE_GENERATION_KEYS = ("generation_status", "generationStatus", "status", "state")
MOLECULE_STATUS_KEYS = ("progress_status", "progressStatus", "study_status")
MOLECULE_XP_KEYS = ("xp_reward", "reward_xp", "xp")

# Granule
GRANULE_ID_KEYS = ("id", "granule_id", "uuid")
GRANULE_MOLECULES_KEYS = ("molecules", "lessons", "modules")

# Capsule
CAPSULE_ID_KEYS = ("id", "capsule_id", "uuid", "slug")
CAPSULE_DESCRIPTION_KEYS = ("description", "summary", "subtitle", "details")
CAPSULE_DOMAIN_KEYS = ("domain", "domain_slug", "domain_code", "domain_id", "category")
CAPSULE_AREA_KEYS = ("area", "topic", "subdomain", "subject", "area_slug")
CAPSULE_SKILL_KEYS = ("main_skill", "skill", "skill_name", "focus")
CAPSULE_LEVEL_COUNT_KEYS = ("level_count", "levels", "granule_count")
CAPSULE_ATOM_COUNT_KEYS = ("atom_count", "atoms", "atom_total", "total_atoms")
CAPSULE_GENERATION_KEYS = ("generation_status", "status", "state")
XP_TARGET_KEYS = ("xp_target", "target_xp", "xpTarget", "goal_xp", "xp_goal", "total_xp", "reward_target")
XP_CURRENT_KEYS = ("xp_current", "user_xp", "progress_xp", "earned_xp", "xp", "current_xp")
PERCENTAGE_KEYS = ("progress_percentage", "progress_percent", "completion_rate", "progress")
CAPSULE_STATUS_KEYS = ("progress_status", "learning_status", "study_status")
ENROLLED_KEYS = ("is_enrolled", "enrolled", "enrollment_active", "user_enrolled")
UNREAD_KEYS = ("unread_messages_count", "chat_unread_count", "assistant_unread_count", "coach_unread_count")
LESSON_COUNT_KEYS = ("lesson_count", "lessons_count", "total_lessons", "lesson_total", "levels_count", "level_count")
COACH_KEYS = ("coach_enabled", "assistant_enabled")
ICON_KEYS = ("icon", "emoji", "symbol")
AUTHOR_KEYS = ("author_name", "author", "created_by", "owner", "creator")
CREATED_AT_KEYS = ("created_at", "createdAt", "inserted_at", "updated_at")
CAPSULE_GRANULES_KEYS = ("granules", "levels", "structure")


def _sorted_by_order(items: list[Any]) -> list[Any]:
    # list.sort is stable: equal orders keep input order.
    return sorted(items, key=lambda item: item.order)


# =============================================================================
# Atom / Molecule / Granule
# =============================================================================


def normalize_atom(raw: Any) -> Atom:
    """Normalize one atom payload."""
    if not isinstance(raw, Mapping):
        return Atom(raw=raw)

    metadata = to_mapping(pick_first(raw, ("metadata", "meta"), default={}))
    bags = (metadata,)
    order = to_number(pick_first(raw, ORDER_KEYS))

    atom_id = pick_first(raw, ATOM_ID_KEYS)
    if atom_id is None and raw.get("type"):
        atom_id = f"{raw['type']}-{raw.get('order', 0)}"

    content = pick_first(raw, ATOM_CONTENT_KEYS, default="")
    content_type = pick_first(raw, ATOM_TYPE_KEYS, bags=bags, bag_keys=("content_type",), default="lesson")
    progress_status = pick_first(raw, ATOM_STATUS_KEYS, bags=bags, default="not_started")

    return Atom(
        id=atom_id,
        order=order,
        title=pick_first_string(raw, ATOM_TITLE_KEYS),
        content=content,
        markdown=pick_first(raw, ("markdown",), default=content),
        html=raw.get("html"),
        metadata=metadata,
        content_type=content_type,
        progress_status=progress_status,
        reward_xp=to_number(pick_first(raw, ATOM_XP_KEYS)),
        is_bonus=to_boolean(pick_first(raw, ("is_bonus", "bonus"))),
        is_locked=to_boolean(pick_first(raw, ("is_locked", "locked"))) or progress_status == "locked",
        capsule_id=pick_first(raw, CAPSULE_REF_KEYS, bags=bags, bag_keys=("capsule_id",)),
        molecule_id=pick_first(raw, MOLECULE_REF_KEYS, bags=bags, bag_keys=("molecule_id",)),
        raw=raw,
    )


def normalize_molecule(raw: Any) -> Molecule:
    """Normalize one molecule payload, deriving status from its atoms."""
    if not isinstance(raw, Mapping):
        return Molecule(raw=raw)

    atoms = [normalize_atom(atom) for atom in unwrap(pick_first(raw, MOLECULE_ATOMS_KEYS), "atoms")]
    atom_count = len(atoms) or int(to_number(pick_first(raw, MOLECULE_COUNT_KEYS)))
    progress_status = pick_first(raw, MOLECULE_STATUS_KEYS)
    if progress_status is None:
        progress_status = compute_progress_status(atoms)

    return Molecule(
        id=pick_first(raw, MOLECULE_ID_KEYS),
        order=to_number(pick_first(raw, ORDER_KEYS)),
        title=pick_first_string(raw, TITLE_KEYS),
        description=pick_first_string(raw, DESCRIPTION_KEYS),
        atoms=atoms,
        atom_count=atom_count,
        generation_status=pick_first(raw, MOLECULE_GENERATION_KEYS, default="completed"),
        progress_status=progress_status,
        xp_reward=to_number(pick_first(raw, MOLECULE_XP_KEYS)),
        is_locked=to_boolean(pick_first(raw, ("is_locked", "locked"))),
        is_bonus_available=to_boolean(pick_first(raw, ("is_bonus_available", "bonus_available"))),
        raw=raw,
    )


def normalize_granule(raw: Any) -> Granule:
    """Normalize one granule (level); molecules are sorted by order."""
    if not isinstance(raw, Mapping):
        return Granule(raw=raw)

    molecules = [normalize_molecule(item) for item in unwrap(pick_first(raw, GRANULE_MOLECULES_KEYS), "molecules")]
    return Granule(
        id=pick_first(raw, GRANULE_ID_KEYS),
        order=to_number(pick_first(raw, ORDER_KEYS)),
        title=pick_first_string(raw, TITLE_KEYS),
        description=pick_first_string(raw, DESCRIPTION_KEYS),
        molecules=_sorted_by_order(molecules),
        raw=raw,
    )


# =============================================================================
# Capsule
# =============================================================================


def _access_flag(value: Any) -> Any:
    if isinstance(value, str):
        return value == "locked"
    return value


def _xp_target(raw: Mapping) -> float:
    default_target = get_settings().default_xp_target
    for key in XP_TARGET_KEYS:
        value = to_number(raw.get(key))
        if value > 0:
            return value
    return default_target


def _lesson_count(raw: Mapping) -> int:
    explicit = to_number(pick_first(raw, LESSON_COUNT_KEYS))
    if explicit:
        return int(explicit)
    lessons = raw.get("lessons")
    if isinstance(lessons, list):
        return len(lessons)
    modules = raw.get("modules")
    if isinstance(modules, list):
        return sum(
            len(module["lessons"])
            for module in modules
            if isinstance(module, Mapping) and isinstance(module.get("lessons"), list)
        )
    return 0


def _level_count(raw: Mapping) -> int:
    count = int(to_number(pick_first(raw, CAPSULE_LEVEL_COUNT_KEYS)))
    if not count and isinstance(raw.get("granules"), list):
        count = len(raw["granules"])
    return count


def normalize_capsule(raw: Any) -> Capsule:
    """
    Normalize a capsule summary payload.

    XP target falls back to the configured default (6000). Progress
    percentage comes from an explicit field when present, otherwise from
    the XP ratio; both are clamped to ``[0, 100]``.
    """
    if not isinstance(raw, Mapping):
        logger.debug("Capsule payload is not a mapping, using defaults")
        return replace(normalize_capsule({}), raw=raw)

    bags = metadata_bags(raw)
    xp_target = _xp_target(raw)
    xp_current = max(0, to_number(pick_first(raw, XP_CURRENT_KEYS)))

    explicit_percentage = pick_first(raw, PERCENTAGE_KEYS)
    if explicit_percentage is not None:
        percentage = clamp(to_number(explicit_percentage), 0, 100)
    else:
        percentage = progress_percentage(xp_current, xp_target)

    progress_status = pick_first(raw, CAPSULE_STATUS_KEYS, bags=bags)
    if progress_status is None:
        progress_status = derive_capsule_status(percentage, xp_current)

    is_locked = pick_first(raw, ("is_locked", "locked"))
    if is_locked is None:
        is_locked = _access_flag(raw.get("access"))
    if is_locked is None:
        is_locked = _access_flag(raw.get("permissions"))

    return Capsule(
        id=pick_first(raw, CAPSULE_ID_KEYS, bags=bags, bag_keys=("id", "capsule_id")),
        title=pick_first_string(raw, TITLE_KEYS, "Capsule"),
        description=pick_first_string(raw, CAPSULE_DESCRIPTION_KEYS),
        domain=pick_first_string(raw, CAPSULE_DOMAIN_KEYS, "others"),
        area=pick_first_string(raw, CAPSULE_AREA_KEYS),
        main_skill=pick_first_string(raw, CAPSULE_SKILL_KEYS),
        level_count=_level_count(raw),
        atom_count=int(to_number(pick_first(raw, CAPSULE_ATOM_COUNT_KEYS))),
        xp_reward=to_number(pick_first(raw, ("xp_reward", "total_xp", "reward_xp"))),
        xp_target=xp_target,
        xp_current=xp_current,
        progress_percentage=percentage,
        progress_status=progress_status,
        is_locked=to_boolean(is_locked),
        is_enrolled=to_boolean(pick_first(raw, ENROLLED_KEYS)),
        lesson_count=_lesson_count(raw),
        coach_enabled=to_boolean(pick_first(raw, COACH_KEYS), fallback=True),
        unread_messages_count=int(to_number(pick_first(raw, UNREAD_KEYS))),
        icon=pick_first(raw, ICON_KEYS),
        generation_status=pick_first(raw, CAPSULE_GENERATION_KEYS, default="completed"),
        tags=normalize_tags(raw.get("tags")),
        author_name=pick_first_string(raw, AUTHOR_KEYS),
        created_at=pick_first(raw, CREATED_AT_KEYS),
        raw=raw,
    )


def normalize_capsule_detail(raw: Any) -> Capsule:
    """Capsule summary plus its sorted granule tree, objectives and prerequisites."""
    if isinstance(raw, Mapping) and isinstance(raw.get("capsule"), Mapping):
        raw = raw["capsule"]

    summary = normalize_capsule(raw)
    if not isinstance(raw, Mapping):
        return summary

    granules = [normalize_granule(item) for item in unwrap(pick_first(raw, CAPSULE_GRANULES_KEYS), "granules")]
    objectives = pick_first(raw, ("objectives", "goals"), default=[])
    prerequisites = pick_first(raw, ("prerequisites", "requirements"), default=[])
    return replace(
        summary,
        granules=_sorted_by_order(granules),
        objectives=list(objectives) if isinstance(objectives, (list, tuple)) else [],
        prerequisites=list(prerequisites) if isinstance(prerequisites, (list, tuple)) else [],
    )


def normalize_capsule_list(payload: Any) -> CapsuleList:
    """Normalize a capsule listing, keeping pagination links when present."""
    items = [normalize_capsule(item) for item in unwrap(payload, "capsules")]
    if not isinstance(payload, Mapping):
        return CapsuleList(items=items, total=len(items), raw=payload)
    return CapsuleList(
        items=items,
        total=int(to_number(pick_first(payload, ("total", "count")), len(items))),
        next=payload.get("next"),
        previous=payload.get("previous"),
        raw=payload,
    )


def extract_atoms_response(payload: Any) -> AtomsResponse:
    """Atoms of a molecule (or learning session) response."""
    source = payload.get("atoms") if isinstance(payload, Mapping) and payload.get("atoms") is not None else payload
    atoms = [normalize_atom(item) for item in unwrap(source, "atoms")]
    derived = compute_progress_status(atoms)
    if not isinstance(payload, Mapping):
        return AtomsResponse(atoms=atoms, progress_status=derived)
    return AtomsResponse(
        atoms=atoms,
        generation_status=pick_first(payload, ("generation_status", "status"), default="completed"),
        progress_status=pick_first(payload, ("progress_status",), default=derived),
    )


def pending_atoms_response() -> AtomsResponse:
    """Response used while the backend is still generating a molecule (HTTP 202)."""
    return AtomsResponse(atoms=[], generation_status="pending", progress_status="in_progress")
