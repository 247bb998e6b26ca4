"""
Bottom-up status aggregation.

Molecule status is derived from its atoms. Capsule completion is derived
from XP only (``xp_current / xp_target``), never from child statuses.

After a verdict the progress endpoints invalidate every cached capsule, so
the next read refetches a tree already recomputed by the normalizers.
``replace_atom`` and ``with_xp`` patch a tree the caller keeps in memory
between refetches; nothing in the request path depends on them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from loguru import logger

from nanshe.capsules.models import Atom, Capsule, Granule, Molecule
from nanshe.core.coercion import clamp

from .models import UNATTEMPTED_STATUSES, ProgressStatus


def _status_of(item: Any) -> str:
    status = item if isinstance(item, str) else getattr(item, "progress_status", None)
    if isinstance(status, ProgressStatus):
        return status.value
    return status or ProgressStatus.NOT_STARTED.value


def compute_progress_status(items: Iterable[Any], fallback: str = ProgressStatus.NOT_STARTED.value) -> str:
    """
    Aggregate child statuses (atoms or raw status strings).

    ``completed`` iff every child is completed; ``in_progress`` iff any
    child is past ``not_started``/``locked``; otherwise ``fallback``.
    An empty child list yields ``fallback``.
    """
    statuses = [_status_of(item) for item in items]
    if not statuses:
        return fallback
    if all(status == ProgressStatus.COMPLETED.value for status in statuses):
        return ProgressStatus.COMPLETED.value
    if any(status not in UNATTEMPTED_STATUSES for status in statuses):
        return ProgressStatus.IN_PROGRESS.value
    return fallback


def progress_percentage(xp_current: float, xp_target: float) -> float:
    """XP ratio as a percentage clamped to ``[0, 100]``; ``0`` for a zero target."""
    if xp_target <= 0:
        return 0
    return clamp(xp_current / xp_target * 100, 0, 100)


def derive_capsule_status(percentage: float, xp_current: float) -> str:
    if percentage >= 100:
        return ProgressStatus.COMPLETED.value
    if xp_current > 0:
        return ProgressStatus.IN_PROGRESS.value
    return ProgressStatus.NOT_STARTED.value


def with_xp(capsule: Capsule, xp_current: float) -> Capsule:
    """Capsule with new XP and progress recomputed from XP alone."""
    xp_current = max(0, xp_current)
    percentage = progress_percentage(xp_current, capsule.xp_target)
    return replace(
        capsule,
        xp_current=xp_current,
        progress_percentage=percentage,
        progress_status=derive_capsule_status(percentage, xp_current),
    )


def refresh_molecule(molecule: Molecule) -> Molecule:
    """Recompute a molecule's status from its atoms."""
    status = compute_progress_status(molecule.atoms, ProgressStatus.NOT_STARTED.value)
    return replace(molecule, progress_status=status)


def replace_atom(capsule: Capsule, atom: Atom) -> Capsule:
    """
    Capsule tree with ``atom`` swapped in by id.

    The owning molecule's status is recomputed; granules and the capsule
    are rebuilt around it. Capsule XP is left untouched.
    """
    found = False
    granules: list[Granule] = []
    for granule in capsule.granules:
        molecules: list[Molecule] = []
        for molecule in granule.molecules:
            if any(existing.id == atom.id for existing in molecule.atoms):
                found = True
                atoms = [atom if existing.id == atom.id else existing for existing in molecule.atoms]
                molecule = refresh_molecule(replace(molecule, atoms=atoms))
            molecules.append(molecule)
        granules.append(replace(granule, molecules=molecules))

    if not found:
        logger.debug(f"Atom {atom.id} not found in capsule {capsule.id}")
        return capsule
    return replace(capsule, granules=granules)
