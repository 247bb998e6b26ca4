"""
Capsule endpoints.

Every read returns normalized entities and goes through the shared
``QueryCache`` under a stable key, so a refetch after invalidation
produces a fresh tree.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from nanshe.core.cache import QueryCache
from nanshe.core.http import ApiClient, response_json

from .models import AtomsResponse, Capsule, CapsuleList
from .normalizers import (
    extract_atoms_response,
    normalize_capsule_detail,
    normalize_capsule_list,
    pending_atoms_response,
)

ACCEPTED_WITH_PENDING = (200, 202)


class CapsulesApi:
    """Capsule, molecule and learning-session reads."""

    def __init__(self, client: ApiClient, cache: QueryCache | None = None):
        self.client = client
        self.cache = cache if cache is not None else QueryCache()

    async def fetch_public_capsules(self) -> CapsuleList:
        async def load() -> CapsuleList:
            response = await self.client.request("get", "/capsules/public")
            return normalize_capsule_list(response_json(response, []))

        return await self.cache.fetch(("capsules", "public"), load)

    async def fetch_my_capsules(self) -> CapsuleList:
        async def load() -> CapsuleList:
            response = await self.client.request("get", "/capsules/me")
            return normalize_capsule_list(response_json(response, []))

        return await self.cache.fetch(("capsules", "me"), load)

    async def enroll(self, capsule_id: Any) -> Any:
        """Enroll the learner in a capsule and drop cached capsule reads."""
        if not capsule_id:
            raise ValueError("capsule_id is required")
        response = await self.client.request("post", f"/capsules/{capsule_id}/enroll")
        self.cache.invalidate(("capsules",))
        self.cache.invalidate(("capsule", capsule_id))
        return response_json(response, {})

    async def fetch_capsule_detail(self, domain: str, area: str, capsule_id: Any) -> Capsule:
        """Capsule with its granule/molecule tree."""
        if not capsule_id:
            raise ValueError("capsule_id is required")

        async def load() -> Capsule:
            response = await self.client.request("get", f"/capsules/{domain}/{area}/{capsule_id}")
            return normalize_capsule_detail(response_json(response, {}))

        return await self.cache.fetch(("capsule", capsule_id), load)

    async def fetch_molecule_atoms(self, molecule_id: Any) -> AtomsResponse:
        """
        Atoms of one molecule.

        HTTP 202 means the backend is still generating the molecule: the
        result is empty with ``generation_status="pending"`` and is not cached.
        """
        if not molecule_id:
            raise ValueError("molecule_id is required")
        key = ("atoms", molecule_id)
        if key in self.cache:
            return self.cache.get(key)

        response = await self.client.request(
            "get", f"/capsules/molecules/{molecule_id}/atoms", accept=ACCEPTED_WITH_PENDING
        )
        if response.status_code == 202:
            logger.info(f"Molecule {molecule_id} is still being generated")
            return pending_atoms_response()

        result = extract_atoms_response(response_json(response, []))
        self.cache.set(key, result)
        return result

    async def generate_molecule_bonus(self, molecule_id: Any, payload: dict[str, Any] | None = None) -> AtomsResponse:
        """Ask the backend for bonus atoms on a molecule."""
        if not molecule_id:
            raise ValueError("molecule_id is required")
        response = await self.client.request("post", f"/capsules/molecules/{molecule_id}/bonus", json=payload or {})
        self.cache.invalidate(("atoms", molecule_id))
        return extract_atoms_response(response_json(response, []))

    async def fetch_learning_session(self, capsule_id: Any, granule_order: int, molecule_order: int) -> AtomsResponse:
        """Atoms addressed by position rather than id."""
        if not capsule_id:
            raise ValueError("capsule_id is required")
        key = ("learningSession", capsule_id, granule_order, molecule_order)
        if key in self.cache:
            return self.cache.get(key)

        response = await self.client.request(
            "get",
            f"/capsules/{capsule_id}/granule/{granule_order}/molecule/{molecule_order}",
            accept=ACCEPTED_WITH_PENDING,
        )
        if response.status_code == 202:
            return AtomsResponse(atoms=[], generation_status="pending")

        result = extract_atoms_response(response_json(response, []))
        self.cache.set(key, result)
        return result
