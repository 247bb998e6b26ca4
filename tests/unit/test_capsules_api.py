"""
Unit tests for capsule endpoints and their cache keys.
"""

import pytest

from nanshe.capsules.api import CapsulesApi


@pytest.fixture
def capsules(api_client, cache):
    return CapsulesApi(api_client, cache)


class TestCapsuleReads:
    @pytest.mark.asyncio
    async def test_detail_is_normalized_and_cached(self, capsules, backend, cache, sample_capsule_payload):
        """Second read of the same capsule is served from the cache."""
        backend.add("GET", "/capsules/programming/python/42", json=sample_capsule_payload)

        first = await capsules.fetch_capsule_detail("programming", "python", 42)
        second = await capsules.fetch_capsule_detail("programming", "python", 42)

        assert first is second
        assert first.title == "Python Basics"
        assert len(backend.requests) == 1
        assert ("capsule", 42) in cache

    @pytest.mark.asyncio
    async def test_public_list(self, capsules, backend):
        backend.add("GET", "/capsules/public", json={"items": [{"id": 1, "title": "A"}], "total": 5})
        listing = await capsules.fetch_public_capsules()
        assert [c.title for c in listing.items] == ["A"]
        assert listing.total == 5

    @pytest.mark.asyncio
    async def test_missing_id_rejected(self, capsules, backend):
        with pytest.raises(ValueError):
            await capsules.fetch_capsule_detail("d", "a", None)
        with pytest.raises(ValueError):
            await capsules.fetch_molecule_atoms("")
        assert backend.requests == []


class TestMoleculeAtoms:
    @pytest.mark.asyncio
    async def test_pending_generation(self, capsules, backend, cache):
        """HTTP 202 gives an empty pending response that is not cached."""
        backend.add("GET", "/capsules/molecules/m1/atoms", status=202)

        response = await capsules.fetch_molecule_atoms("m1")

        assert response.atoms == []
        assert response.is_pending
        assert response.progress_status == "in_progress"
        assert ("atoms", "m1") not in cache

    @pytest.mark.asyncio
    async def test_pending_then_ready(self, capsules, backend):
        backend.add("GET", "/capsules/molecules/m1/atoms", status=202)
        await capsules.fetch_molecule_atoms("m1")

        backend.add("GET", "/capsules/molecules/m1/atoms", json=[{"id": "a1", "progress_status": "completed"}])
        response = await capsules.fetch_molecule_atoms("m1")

        assert [atom.id for atom in response.atoms] == ["a1"]
        assert not response.is_pending
        assert len(backend.requests) == 2

    @pytest.mark.asyncio
    async def test_ready_atoms_cached(self, capsules, backend):
        backend.add("GET", "/capsules/molecules/m1/atoms", json={"atoms": [{"id": "a1"}]})
        await capsules.fetch_molecule_atoms("m1")
        await capsules.fetch_molecule_atoms("m1")
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_bonus_invalidates_atoms(self, capsules, backend, cache):
        backend.add("GET", "/capsules/molecules/m1/atoms", json=[{"id": "a1"}])
        backend.add("POST", "/capsules/molecules/m1/bonus", json={"atoms": [{"id": "b1", "is_bonus": True}]})
        await capsules.fetch_molecule_atoms("m1")

        bonus = await capsules.generate_molecule_bonus("m1")

        assert bonus.atoms[0].is_bonus is True
        assert ("atoms", "m1") not in cache

    @pytest.mark.asyncio
    async def test_learning_session_pending(self, capsules, backend):
        backend.add("GET", "/capsules/42/granule/1/molecule/2", status=202)
        response = await capsules.fetch_learning_session(42, 1, 2)
        assert response.is_pending
        assert response.atoms == []


class TestEnroll:
    @pytest.mark.asyncio
    async def test_enroll_invalidates_capsule_reads(self, capsules, backend, cache):
        backend.add("GET", "/capsules/me", json=[])
        backend.add("POST", "/capsules/42/enroll", json={"enrolled": True})
        cache.set(("capsule", 42), object())
        cache.set(("capsule", 7), object())
        await capsules.fetch_my_capsules()

        result = await capsules.enroll(42)

        assert result == {"enrolled": True}
        assert ("capsules", "me") not in cache
        assert ("capsule", 42) not in cache
        assert ("capsule", 7) in cache

    @pytest.mark.asyncio
    async def test_enroll_requires_id(self, capsules):
        with pytest.raises(ValueError):
            await capsules.enroll(None)
