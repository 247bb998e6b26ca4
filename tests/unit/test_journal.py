"""
Unit tests for journal normalization and endpoints.
"""

import pytest

from nanshe.core.http import ApiError
from nanshe.journal.api import JournalApi, entry_paths
from nanshe.journal.normalizers import (
    extract_entity_title,
    extract_first_entry,
    normalize_journal_entry,
    normalize_journal_list,
)


@pytest.fixture
def journal_api(api_client, cache):
    return JournalApi(api_client, cache)


class TestEntryNormalizer:
    def test_flat_entry(self):
        entry = normalize_journal_entry(
            {
                "id": 5,
                "title": "Day 1",
                "content": "Learned loops",
                "mood": "happy",
                "tags": "python, loops",
                "capsule_id": 42,
                "capsule": {"title": "Python Basics"},
                "is_pinned": "true",
                "created_at": "2024-03-01T10:00:00Z",
            }
        )
        assert entry.id == 5
        assert entry.title == "Day 1"
        assert entry.summary == "Learned loops"
        assert entry.mood == "happy"
        assert entry.tags == ["python", "loops"]
        assert entry.capsule_title == "Python Basics"
        assert entry.is_pinned is True
        assert entry.created_at == "2024-03-01T10:00:00.000Z"

    def test_attributes_wrapper(self):
        """JSON:API attributes are merged under top-level keys."""
        entry = normalize_journal_entry({"id": "e1", "attributes": {"body": "Notes", "title": "Wrapped", "id": "x"}})
        assert entry.id == "e1"
        assert entry.content == "Notes"
        assert entry.title == "Wrapped"

    def test_metadata_fallbacks(self):
        entry = normalize_journal_entry({"metadata": {"entry_id": 9, "content": "From meta", "mood": "calm"}})
        assert entry.id == 9
        assert entry.content == "From meta"
        assert entry.mood == "calm"

    def test_summary_truncated(self):
        entry = normalize_journal_entry({"content": "x" * 400})
        assert len(entry.summary) == 280

    def test_relationship_titles(self):
        entry = normalize_journal_entry(
            {"relationships": {"molecule": {"data": {"attributes": {"name": "Lists"}}}}}
        )
        assert entry.molecule_title == "Lists"

    def test_defaults(self):
        entry = normalize_journal_entry(None)
        assert entry.title == "Journal"
        assert entry.content == ""
        assert entry.summary == ""
        assert entry.tags == []
        assert entry.created_at is None

    @pytest.mark.parametrize("flag,expected", [("y", True), ("N", False), ("yes", True), (1, True), ("maybe", False)])
    def test_pinned_flag(self, flag, expected):
        assert normalize_journal_entry({"is_pinned": flag}).is_pinned is expected

    def test_entity_title(self):
        assert extract_entity_title(["", {"label": "L"}]) == "L"
        assert extract_entity_title(42) == ""


class TestListNormalizer:
    def test_nested_envelope(self):
        payload = {"data": {"notes": [{"id": 1}, {"id": 2}]}, "meta": {"pagination": {"total": 9}}}
        listing = normalize_journal_list(payload)
        assert [e.id for e in listing.items] == [1, 2]
        assert listing.total == 9

    def test_total_key_wins(self):
        listing = normalize_journal_list({"items": [{"id": 1}], "count": 3, "meta": {"total": 8}})
        assert listing.total == 3

    def test_total_defaults_to_length(self):
        assert normalize_journal_list([{"id": 1}, {"id": 2}]).total == 2

    def test_links(self):
        listing = normalize_journal_list({"items": [], "links": {"next": "/p2", "prev": "/p0"}})
        assert listing.next == "/p2"
        assert listing.previous == "/p0"


class TestExtractFirstEntry:
    @pytest.mark.parametrize(
        "payload,expected",
        [
            ({"entry": {"id": 1}}, {"id": 1}),
            ({"data": {"entry": {"id": 2}}}, {"id": 2}),
            ({"data": {"item": {"id": 3}}}, {"id": 3}),
            ({"data": {"id": 4, "attributes": {"content": "c"}}}, {"id": 4, "attributes": {"content": "c"}}),
            ({"items": [{"id": 5}]}, {"id": 5}),
            ([{"id": 6}], {"id": 6}),
            ({"id": 7}, {"id": 7}),
            (None, None),
        ],
    )
    def test_shapes(self, payload, expected):
        assert extract_first_entry(payload) == expected


class TestJournalApi:
    def test_entry_paths(self):
        assert entry_paths(3) == [
            "/journal/entries/3",
            "/learning/journal/entries/3",
            "/journal/3",
            "/toolbox/journal/3",
        ]

    @pytest.mark.asyncio
    async def test_fetch_falls_back(self, journal_api, backend):
        backend.add("GET", "/journal", json={"entries": [{"id": 1, "content": "hi"}]})

        listing = await journal_api.fetch_entries()

        assert [e.content for e in listing.items] == ["hi"]
        assert backend.calls == [
            ("GET", "/journal/entries"),
            ("GET", "/learning/journal/entries"),
            ("GET", "/journal"),
        ]

    @pytest.mark.asyncio
    async def test_no_content_is_empty(self, journal_api, backend):
        backend.add("GET", "/journal/entries", status=204)
        listing = await journal_api.fetch_entries({"page": 1})
        assert listing.items == []
        assert listing.total == 0

    @pytest.mark.asyncio
    async def test_list_params_are_cached(self, journal_api, backend):
        backend.add("GET", "/journal/entries", json=[{"id": 1}])

        first = await journal_api.fetch_entries({"tags": ["python", "loops"], "page": 1})
        second = await journal_api.fetch_entries({"page": 1, "tags": ["python", "loops"]})

        assert first is second
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_all_paths_missing(self, journal_api, backend):
        with pytest.raises(ApiError) as exc_info:
            await journal_api.fetch_entries()
        assert exc_info.value.status_code == 404
        assert len(backend.requests) == 4

    @pytest.mark.asyncio
    async def test_create_strips_internal_keys(self, journal_api, backend, cache):
        backend.add("POST", "/journal/entries", json={"data": {"entry": {"id": 10, "content": "new"}}})
        cache.set(("journal",), object())

        entry = await journal_api.create_entry({"content": "new", "__internal": {"draft": True}})

        assert backend.body() == {"content": "new"}
        assert entry.id == 10
        assert ("journal",) not in cache

    @pytest.mark.asyncio
    async def test_create_with_listing_response(self, journal_api, backend):
        backend.add("POST", "/journal/entries", json={"entries": [{"id": 11}, {"id": 12}]})
        entry = await journal_api.create_entry({"content": "x"})
        assert entry.id == 11

    @pytest.mark.asyncio
    async def test_update_uses_patch(self, journal_api, backend):
        backend.add("PATCH", "/learning/journal/entries/10", json={"id": 10, "title": "Edited"})
        entry = await journal_api.update_entry(10, {"title": "Edited"})
        assert entry.title == "Edited"
        assert backend.requests[-1].method == "PATCH"

    @pytest.mark.asyncio
    async def test_delete(self, journal_api, backend):
        backend.add("DELETE", "/journal/entries/10", status=204)
        assert await journal_api.delete_entry(10) == {"success": True}

    @pytest.mark.asyncio
    async def test_missing_ids(self, journal_api):
        with pytest.raises(ValueError):
            await journal_api.update_entry(None, {})
        with pytest.raises(ValueError):
            await journal_api.delete_entry("")
