"""
Unit tests for the collection unwrapper.
"""

import pytest

from nanshe.core.envelope import unwrap, unwrap_nested


class TestUnwrap:
    """Probe order: list, pagination.items, conventional keys, values."""

    def test_list_passthrough(self):
        assert unwrap([1]) == [1]

    def test_pagination_items_first(self):
        payload = {"pagination": {"items": ["p"]}, "items": ["i"]}
        assert unwrap(payload) == ["p"]

    def test_conventional_order(self):
        payload = {"records": ["rec"], "data": ["d"], "results": ["r"]}
        assert unwrap(payload) == ["r"]

    def test_plural_key(self):
        assert unwrap({"atoms": ["a"]}, "atoms") == ["a"]

    def test_values_last(self):
        assert unwrap({"values": ["v"]}) == ["v"]
        assert unwrap({"values": ["v"], "list": ["l"]}) == ["l"]

    @pytest.mark.parametrize("payload", [None, 3, "x", {}, {"pagination": {"items": "no"}}])
    def test_empty(self, payload):
        assert unwrap(payload) == []


class TestUnwrapNested:
    """Journal-style nested envelopes."""

    def test_descends_into_mapping_values(self):
        payload = {"data": {"entries": [{"id": 1}]}}
        assert unwrap_nested(payload, "entries") == [{"id": 1}]

    def test_direct_list_preferred(self):
        payload = {"items": ["direct"], "data": {"entries": ["nested"]}}
        assert unwrap_nested(payload) == ["direct"]

    def test_depth_limit(self):
        payload = {"data": {"data": {"data": {"data": {"data": {"items": ["deep"]}}}}}}
        assert unwrap_nested(payload) == []

    def test_within_depth(self):
        payload = {"data": {"data": {"items": ["ok"]}}}
        assert unwrap_nested(payload) == ["ok"]
