"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
an in-process fake backend (served through ``httpx.MockTransport``) and
sample payloads in the shapes the platform API returns.
"""
import json
import sys
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from nanshe.core.cache import QueryCache  # noqa: E402
from nanshe.core.http import ApiClient  # noqa: E402

BASE_URL = "http://testserver/api/v2"
API_PREFIX = "/api/v2"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# ========================================
# Fake backend
# ========================================


class FakeBackend:
    """
    Route table for ``httpx.MockTransport``.

    Routes are keyed by ``(METHOD, path)`` with the ``/api/v2`` prefix
    stripped. Unknown routes answer 404 like the real API.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], object] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, json=None, handler: Callable | None = None):
        self.routes[(method.upper(), path)] = handler or (status, json)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PREFIX)
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        if callable(route):
            return route(request)
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def calls(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.path.removeprefix(API_PREFIX)) for r in self.requests]

    def body(self, index: int = -1):
        content = self.requests[index].content
        return json.loads(content) if content else None


@pytest.fixture
def backend():
    return FakeBackend()


@pytest_asyncio.fixture
async def api_client(backend):
    """ApiClient wired to the fake backend."""
    client = ApiClient(BASE_URL, token="test-token", transport=httpx.MockTransport(backend.handle))
    yield client
    await client.close()


@pytest.fixture
def cache():
    return QueryCache()


# ========================================
# Sample payloads
# ========================================


@pytest.fixture
def sample_capsule_payload():
    """Capsule detail payload with two levels, given out of order."""
    return {
        "capsule": {
            "id": 42,
            "title": "Python Basics",
            "domain": "programming",
            "area": "python",
            "xp": 1500,
            "tags": [{"label": "python"}, "beginner"],
            "granules": [
                {
                    "id": "g2",
                    "order": 2,
                    "title": "Functions",
                    "molecules": [
                        {"id": "m3", "order": 1, "title": "def", "atoms": []},
                    ],
                },
                {
                    "id": "g1",
                    "order": 1,
                    "title": "Variables",
                    "molecules": [
                        {
                            "id": "m2",
                            "order": 2,
                            "title": "Types",
                            "atoms": [
                                {"id": "a3", "order": 1, "content_type": "lesson", "progress_status": "not_started"},
                            ],
                        },
                        {
                            "id": "m1",
                            "order": 1,
                            "title": "Assignment",
                            "atoms": [
                                {"id": "a1", "order": 1, "content_type": "lesson", "progress_status": "completed"},
                                {
                                    "id": "a2",
                                    "order": 2,
                                    "content_type": "qcm",
                                    "progress_status": "not_started",
                                    "reward_xp": 50,
                                    "content_json": {"question": "2+2?", "options": ["3", "4"]},
                                },
                            ],
                        },
                    ],
                },
            ],
        }
    }


@pytest.fixture
def sample_qcm_atom():
    """Raw QCM atom payload."""
    return {
        "id": "atom-qcm",
        "order": 1,
        "content_type": "qcm",
        "progress_status": "not_started",
        "reward_xp": 20,
        "content_json": {"question": "2+2?", "options": ["3", "4"]},
    }


@pytest.fixture
def sample_srs_item():
    return {
        "id": "card-1",
        "question": "bonjour",
        "back": "hello",
        "due": 1_700_000_000,
        "metadata": {"hint": "greeting", "capsule_id": 42},
    }
