"""
Unit tests for exercise loading and the shared answer lifecycle.
"""

from dataclasses import replace

import httpx
import pytest

from nanshe.capsules.models import Atom
from nanshe.capsules.normalizers import normalize_atom
from nanshe.core.events import XP_REWARD, EventBus
from nanshe.exercises import (
    HANDLERS,
    ExerciseKind,
    ExerciseState,
    detect_kind,
    get_handler,
    load_exercise,
)
from nanshe.exercises.base import exercise_payload
from nanshe.exercises.qcm import QcmExercise, option_index
from nanshe.progress.api import ProgressApi
from nanshe.progress.models import ProgressStatus


@pytest.fixture
def progress_api(api_client, cache):
    return ProgressApi(api_client, cache)


@pytest.fixture
def qcm_atom(sample_qcm_atom):
    return normalize_atom(sample_qcm_atom)


class TestRegistry:
    def test_every_kind_registered(self):
        assert set(HANDLERS) == set(ExerciseKind)

    @pytest.mark.parametrize("alias,kind", [("mcq", ExerciseKind.QCM), ("Fill-In-Blank", ExerciseKind.FILL_IN_BLANK)])
    def test_aliases(self, alias, kind):
        assert get_handler(alias) is HANDLERS[kind]

    def test_unknown_kind(self):
        assert get_handler("hologram") is None


class TestDetection:
    """Kind from content type first, then component_type, then payload shape."""

    @pytest.mark.parametrize(
        "content,expected",
        [
            ({"characters": [{"char": "a", "answer": "a"}]}, ExerciseKind.CHARACTER_RECOGNITION),
            ({"pairs": [{"prompt": "a", "answer": "b"}]}, ExerciseKind.ASSOCIATION),
            ({"items_left": ["a"], "items_right": ["b"]}, ExerciseKind.ASSOCIATION),
            ({"scrambled": ["b", "a"]}, ExerciseKind.SENTENCE_CONSTRUCTION),
            ({"text_with_blanks": "x ___"}, ExerciseKind.FILL_IN_BLANK),
            ({"options": ["a", "b"]}, ExerciseKind.QCM),
            ({"items": ["a", "b"]}, ExerciseKind.REORDER),
            ({"prompt": "hi"}, None),
        ],
    )
    def test_shape(self, content, expected):
        atom = normalize_atom({"id": 1, "content_type": "exercise", "content_json": content})
        assert detect_kind(atom) == expected

    def test_component_type(self):
        atom = normalize_atom({"id": 1, "content_type": "exercise", "content_json": {"component_type": "writing"}})
        assert detect_kind(atom) == ExerciseKind.WRITING

    def test_content_type_wins_over_shape(self):
        atom = normalize_atom({"id": 1, "content_type": "reorder", "content_json": {"options": ["a"]}})
        assert detect_kind(atom) == ExerciseKind.REORDER

    @pytest.mark.parametrize("content_type", ["lesson", "vocabulary", "code_example", "live_code_executor"])
    def test_content_only_types(self, content_type, progress_api):
        atom = normalize_atom({"id": 1, "content_type": content_type, "content_json": {"options": ["a"]}})
        assert detect_kind(atom) is None
        assert load_exercise(atom, progress_api) is None

    def test_payload_sources(self):
        assert exercise_payload(Atom(content={"options": ["x"]})) == {"options": ["x"]}
        assert exercise_payload(Atom(metadata={"content_json": {"items": [1]}})) == {"items": [1]}
        assert exercise_payload(Atom(content="plain text")) == {}

    def test_load_returns_controller(self, qcm_atom, progress_api):
        exercise = load_exercise(qcm_atom, progress_api)
        assert isinstance(exercise, QcmExercise)
        assert exercise.kind == ExerciseKind.QCM


class TestQcmSubmission:
    @pytest.mark.asyncio
    async def test_correct_answer(self, qcm_atom, progress_api, backend):
        """Picking "4" sends index 1 and completes the atom with its reward."""
        backend.add("POST", "/progress/answer", json={"is_correct": True, "feedback": "Correct!"})
        events = EventBus()
        rewards = []
        events.subscribe(XP_REWARD, rewards.append)
        exercise = load_exercise(qcm_atom, progress_api, events=events)

        assert exercise.select("4") is True
        verdict = await exercise.submit()

        assert backend.body() == {"component_id": "atom-qcm", "user_answer_json": {"selected_option": 1}}
        assert verdict.is_correct is True
        assert exercise.state == ExerciseState.ANSWERED
        assert exercise.progress.status == ProgressStatus.COMPLETED
        assert rewards == [{"atom_id": "atom-qcm", "xp": 20}]

    @pytest.mark.asyncio
    async def test_incorrect_answer_fails(self, qcm_atom, progress_api, backend):
        backend.add("POST", "/progress/answer", json={"is_correct": False})
        exercise = load_exercise(qcm_atom, progress_api)
        exercise.select(0)
        await exercise.submit()
        assert exercise.progress.status == ProgressStatus.FAILED

    def test_first_duplicate_wins(self):
        assert option_index(["a", "b", "a"], "a") == 0
        assert option_index(["a"], "z") == -1


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_invalid_draft_not_submitted(self, qcm_atom, progress_api, backend):
        exercise = load_exercise(qcm_atom, progress_api)
        assert exercise.view().can_submit is False
        assert await exercise.submit() is None
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_answered_ignores_edits_and_resubmits(self, qcm_atom, progress_api, backend):
        backend.add("POST", "/progress/answer", json={"is_correct": False})
        exercise = load_exercise(qcm_atom, progress_api)
        exercise.select("3")
        await exercise.submit()

        assert exercise.select("4") is False
        assert exercise.draft() == "3"
        assert await exercise.submit() is None
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_reset_then_resubmit(self, qcm_atom, progress_api, backend):
        backend.add("POST", "/progress/answer", json={"is_correct": False})
        backend.add("POST", "/progress/atom/atom-qcm/reset", json={})
        exercise = load_exercise(qcm_atom, progress_api)
        exercise.select("3")
        await exercise.submit()

        assert await exercise.reset() is True
        assert exercise.state == ExerciseState.UNANSWERED
        assert exercise.draft() is None
        assert exercise.progress.status == ProgressStatus.NOT_STARTED

        backend.add("POST", "/progress/answer", json={"is_correct": True})
        exercise.select("4")
        verdict = await exercise.submit()
        assert verdict.is_correct is True

    @pytest.mark.asyncio
    async def test_reset_refused_keeps_answer(self, qcm_atom, progress_api, backend):
        backend.add("POST", "/progress/answer", json={"is_correct": False})
        backend.add("POST", "/progress/atom/atom-qcm/reset", status=500, json={"detail": "Try later"})
        exercise = load_exercise(qcm_atom, progress_api)
        exercise.select("3")
        await exercise.submit()

        assert await exercise.reset() is False
        assert exercise.state == ExerciseState.ANSWERED
        assert exercise.error == "Try later"
        assert exercise.progress.status == ProgressStatus.FAILED

    @pytest.mark.asyncio
    async def test_reset_when_unanswered(self, qcm_atom, progress_api, backend):
        exercise = load_exercise(qcm_atom, progress_api)
        assert await exercise.reset() is False
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_transport_error_gives_local_verdict(self, qcm_atom, progress_api, backend):
        """Server error: error verdict, nothing persisted, progress rolled back."""
        backend.add("POST", "/progress/answer", status=503, json={"detail": "Service unavailable"})
        exercise = load_exercise(qcm_atom, progress_api)
        exercise.select("4")

        verdict = await exercise.submit()

        assert verdict.error is True
        assert verdict.is_correct is False
        assert verdict.feedback == "Service unavailable"
        assert exercise.state == ExerciseState.ANSWERED
        assert exercise.progress.status == ProgressStatus.NOT_STARTED

        assert await exercise.reset() is True
        assert exercise.state == ExerciseState.UNANSWERED
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_locked_atom(self, sample_qcm_atom, progress_api, backend):
        atom = normalize_atom({**sample_qcm_atom, "is_locked": True})
        exercise = load_exercise(atom, progress_api)

        assert exercise.select("4") is False
        assert await exercise.submit() is None
        assert exercise.view().locked is True
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_missing_atom_id(self, sample_qcm_atom, progress_api, backend):
        raw = {key: value for key, value in sample_qcm_atom.items() if key != "id"}
        exercise = QcmExercise(normalize_atom(raw), progress_api)
        exercise.select("4")
        assert await exercise.submit() is None
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_completed_elsewhere_blocks_submit(self, qcm_atom, progress_api, backend):
        """Shared progress completed after a refetch: no request and the exercise can still be reset."""
        backend.add("POST", "/progress/atom/atom-qcm/reset", json={})
        exercise = load_exercise(qcm_atom, progress_api)
        exercise.select("4")
        exercise.progress.sync(replace(qcm_atom, progress_status="completed"))

        assert await exercise.submit() is None
        assert backend.requests == []
        assert exercise.state == ExerciseState.ANSWERED
        assert exercise.result.is_correct is True
        assert "completed" in exercise.error

        assert await exercise.reset() is True
        assert exercise.state == ExerciseState.UNANSWERED
        assert exercise.progress.status == ProgressStatus.NOT_STARTED

    @pytest.mark.asyncio
    async def test_two_controllers_share_progress(self, qcm_atom, progress_api, backend):
        backend.add("POST", "/progress/answer", json={"is_correct": False})
        first = load_exercise(qcm_atom, progress_api)
        second = load_exercise(qcm_atom, progress_api, progress=first.progress)
        first.select("3")
        second.select("4")

        await first.submit()
        assert await second.submit() is None

        assert len(backend.requests) == 1
        assert second.state == ExerciseState.ANSWERED
        assert second.result.is_correct is False

    @pytest.mark.asyncio
    async def test_verdict_after_external_sync(self, qcm_atom, progress_api, backend):
        """Progress synced while the answer is in flight keeps the verdict."""
        exercise = load_exercise(qcm_atom, progress_api)

        def answer(request):
            exercise.progress.sync(replace(qcm_atom, progress_status="completed"))
            return httpx.Response(200, json={"is_correct": True})

        backend.add("POST", "/progress/answer", handler=answer)
        exercise.select("4")

        verdict = await exercise.submit()

        assert verdict.is_correct is True
        assert exercise.state == ExerciseState.ANSWERED
        assert exercise.progress.status == ProgressStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_reset_without_atom_id(self, sample_qcm_atom, progress_api, backend):
        raw = {key: value for key, value in sample_qcm_atom.items() if key != "id"}
        exercise = QcmExercise(normalize_atom({**raw, "progress_status": "failed"}), progress_api)

        assert await exercise.reset() is False
        assert exercise.state == ExerciseState.ANSWERED
        assert exercise.error == "atom_id is required"
        assert backend.requests == []


class TestRestore:
    def test_submitted_answer(self, qcm_atom, progress_api):
        exercise = load_exercise(
            qcm_atom,
            progress_api,
            submitted_answer={"user_answer_json": {"selected_option": 1}, "is_correct": True, "feedback": "Yes"},
        )
        assert exercise.state == ExerciseState.ANSWERED
        assert exercise.draft() == "4"
        assert exercise.result.feedback == "Yes"

    def test_terminal_progress(self, sample_qcm_atom, progress_api):
        atom = normalize_atom({**sample_qcm_atom, "progress_status": "failed"})
        exercise = load_exercise(atom, progress_api)
        assert exercise.state == ExerciseState.ANSWERED
        assert exercise.result.is_correct is False

    def test_view(self, qcm_atom, progress_api):
        exercise = load_exercise(qcm_atom, progress_api)
        exercise.select("3")
        view = exercise.view()
        assert view.draft == "3"
        assert view.can_submit is True
        assert view.state == ExerciseState.UNANSWERED
