"""
Unit tests for SessionLifecycleManager.

Testing philosophy:
- Drive the manager through its public operations with a fixed clock
- Check the stored session after every write, not just the return value
- Fake only the extractor; repositories are the in-memory ones
"""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from src.core.staging.errors import (
    ExtractionError,
    InvalidExerciseIndexError,
    InvalidVideoUrlError,
    QuotaExceededError,
    SessionClosedError,
    SessionExpiredError,
    SessionNotFoundError,
    WorkoutNotFoundError,
)
from src.core.staging.importer import ImportEngine, WorkoutImporter
from src.core.staging.lifecycle import SessionLifecycleManager
from src.core.staging.models import (
    EditOverlay,
    ImportAction,
    SessionStatus,
    Workout,
)
from src.core.staging.quota import QuotaGuard
from src.infrastructure.snowflake.repositories import (
    MockExerciseLibraryRepository,
    MockSessionRepository,
)

VIDEO_URL = "https://www.youtube.com/watch?v=abc123"
FIVE_EXERCISES = ["Front Squat", "Box Jump", "Farmers Carry", "Side Plank", "Hill Sprint"]


class FailingLibrary(MockExerciseLibraryRepository):

    def __init__(self):
        super().__init__()
        self.failing_names = set()

    def insert(self, card):
        if card.name in self.failing_names:
            raise RuntimeError(f"insert rejected for {card.name}")
        return super().insert(card)


class FlakySessionRepository(MockSessionRepository):

    def __init__(self):
        super().__init__()
        self.failing_ids = set()

    def save(self, session):
        if session.id in self.failing_ids:
            raise RuntimeError("write conflict")
        super().save(session)


@pytest.fixture
def sessions():
    return FlakySessionRepository()


@pytest.fixture
def library():
    return FailingLibrary()


@pytest.fixture
def repositories(repositories, sessions, library):
    repositories.sessions = sessions
    repositories.library = library
    repositories.workouts.add_workout(Workout(id="w-1", name="Leg Day"))
    return repositories


@pytest.fixture
def manager(repositories, fake_extractor):
    engine = ImportEngine(repositories.library)
    return SessionLifecycleManager(
        sessions=repositories.sessions,
        extractor=fake_extractor,
        quota=QuotaGuard(repositories.sessions, max_open=3),
        importer=engine,
        workout_importer=WorkoutImporter(engine, repositories.workouts),
        session_ttl=timedelta(hours=24),
    )


@pytest.fixture
def create(manager, now):
    def _create(owner_id="coach-1", sport=None, at=None):
        return asyncio.run(manager.create_session(VIDEO_URL, sport=sport, owner_id=owner_id, now=at or now))
    return _create


@pytest.fixture
def five_exercise_session(fake_extractor, make_extraction_json, create):
    fake_extractor.response = make_extraction_json(FIVE_EXERCISES)
    return create()


# ---------------------------------------------------------------------------
# Create and read
# ---------------------------------------------------------------------------

class TestCreateSession:
    """Tests for create_session."""

    def test_opens_pending_session(self, create, sessions, fake_extractor, now):
        session = create(sport="rowing")

        assert session.status == SessionStatus.PENDING
        assert session.expires_at == now + timedelta(hours=24)
        assert session.owner_id == "coach-1"
        assert session.sport == "rowing"
        assert session.video_title == "Lower Body Power"
        assert [e.name for e in session.exercises] == ["Front Squat", "Box Jump", "Farmers Carry"]
        assert fake_extractor.calls == [(VIDEO_URL, "rowing")]
        assert sessions.get(session.id).exercises == session.exercises

    def test_sport_falls_back_to_extraction(self, create):
        assert create().sport == "track"

    def test_invalid_url_never_reaches_extractor(self, manager, fake_extractor):
        with pytest.raises(InvalidVideoUrlError):
            asyncio.run(manager.create_session("https://vimeo.com/1", owner_id="coach-1"))
        assert fake_extractor.calls == []

    def test_quota_checked_before_extraction(self, create, fake_extractor):
        for _ in range(3):
            create()

        with pytest.raises(QuotaExceededError) as exc_info:
            create()

        assert (exc_info.value.current, exc_info.value.limit) == (3, 3)
        assert len(fake_extractor.calls) == 3

    def test_anonymous_sessions_skip_quota(self, create):
        for _ in range(5):
            create(owner_id=None)

    def test_bad_extraction_creates_nothing(self, create, fake_extractor, manager, now):
        fake_extractor.response = '{"exercises": []}'

        with pytest.raises(ExtractionError, match="No exercises found"):
            create()

        sessions, quota = manager.list_open("coach-1", now)
        assert sessions == []
        assert quota.current == 0

    def test_missing_extractor(self, repositories):
        manager = SessionLifecycleManager(
            sessions=repositories.sessions,
            extractor=None,
            quota=QuotaGuard(repositories.sessions),
            importer=ImportEngine(repositories.library),
        )

        with pytest.raises(ExtractionError, match="not configured"):
            asyncio.run(manager.create_session(VIDEO_URL))


class TestLoadAndList:

    def test_load_missing_session(self, manager):
        with pytest.raises(SessionNotFoundError):
            manager.load(uuid4())

    def test_list_open_with_quota(self, create, manager, now):
        first = create(at=now - timedelta(hours=2))
        second = create()

        sessions, quota = manager.list_open("coach-1", now)

        assert [s.id for s in sessions] == [second.id, first.id]
        assert (quota.current, quota.limit, quota.remaining) == (2, 3, 1)

    def test_list_open_anonymous_is_empty(self, create, manager, now):
        create(owner_id=None)

        sessions, quota = manager.list_open(None, now)

        assert sessions == []
        assert quota.can_create

    def test_load_finalizes_expired_session(self, create, manager, library, now):
        session = create()

        loaded = manager.load(session.id, now + timedelta(hours=25))

        assert loaded.status == SessionStatus.COMPLETED
        assert loaded.auto_imported
        assert sorted(loaded.committed_exercise_ids) == [0, 1, 2]
        assert len(library.all()) == 3


# ---------------------------------------------------------------------------
# Edits and commits
# ---------------------------------------------------------------------------

class TestSaveEdits:

    def test_replaces_overlay_per_index(self, create, manager, sessions, now):
        session = create()
        manager.save_edits(session.id, {0: EditOverlay(name="Goblet Squat", end_time="09:09")}, now)

        manager.save_edits(session.id, {0: EditOverlay(end_time="02:00")}, now)

        stored = sessions.get(session.id)
        assert stored.edited_exercises == {0: EditOverlay(end_time="02:00")}
        assert stored.status == SessionStatus.PENDING

    def test_overlay_matching_raw_clears_edit(self, create, manager, sessions, now):
        session = create()
        manager.save_edits(session.id, {1: EditOverlay(name="Depth Jump")}, now)

        manager.save_edits(session.id, {1: EditOverlay(name="Box Jump")}, now)

        assert sessions.get(session.id).edited_exercises == {}

    def test_out_of_range_index_writes_nothing(self, create, manager, sessions, now):
        session = create()

        with pytest.raises(InvalidExerciseIndexError):
            manager.save_edits(session.id, {0: EditOverlay(name="A"), 3: EditOverlay(name="B")}, now)

        assert sessions.get(session.id).edited_exercises == {}


class TestCommit:
    """Tests for commit and its status transitions."""

    def test_partial_then_full_commit(self, create, manager, sessions, now):
        session = create()

        first = manager.commit(session.id, [0], now=now)
        assert first.session.status == SessionStatus.IN_PROGRESS
        assert sessions.get(session.id).status == SessionStatus.IN_PROGRESS

        later = now + timedelta(minutes=5)
        second = manager.commit(session.id, [2, 1], mark_complete=True, now=later)

        stored = sessions.get(session.id)
        assert second.result.inserted_count == 2
        assert stored.status == SessionStatus.COMPLETED
        assert stored.completed_at == later
        assert not stored.auto_imported

    def test_commit_applies_edits_sent_with_it(self, create, manager, library, now):
        session = create()

        outcome = manager.commit(session.id, [0], edited={0: EditOverlay(name="Zercher Squat")}, now=now)

        assert outcome.result.items[0].name == "Zercher Squat"
        assert library.get(outcome.session.committed_exercise_ids[0]).name == "Zercher Squat"
        assert outcome.session.edited_exercises[0].name == "Zercher Squat"

    def test_edits_saved_earlier_reach_the_library(self, create, manager, library, now):
        session = create()
        manager.save_edits(session.id, {1: EditOverlay(name="Depth Jump")}, now)

        outcome = manager.commit(session.id, [1], now=now)

        assert library.get(outcome.session.committed_exercise_ids[1]).name == "Depth Jump"

    def test_all_failures_leave_status_unchanged(self, create, manager, library, sessions, now):
        session = create()
        library.failing_names = {"Front Squat"}

        outcome = manager.commit(session.id, [0], now=now)

        assert outcome.result.failed_count == 1
        assert sessions.get(session.id).status == SessionStatus.PENDING

    def test_out_of_range_index_rejected_before_any_write(self, create, manager, library, sessions, now):
        session = create()

        with pytest.raises(InvalidExerciseIndexError):
            manager.commit(session.id, [0, 7], now=now)

        assert library.all() == []
        assert sessions.get(session.id).committed_exercise_ids == {}

    def test_invalid_edit_index_rejected_before_any_write(self, create, manager, library, now):
        session = create()

        with pytest.raises(InvalidExerciseIndexError):
            manager.commit(session.id, [0], edited={5: EditOverlay(name="Ghost")}, now=now)

        assert library.all() == []

    def test_completed_session_rejects_changes(self, create, manager, now):
        session = create()
        manager.commit(session.id, [0, 1, 2], now=now)

        with pytest.raises(SessionClosedError) as exc_info:
            manager.save_edits(session.id, {0: EditOverlay(name="Late Edit")}, now)
        assert not isinstance(exc_info.value, SessionExpiredError)

        with pytest.raises(SessionClosedError):
            manager.commit(session.id, [0], now=now)

    def test_write_after_expiry_imports_and_rejects(self, create, manager, library, sessions, now):
        session = create()
        manager.commit(session.id, [0], now=now)

        with pytest.raises(SessionExpiredError, match="imported automatically"):
            manager.commit(session.id, [1], now=now + timedelta(hours=30))

        stored = sessions.get(session.id)
        assert stored.status == SessionStatus.COMPLETED
        assert stored.auto_imported
        assert len(library.all()) == 3

        with pytest.raises(SessionExpiredError):
            manager.save_edits(session.id, {0: EditOverlay(name="Too Late")}, now + timedelta(hours=31))


class TestCommitToWorkout:

    def test_commits_and_links(self, create, manager, repositories, now):
        session = create()

        outcome = manager.commit_to_workout(session.id, [0, 1], "w-1", now=now)

        assert outcome.workout.added_count == 2
        assert outcome.session.status == SessionStatus.IN_PROGRESS
        assert len(repositories.workouts.exercises_for("w-1")) == 2

    def test_unknown_workout(self, create, manager, sessions, now):
        session = create()

        with pytest.raises(WorkoutNotFoundError):
            manager.commit_to_workout(session.id, [0], "nope", now=now)

        assert sessions.get(session.id).committed_exercise_ids == {}

    def test_not_configured(self, repositories, fake_extractor, create, now):
        session = create()
        manager = SessionLifecycleManager(
            sessions=repositories.sessions,
            extractor=fake_extractor,
            quota=QuotaGuard(repositories.sessions),
            importer=ImportEngine(repositories.library),
        )

        with pytest.raises(RuntimeError, match="not configured"):
            manager.commit_to_workout(session.id, [0], "w-1", now=now)


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------

class TestExpiry:
    """Tests for expire and the expired-session sweep."""

    def test_expiry_imports_exactly_the_uncommitted(self, five_exercise_session, manager, sessions, now):
        session = five_exercise_session
        manager.commit(session.id, [0, 3], now=now)

        report = manager.process_expired_sessions(now + timedelta(hours=25))

        assert report.processed == 1
        assert report.exercises_imported == 3
        assert report.failed == 0
        assert report.session_ids == [session.id]
        stored = sessions.get(session.id)
        assert stored.status == SessionStatus.COMPLETED
        assert stored.auto_imported
        assert sorted(stored.committed_exercise_ids) == [0, 1, 2, 3, 4]

    def test_expire_reuses_existing_cards(self, create, manager, library, now):
        first = create()
        manager.commit(first.id, [0, 1, 2], now=now)
        second = create()

        result = manager.expire(manager.load(second.id, now), now + timedelta(hours=25))

        assert [item.action for item in result.items] == [ImportAction.UPDATED] * 3
        assert len(library.all()) == 3

    def test_sessions_not_yet_expired_are_skipped(self, create, manager, now):
        create()

        report = manager.process_expired_sessions(now + timedelta(hours=23))

        assert report.processed == 0

    def test_failed_imports_keep_session_expired_for_retry(self, create, manager, library, sessions, now):
        session = create()
        library.failing_names = {"Box Jump"}

        report = manager.process_expired_sessions(now + timedelta(hours=25))

        assert report.processed == 1
        assert report.exercises_imported == 2
        assert report.failed == 1
        assert sessions.get(session.id).status == SessionStatus.EXPIRED

        library.failing_names = set()
        retry = manager.process_expired_sessions(now + timedelta(hours=26))

        assert retry.exercises_imported == 1
        assert retry.failed == 0
        assert sessions.get(session.id).status == SessionStatus.COMPLETED

    def test_one_bad_session_does_not_stop_the_sweep(self, create, manager, sessions, now):
        broken = create(owner_id="coach-1")
        healthy = create(owner_id="coach-2")
        sessions.failing_ids = {broken.id}

        report = manager.process_expired_sessions(now + timedelta(hours=25))

        assert report.processed == 1
        assert report.failed == 1
        assert report.session_ids == [healthy.id]
        assert sessions.get(healthy.id).status == SessionStatus.COMPLETED
        assert sessions.get(broken.id).status == SessionStatus.PENDING
