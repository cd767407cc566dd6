"""
Session lifecycle: create, review, commit, expire.

    pending --commit (some left)--> in_progress --commit (none left)--> completed
       |                                |
       +---------- now > expires_at ----+--> expired --force import--> completed

Expiry is enforced twice. A scheduled sweep finds sessions past expiry,
and any read or write that notices an expired session finalizes it on
the spot. Either way the still-uncommitted exercises are imported with
the same engine a manual commit uses, so an abandoned review never loses
work. A session stays expired (and the sweep retries it) only while some
forced imports keep failing.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional
from uuid import UUID

from .diff import normalize_overlay
from .errors import (
    ExtractionError,
    InvalidExerciseIndexError,
    SessionClosedError,
    SessionExpiredError,
)
from .extraction import ExerciseExtractor, parse_extraction, validate_video_url
from .importer import ImportEngine, WorkoutImporter, normalize_indices
from .models import (
    CommitResult,
    EditOverlay,
    SessionStatus,
    VideoAnalysisSession,
    WorkoutCommitResult,
    utc_now,
)
from .quota import QuotaGuard, QuotaStatus
from .stores import SessionStore


logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(hours=24)


@dataclass
class CommitOutcome:
    """A commit's library results plus the session as it was saved."""
    session: VideoAnalysisSession
    result: CommitResult
    workout: Optional[WorkoutCommitResult] = None


@dataclass
class SweepReport:
    processed: int = 0
    exercises_imported: int = 0
    failed: int = 0
    session_ids: list[UUID] = field(default_factory=list)


class SessionLifecycleManager:
    """
    Orchestrates staging sessions from extraction to library import.

    Stateless apart from its collaborators; all session state lives in
    the SessionStore.
    """

    def __init__(
        self,
        sessions: SessionStore,
        extractor: Optional[ExerciseExtractor],
        quota: QuotaGuard,
        importer: ImportEngine,
        workout_importer: Optional[WorkoutImporter] = None,
        session_ttl: timedelta = DEFAULT_SESSION_TTL,
    ) -> None:
        self._sessions = sessions
        self._extractor = extractor
        self._quota = quota
        self._importer = importer
        self._workout_importer = workout_importer
        self._session_ttl = session_ttl

    # -----------------------------------------------------------------------
    # Create and read
    # -----------------------------------------------------------------------

    async def create_session(
        self,
        video_url: str,
        sport: Optional[str] = None,
        owner_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> VideoAnalysisSession:
        """
        Extract exercises from a video and open a pending session for review.

        The quota is checked before the extractor is called, so a rejected
        request costs nothing.
        """
        now = now or utc_now()
        video_url = validate_video_url(video_url)
        self._quota.check(owner_id, now)

        if self._extractor is None:
            raise ExtractionError("Exercise extraction is not configured")

        logger.info("Extracting exercises", extra={"video_url": video_url, "sport": sport})
        raw_text = await self._extractor.extract_exercises(video_url, sport)
        extraction = parse_extraction(raw_text)

        session = VideoAnalysisSession.start(
            video_url=video_url,
            exercises=extraction.exercises,
            ttl=self._session_ttl,
            now=now,
            owner_id=owner_id,
            video_title=extraction.video_title,
            sport=sport or extraction.sport,
            total_duration=extraction.total_duration,
        )
        self._sessions.save(session)

        logger.info(
            "Created staging session",
            extra={
                "session_id": str(session.id),
                "owner_id": owner_id,
                "exercise_count": len(session.exercises),
            },
        )
        return session

    def load(self, session_id: UUID, now: Optional[datetime] = None) -> VideoAnalysisSession:
        """Load a session, finalizing it first if it has expired."""
        now = now or utc_now()
        session = self._sessions.get(session_id)
        if session.needs_expiry(now):
            self.expire(session, now)
        return session

    def list_open(
        self,
        owner_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> tuple[list[VideoAnalysisSession], QuotaStatus]:
        now = now or utc_now()
        sessions = self._sessions.list_open_for_owner(owner_id, now) if owner_id else []
        return sessions, self._quota.status(owner_id, now)

    # -----------------------------------------------------------------------
    # Edit and commit
    # -----------------------------------------------------------------------

    def save_edits(
        self,
        session_id: UUID,
        edits: Mapping[int, Optional[EditOverlay]],
        now: Optional[datetime] = None,
    ) -> VideoAnalysisSession:
        """Replace the stored overlay for each index given. None or empty clears it."""
        now = now or utc_now()
        session = self._load_for_write(session_id, now)
        self._apply_edits(session, edits)
        session.touch(now)
        self._sessions.save(session)
        logger.info(
            "Saved exercise edits",
            extra={"session_id": str(session.id), "edited": sorted(session.edited_exercises)},
        )
        return session

    def commit(
        self,
        session_id: UUID,
        indices: Iterable[int],
        edited: Optional[Mapping[int, Optional[EditOverlay]]] = None,
        mark_complete: bool = False,
        now: Optional[datetime] = None,
    ) -> CommitOutcome:
        """Commit the given indices to the library and advance the session status."""
        now = now or utc_now()
        session = self._load_for_write(session_id, now)
        ordered = normalize_indices(session, indices)
        self._apply_edits(session, edited or {})

        result = self._importer.commit(session, ordered, now)
        self._finish_commit(session, result, mark_complete, now)
        return CommitOutcome(session=session, result=result)

    def commit_to_workout(
        self,
        session_id: UUID,
        indices: Iterable[int],
        workout_id: str,
        edited: Optional[Mapping[int, Optional[EditOverlay]]] = None,
        mark_complete: bool = False,
        now: Optional[datetime] = None,
    ) -> CommitOutcome:
        """Like commit, then append the saved cards to a workout."""
        if self._workout_importer is None:
            raise RuntimeError("Workout import is not configured")

        now = now or utc_now()
        session = self._load_for_write(session_id, now)
        ordered = normalize_indices(session, indices)
        self._apply_edits(session, edited or {})

        workout_result = self._workout_importer.commit(session, ordered, workout_id, now)
        self._finish_commit(session, workout_result.library, mark_complete, now)
        return CommitOutcome(session=session, result=workout_result.library, workout=workout_result)

    # -----------------------------------------------------------------------
    # Expiry
    # -----------------------------------------------------------------------

    def expire(self, session: VideoAnalysisSession, now: Optional[datetime] = None) -> CommitResult:
        """
        Force-import everything still uncommitted and close the session.

        Safe to call repeatedly: a session left expired by failed imports
        only retries the indices that are still missing.
        """
        now = now or utc_now()
        session.status = SessionStatus.EXPIRED

        remaining = session.uncommitted_indices()
        result = self._importer.commit(session, remaining, now) if remaining else CommitResult()
        session.auto_imported = True

        if not session.uncommitted_indices():
            session.status = SessionStatus.COMPLETED
            session.completed_at = now
        session.touch(now)
        self._sessions.save(session)

        logger.info(
            "Expired staging session",
            extra={
                "session_id": str(session.id),
                "imported": len(result.succeeded),
                "failed": result.failed_count,
                "status": session.status.value,
            },
        )
        return result

    def process_expired_sessions(self, now: Optional[datetime] = None) -> SweepReport:
        """Finalize every session past expiry. One bad session doesn't stop the sweep."""
        now = now or utc_now()
        report = SweepReport()

        for session in self._sessions.list_expired(now):
            try:
                result = self.expire(session, now)
            except Exception as e:
                logger.error(
                    "Failed to process expired session",
                    extra={"session_id": str(session.id), "error": str(e)},
                )
                report.failed += 1
                continue

            report.processed += 1
            report.exercises_imported += len(result.succeeded)
            report.session_ids.append(session.id)
            if session.status == SessionStatus.EXPIRED:
                report.failed += 1

        logger.info(
            "Processed expired sessions",
            extra={
                "processed": report.processed,
                "exercises_imported": report.exercises_imported,
                "failed": report.failed,
            },
        )
        return report

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _load_for_write(self, session_id: UUID, now: datetime) -> VideoAnalysisSession:
        session = self._sessions.get(session_id)
        if session.needs_expiry(now):
            self.expire(session, now)
            raise SessionExpiredError(session.id, session.status.value, session.expires_at)
        if session.is_terminal:
            if session.auto_imported:
                raise SessionExpiredError(session.id, session.status.value, session.expires_at)
            raise SessionClosedError(session.id, session.status.value)
        return session

    def _apply_edits(
        self,
        session: VideoAnalysisSession,
        edits: Mapping[int, Optional[EditOverlay]],
    ) -> None:
        invalid = session.invalid_indices(list(edits))
        if invalid:
            raise InvalidExerciseIndexError(invalid, len(session.exercises))

        for index, overlay in edits.items():
            normalized = normalize_overlay(overlay, session.exercises[index])
            if normalized is None:
                session.edited_exercises.pop(index, None)
            else:
                session.edited_exercises[index] = normalized

    def _finish_commit(
        self,
        session: VideoAnalysisSession,
        result: CommitResult,
        mark_complete: bool,
        now: datetime,
    ) -> None:
        all_committed = not session.uncommitted_indices()

        if result.succeeded:
            if all_committed:
                session.status = SessionStatus.COMPLETED
                session.completed_at = now
            else:
                session.status = SessionStatus.IN_PROGRESS

        if mark_complete != all_committed:
            logger.info(
                "Client completion hint disagrees with session state",
                extra={
                    "session_id": str(session.id),
                    "mark_complete": mark_complete,
                    "remaining": len(session.uncommitted_indices()),
                },
            )

        session.touch(now)
        self._sessions.save(session)
