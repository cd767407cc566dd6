"""
Snowflake repository for staging sessions.

This module implements the repository pattern for session data access.
The repository:
1. Translates between VideoAnalysisSession and a flat table row
2. Encapsulates all SQL queries
3. Stores the raw exercises, edit overlays and committed ids as VARIANT JSON

Overlay and committed-id maps are keyed by the exercise index as a
string, because JSON object keys are strings. The raw exercises are a
JSON array, so order survives the round trip.

MockSessionRepository keeps the same serialized records in memory, so
local development and tests exercise the same encoding as Snowflake.
"""

import json
import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from src.core.staging.errors import SessionNotFoundError
from src.core.staging.models import (
    EditOverlay,
    RawExercise,
    SessionStatus,
    VideoAnalysisSession,
)

from ..client import SnowflakeConnection


logger = logging.getLogger(__name__)

SESSION_COLUMNS = (
    "session_id",
    "owner_id",
    "video_url",
    "video_title",
    "sport",
    "total_duration",
    "exercises",
    "edited_exercises",
    "committed_exercise_ids",
    "status",
    "auto_imported",
    "created_at",
    "expires_at",
    "completed_at",
    "updated_at",
)

VARIANT_COLUMNS = ("exercises", "edited_exercises", "committed_exercise_ids")

OPEN_STATUS_VALUES = ("pending", "in_progress")
SWEEPABLE_STATUS_VALUES = ("pending", "in_progress", "expired")


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def parse_variant_json(variant_data: Any) -> Any:
    """
    Parse Snowflake VARIANT data that might be a string or already parsed.

    snowflake-connector-python returns VARIANT columns as JSON strings;
    other drivers hand back dicts and lists.
    """
    if variant_data is None or variant_data == "":
        return None
    if isinstance(variant_data, str):
        try:
            return json.loads(variant_data)
        except json.JSONDecodeError as e:
            logger.error(
                "Failed to parse VARIANT JSON",
                extra={"error": str(e), "data_preview": variant_data[:100]}
            )
            raise
    return variant_data


def session_to_record(session: VideoAnalysisSession) -> dict[str, Any]:
    """Flatten a session into column values, VARIANT columns as JSON text."""
    return {
        "session_id": str(session.id),
        "owner_id": session.owner_id,
        "video_url": session.video_url,
        "video_title": session.video_title,
        "sport": session.sport,
        "total_duration": session.total_duration,
        "exercises": json.dumps([exercise.to_dict() for exercise in session.exercises]),
        "edited_exercises": json.dumps({
            str(index): overlay.to_dict()
            for index, overlay in sorted(session.edited_exercises.items())
        }),
        "committed_exercise_ids": json.dumps({
            str(index): library_id
            for index, library_id in sorted(session.committed_exercise_ids.items())
        }),
        "status": session.status.value,
        "auto_imported": session.auto_imported,
        "created_at": session.created_at,
        "expires_at": session.expires_at,
        "completed_at": session.completed_at,
        "updated_at": session.updated_at,
    }


def session_from_record(record: dict[str, Any]) -> VideoAnalysisSession:
    exercises = parse_variant_json(record["exercises"]) or []
    overlays = parse_variant_json(record["edited_exercises"]) or {}
    committed = parse_variant_json(record["committed_exercise_ids"]) or {}

    return VideoAnalysisSession(
        id=UUID(str(record["session_id"])),
        owner_id=record.get("owner_id"),
        video_url=record["video_url"],
        video_title=record.get("video_title"),
        sport=record.get("sport"),
        total_duration=record.get("total_duration"),
        exercises=tuple(RawExercise.from_dict(item) for item in exercises),
        edited_exercises={
            int(index): EditOverlay.from_dict(overlay)
            for index, overlay in overlays.items()
            if overlay
        },
        committed_exercise_ids={
            int(index): str(library_id)
            for index, library_id in committed.items()
        },
        status=SessionStatus(record["status"]),
        auto_imported=bool(record.get("auto_imported")),
        created_at=record["created_at"],
        expires_at=record.get("expires_at"),
        completed_at=record.get("completed_at"),
        updated_at=record["updated_at"],
    )


# ---------------------------------------------------------------------------
# Snowflake implementation
# ---------------------------------------------------------------------------

class SnowflakeSessionRepository:
    """
    Session persistence backed by the STAGING_SESSIONS table.

    Each save writes the whole row. Sessions are small (a few dozen
    exercises at most), and whole-row writes keep the index maps
    consistent with the raw list they refer to.
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def get(self, session_id: UUID) -> VideoAnalysisSession:
        rows = self._select(
            "WHERE session_id = %s",
            (str(session_id),),
        )
        if not rows:
            raise SessionNotFoundError(session_id)
        return rows[0]

    def save(self, session: VideoAnalysisSession) -> None:
        """
        Insert or replace a session row.

        This method is idempotent: saving the same session twice updates
        rather than duplicates.
        """
        record = session_to_record(session)
        source_columns = ",\n                    ".join(
            f"PARSE_JSON(%s) AS {column}" if column in VARIANT_COLUMNS else f"%s AS {column}"
            for column in SESSION_COLUMNS
        )
        update_columns = ",\n                ".join(
            f"{column} = source.{column}" for column in SESSION_COLUMNS[1:]
        )
        insert_columns = ", ".join(SESSION_COLUMNS)
        insert_values = ", ".join(f"source.{column}" for column in SESSION_COLUMNS)

        cursor = self._conn.cursor()
        try:
            cursor.execute(f"""
                MERGE INTO staging_sessions AS target
                USING (SELECT
                    {source_columns}
                ) AS source
                ON target.session_id = source.session_id
                WHEN MATCHED THEN UPDATE SET
                {update_columns}
                WHEN NOT MATCHED THEN INSERT ({insert_columns})
                VALUES ({insert_values})
            """, tuple(record[column] for column in SESSION_COLUMNS))
            self._conn.commit()
        except Exception as e:
            logger.error(
                "Failed to save staging session",
                extra={"session_id": str(session.id), "error": str(e)}
            )
            raise
        finally:
            cursor.close()

    def ping(self) -> None:
        """Run a trivial query; raises if the connection is unusable."""
        cursor = self._conn.cursor()
        try:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        finally:
            cursor.close()

    def count_open_sessions(self, owner_id: str, now: datetime) -> int:
        cursor = self._conn.cursor()
        try:
            cursor.execute("""
                SELECT COUNT(*)
                FROM staging_sessions
                WHERE owner_id = %s
                  AND status IN (%s, %s)
                  AND expires_at > %s
            """, (owner_id, *OPEN_STATUS_VALUES, now))
            row = cursor.fetchone()
            return int(row[0]) if row else 0
        finally:
            cursor.close()

    def list_open_for_owner(self, owner_id: str, now: datetime) -> list[VideoAnalysisSession]:
        return self._select(
            "WHERE owner_id = %s AND status IN (%s, %s) AND expires_at > %s "
            "ORDER BY created_at DESC",
            (owner_id, *OPEN_STATUS_VALUES, now),
        )

    def list_expired(self, now: datetime) -> list[VideoAnalysisSession]:
        return self._select(
            "WHERE status IN (%s, %s, %s) AND expires_at < %s ORDER BY expires_at",
            (*SWEEPABLE_STATUS_VALUES, now),
        )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _select(self, where_clause: str, params: tuple) -> list[VideoAnalysisSession]:
        cursor = self._conn.cursor()
        try:
            cursor.execute(
                f"SELECT {', '.join(SESSION_COLUMNS)} FROM staging_sessions {where_clause}",
                params,
            )
            rows = cursor.fetchall()
        finally:
            cursor.close()
        return [session_from_record(dict(zip(SESSION_COLUMNS, row))) for row in rows]


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------

class MockSessionRepository:
    """
    In-memory session store for local development and tests.

    Stores the same serialized records the Snowflake repository writes,
    so a session read back here went through the real encoding.
    """

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        logger.info("Initialized mock session repository (in-memory)")

    def get(self, session_id: UUID) -> VideoAnalysisSession:
        record = self._records.get(str(session_id))
        if record is None:
            raise SessionNotFoundError(session_id)
        return session_from_record(record)

    def save(self, session: VideoAnalysisSession) -> None:
        self._records[str(session.id)] = session_to_record(session)

    def ping(self) -> None:
        pass

    def count_open_sessions(self, owner_id: str, now: datetime) -> int:
        return len(self.list_open_for_owner(owner_id, now))

    def list_open_for_owner(self, owner_id: str, now: datetime) -> list[VideoAnalysisSession]:
        sessions = [
            session_from_record(record)
            for record in self._records.values()
            if record["owner_id"] == owner_id
            and record["status"] in OPEN_STATUS_VALUES
            and record["expires_at"] is not None
            and record["expires_at"] > now
        ]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    def list_expired(self, now: datetime) -> list[VideoAnalysisSession]:
        sessions = [
            session_from_record(record)
            for record in self._records.values()
            if record["status"] in SWEEPABLE_STATUS_VALUES
            and record["expires_at"] is not None
            and record["expires_at"] < now
        ]
        return sorted(sessions, key=lambda s: s.expires_at)

    def clear(self) -> None:
        """Clear all sessions (for test cleanup)."""
        self._records.clear()
