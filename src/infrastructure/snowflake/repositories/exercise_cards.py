"""
Snowflake repository for the exercise library.

Cards are looked up by name, case-insensitively. Nothing in the table
enforces uniqueness, so if duplicates exist the oldest card wins; the
import engine documents why duplicates can appear.
"""

import copy
import json
import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from src.core.staging.models import Difficulty, ExerciseCard, ExerciseType

from ..client import SnowflakeConnection
from .sessions import parse_variant_json


logger = logging.getLogger(__name__)

CARD_COLUMNS = (
    "id",
    "name",
    "video_url",
    "video_start_time",
    "video_end_time",
    "instructions",
    "coaching_cues",
    "screenshot_timestamps",
    "difficulty",
    "equipment",
    "exercise_type",
    "tracks_weight",
    "tracks_reps",
    "tracks_duration",
    "tracks_distance",
    "is_new",
    "new_expires_at",
    "source_session_id",
    "owner_id",
    "is_global",
    "created_at",
    "updated_at",
)

ARRAY_COLUMNS = ("instructions", "coaching_cues", "screenshot_timestamps", "equipment")


def card_to_record(card: ExerciseCard) -> dict[str, Any]:
    record = {column: getattr(card, column) for column in CARD_COLUMNS}
    for column in ARRAY_COLUMNS:
        record[column] = json.dumps(list(record[column]))
    record["difficulty"] = card.difficulty.value if card.difficulty else None
    record["exercise_type"] = card.exercise_type.value
    record["source_session_id"] = str(card.source_session_id) if card.source_session_id else None
    return record


def card_from_record(record: dict[str, Any]) -> ExerciseCard:
    values = dict(record)
    for column in ARRAY_COLUMNS:
        values[column] = list(parse_variant_json(values[column]) or [])
    values["difficulty"] = Difficulty(values["difficulty"]) if values.get("difficulty") else None
    values["exercise_type"] = ExerciseType(values["exercise_type"])
    if values.get("source_session_id"):
        values["source_session_id"] = UUID(str(values["source_session_id"]))
    values["id"] = str(values["id"])
    return ExerciseCard(**values)


class SnowflakeExerciseLibraryRepository:
    """Exercise library backed by the EXERCISE_CARDS table."""

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def find_by_name(self, name: str) -> Optional[ExerciseCard]:
        cards = self._select(
            "WHERE LOWER(name) = LOWER(%s) ORDER BY created_at LIMIT 1",
            (name,),
        )
        return cards[0] if cards else None

    def get(self, card_id: str) -> Optional[ExerciseCard]:
        cards = self._select("WHERE id = %s", (card_id,))
        return cards[0] if cards else None

    def insert(self, card: ExerciseCard) -> ExerciseCard:
        record = card_to_record(card)
        select_list = ", ".join(
            "PARSE_JSON(%s)" if column in ARRAY_COLUMNS else "%s"
            for column in CARD_COLUMNS
        )
        self._execute(
            f"INSERT INTO exercise_cards ({', '.join(CARD_COLUMNS)}) SELECT {select_list}",
            tuple(record[column] for column in CARD_COLUMNS),
        )
        logger.debug("Inserted exercise card", extra={"card_id": card.id, "card_name": card.name})
        return card

    def update(self, card: ExerciseCard) -> ExerciseCard:
        record = card_to_record(card)
        # id and created_at never change
        columns = [c for c in CARD_COLUMNS if c not in ("id", "created_at")]
        assignments = ", ".join(
            f"{column} = PARSE_JSON(%s)" if column in ARRAY_COLUMNS else f"{column} = %s"
            for column in columns
        )
        self._execute(
            f"UPDATE exercise_cards SET {assignments} WHERE id = %s",
            tuple(record[column] for column in columns) + (card.id,),
        )
        logger.debug("Updated exercise card", extra={"card_id": card.id, "card_name": card.name})
        return card

    def clear_expired_new_flags(self, now: datetime) -> list[ExerciseCard]:
        expired = self._select(
            "WHERE is_new = TRUE AND new_expires_at < %s ORDER BY name",
            (now,),
        )
        if not expired:
            return []

        self._execute(
            "UPDATE exercise_cards SET is_new = FALSE, updated_at = %s "
            "WHERE is_new = TRUE AND new_expires_at < %s",
            (now, now),
        )
        for card in expired:
            card.is_new = False
            card.updated_at = now
        return expired

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _select(self, where_clause: str, params: tuple) -> list[ExerciseCard]:
        cursor = self._conn.cursor()
        try:
            cursor.execute(
                f"SELECT {', '.join(CARD_COLUMNS)} FROM exercise_cards {where_clause}",
                params,
            )
            rows = cursor.fetchall()
        finally:
            cursor.close()
        return [card_from_record(dict(zip(CARD_COLUMNS, row))) for row in rows]

    def _execute(self, query: str, params: tuple) -> None:
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
            self._conn.commit()
        finally:
            cursor.close()


class MockExerciseLibraryRepository:
    """
    In-memory exercise library.

    Returns copies, so callers mutating a card don't change what's
    stored until they call update().
    """

    def __init__(self, cards: Optional[list[ExerciseCard]] = None) -> None:
        self._cards: dict[str, ExerciseCard] = {}
        for card in cards or []:
            self._cards[card.id] = copy.deepcopy(card)

    def find_by_name(self, name: str) -> Optional[ExerciseCard]:
        matches = sorted(
            (card for card in self._cards.values() if card.name.lower() == name.lower()),
            key=lambda card: card.created_at,
        )
        return copy.deepcopy(matches[0]) if matches else None

    def get(self, card_id: str) -> Optional[ExerciseCard]:
        card = self._cards.get(card_id)
        return copy.deepcopy(card) if card else None

    def insert(self, card: ExerciseCard) -> ExerciseCard:
        if card.id in self._cards:
            raise ValueError(f"Exercise card {card.id} already exists")
        self._cards[card.id] = copy.deepcopy(card)
        return card

    def update(self, card: ExerciseCard) -> ExerciseCard:
        if card.id not in self._cards:
            raise ValueError(f"Exercise card {card.id} not found")
        self._cards[card.id] = copy.deepcopy(card)
        return card

    def clear_expired_new_flags(self, now: datetime) -> list[ExerciseCard]:
        cleared = []
        for card in self._cards.values():
            if card.is_new and card.new_expires_at is not None and card.new_expires_at < now:
                card.is_new = False
                card.updated_at = now
                cleared.append(copy.deepcopy(card))
        return sorted(cleared, key=lambda card: card.name)

    def all(self) -> list[ExerciseCard]:
        return [copy.deepcopy(card) for card in self._cards.values()]
