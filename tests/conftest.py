"""
Shared fixtures for the staging tests.

Everything here is in-memory: no Snowflake, no Anthropic calls.
"""

import json
from datetime import datetime, timezone
from typing import Optional

import pytest

from src.core.staging.models import Difficulty, RawExercise
from src.infrastructure.snowflake.repositories import Repositories, create_repositories


NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


class FakeExtractor:
    """Returns canned extraction text and records what it was asked."""

    def __init__(self, response: str = "") -> None:
        self.response = response
        self.calls: list[tuple[str, Optional[str]]] = []

    async def extract_exercises(self, video_url: str, sport: Optional[str] = None) -> str:
        self.calls.append((video_url, sport))
        return self.response


def extraction_payload(names: list[str], title: str = "Lower Body Power") -> dict:
    return {
        "video_title": title,
        "sport": "track",
        "total_duration": "12:40",
        "exercises": [
            {
                "name": name,
                "start_time": f"0{i}:00",
                "end_time": f"0{i}:45",
                "instructions": [f"{name} step 1", f"{name} step 2"],
                "coaching_cues": [f"{name} cue"],
                "screenshot_timestamps": [f"0{i}:10"],
                "difficulty": "intermediate",
                "equipment": ["barbell"],
            }
            for i, name in enumerate(names)
        ],
    }


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_exercise():
    def _make(name: str = "Front Squat", **overrides) -> RawExercise:
        values = {
            "name": name,
            "start_time": "00:10",
            "end_time": "01:05",
            "instructions": ("Brace", "Descend", "Drive up"),
            "coaching_cues": ("Elbows high",),
            "screenshot_timestamps": ("00:20", "00:40"),
            "difficulty": Difficulty.INTERMEDIATE,
            "equipment": ("barbell", "rack"),
        }
        values.update(overrides)
        return RawExercise(**values)
    return _make


@pytest.fixture
def make_extraction_json():
    def _make(names: list[str], title: str = "Lower Body Power") -> str:
        return json.dumps(extraction_payload(names, title))
    return _make


@pytest.fixture
def fake_extractor(make_extraction_json) -> FakeExtractor:
    return FakeExtractor(make_extraction_json(["Front Squat", "Box Jump", "Farmers Carry"]))


@pytest.fixture
def repositories() -> Repositories:
    return create_repositories(mock_mode=True)
