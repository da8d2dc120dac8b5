"""
Pytest configuration and shared fixtures.
"""

import os
import pytest
from pathlib import Path
from typing import Dict, Any

from teammatch.config import Settings, reset_settings
from teammatch.logger import get_logger, reset_logger
from teammatch.models import Identity, IntentCard


@pytest.fixture(autouse=True)
def isolated_runtime(tmp_path, monkeypatch):
    """Fresh settings and a file-only logger under tmp_path for every test."""
    for key in list(os.environ):
        if key.startswith("TEAMMATCH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    reset_logger()
    logger = get_logger(log_dir=tmp_path / "logs", enable_console=False)
    yield logger
    for handler in list(logger.logger.handlers):
        handler.close()
        logger.logger.removeHandler(handler)
    reset_logger()
    reset_settings()


@pytest.fixture
def logger(isolated_runtime):
    return isolated_runtime


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def card_data() -> Dict[str, Any]:
    """Valid intent card form input."""
    return {
        "eventType": "Hackathon",
        "eventName": "Smart India Hackathon",
        "lookingForRoles": ["frontend", "backend"],
        "requiredSkills": ["React", "Firebase"],
        "availability": {
            "weekdays": True,
            "weekends": False,
            "startTime": "18:00",
            "endTime": "22:00",
        },
        "hostelStatus": "hosteler",
        "commitmentLevel": "serious",
        "shortGoal": "Ship a clean MVP.",
        "isPublic": True,
    }


@pytest.fixture
def make_card():
    """Factory for IntentCard objects with sensible defaults."""
    counter = [0]

    def _make(
        owner_uid: str = "u1",
        roles=("frontend",),
        skills=("React",),
        weekdays: bool = True,
        weekends: bool = False,
        start: str = "18:00",
        end: str = "22:00",
        hostel: str = "hosteler",
        commitment: str = "serious",
        is_public: bool = True,
        card_id: str = None,
        **extra,
    ) -> IntentCard:
        counter[0] += 1
        data = {
            "ownerUid": owner_uid,
            "ownerName": owner_uid.upper(),
            "eventType": "Hackathon",
            "eventName": "Campus Hack",
            "lookingForRoles": list(roles),
            "requiredSkills": list(skills),
            "availability": {
                "weekdays": weekdays,
                "weekends": weekends,
                "startTime": start,
                "endTime": end,
            },
            "hostelStatus": hostel,
            "commitmentLevel": commitment,
            "shortGoal": "Build something fun.",
            "isPublic": is_public,
        }
        data.update(extra)
        return IntentCard.from_dict(data, card_id=card_id or f"card-{counter[0]}")

    return _make


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "data" / "test.db"


@pytest.fixture
def alice() -> Identity:
    return Identity(uid="alice", display_name="Alice", email="alice@example.com")


@pytest.fixture
def bob() -> Identity:
    return Identity(uid="bob", display_name="Bob", email="bob@example.com")
