"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest and provides:
  - Test configuration (env vars set before any service module is imported)
  - Profile / preference factories for engine tests
  - A mock Firestore client for store tests
"""

import os
import pytest
from unittest.mock import MagicMock

# Set before collection so modules that read config at import see them.
TEST_ENV = {
    "FIREBASE_PROJECT_ID": "test-project",
    "GOOGLE_APPLICATION_CREDENTIALS": "/config/test-serviceAccountKey.json",
    "DEBUG": "True",
}
for _key, _value in TEST_ENV.items():
    os.environ.setdefault(_key, _value)

from lume_match.models import Preferences, Profile  # noqa: E402

NYC = (40.7128, -74.0060)


@pytest.fixture
def make_profile():
    """
    Build a candidate profile near New York.

    Example:
        def test_something(make_profile):
            profile = make_profile(age=30, gender="male")
    """

    def _make(user_id: str = "candidate", **overrides) -> Profile:
        data = {
            "user_id": user_id,
            "name": f"User {user_id}",
            "age": 25,
            "height_cm": 170,
            "hair_color": "brown",
            "gender": "female",
            "latitude": 40.72,
            "longitude": -74.01,
            "is_verified": True,
            "is_active": True,
            "is_timeout": False,
            "image_file_ids": [],
            "description": None,
            "sports_preferences": ["tennis", "swimming"],
        }
        data.update(overrides)
        return Profile(**data)

    return _make


@pytest.fixture
def make_preferences():
    """Build preferences for a requester in New York."""

    def _make(**overrides) -> Preferences:
        data = {
            "user_id": "current_user",
            "preferred_genders": ["female"],
            "min_age": 21,
            "max_age": 35,
            "min_height_cm": 160,
            "max_height_cm": 180,
            "preferred_hair_colors": [],
            "preferred_sports": ["tennis"],
            "max_distance_km": 50,
            "latitude": NYC[0],
            "longitude": NYC[1],
        }
        data.update(overrides)
        return Preferences(**data)

    return _make


@pytest.fixture
def mock_db(monkeypatch):
    """
    Provide a mock Firestore client for store tests.

    The lazily-initialized client in firestore_tools is replaced, so
    nothing tries to load credentials.
    """
    db = MagicMock()
    monkeypatch.setattr("lume_match.tools.firestore_tools._db", db)
    return db


def make_doc(data: dict, doc_id: str = "doc"):
    """Minimal stand-in for a Firestore DocumentSnapshot."""
    doc = MagicMock()
    doc.id = doc_id
    doc.to_dict.return_value = dict(data)
    return doc


@pytest.fixture
def doc_factory():
    return make_doc
