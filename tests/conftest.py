"""Pytest fixtures for tdeecoach tests."""

from __future__ import annotations

import tempfile
from datetime import date
from pathlib import Path

import pytest

from tdeecoach.db.connection import DatabaseConnection
from tdeecoach.tracking.models import GoalType, Sex, UserGoals
from tdeecoach.tracking.queries import GoalsQueries, SQLiteStore


@pytest.fixture
def temp_db():
    """Create a temporary database with schema."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    db = DatabaseConnection(db_path)
    db.initialize_schema()

    yield db

    # Cleanup
    db_path.unlink(missing_ok=True)


@pytest.fixture
def profile() -> UserGoals:
    """A complete profile able to seed a cold start."""
    return UserGoals(
        height_cm=180.0,
        birth_date=date(1990, 1, 1),
        sex=Sex.MALE,
        goal_type=GoalType.LOSE,
        goal_rate=0.5,
        target_weight_kg=75.0,
    )


@pytest.fixture
def conn(temp_db):
    """Open connection to the temporary database."""
    with temp_db.get_connection() as conn:
        yield conn


@pytest.fixture
def store(conn, profile) -> SQLiteStore:
    """SQLite store for a freshly created user."""
    user_id = GoalsQueries.create_user(conn, profile)
    return SQLiteStore(conn, user_id)
