"""Shared test fixtures for CRM calendar tests.

This module provides common fixtures used across all test modules:
- Database isolation with temporary files
- A seeded directory with one user per role and two field teams
- Event store and coordinator wired to the temporary database

Usage:
    def test_something(temp_db):
        # temp_db is automatically cleaned up after the test
        ...
"""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from crm_calendar.config import CalendarConfig
from crm_calendar.models import Role
from crm_calendar.scheduling.coordinator import SchedulingCoordinator
from crm_calendar.store.directory import SQLiteDirectory
from crm_calendar.store.sqlite_store import SQLiteEventStore


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"

ORG = "org-1"
OTHER_ORG = "org-2"


# ─────────────────────────────────────────────────────────────────────────────
# Database Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def temp_db() -> Generator[Path, None, None]:
    """Create a temporary database file for testing.

    The database file is automatically deleted after the test completes.

    Yields:
        Path to the temporary database file
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup
    if db_path.exists():
        os.unlink(db_path)


@pytest.fixture
def store(temp_db: Path) -> SQLiteEventStore:
    """Event store over the temporary database."""
    return SQLiteEventStore(temp_db)


# ─────────────────────────────────────────────────────────────────────────────
# Directory Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def directory(temp_db: Path) -> SQLiteDirectory:
    """Directory seeded with a small organisation.

    org-1:
        admin-1   admin   Stockholm
        sales-1   sales   Stockholm, Uppsala
        sales-2   sales   Malmö
        worker-1  worker  Stockholm   (Crew A)
        worker-2  worker  Malmö       (Crew B)
        worker-3  worker  (no city)   (Crew A)
        team-a    Crew A  Stockholm
        team-b    Crew B  Malmö

    org-2:
        outsider  admin
        team-x    Crew X
    """
    d = SQLiteDirectory(temp_db)
    d.add_user("admin-1", ORG, Role.ADMIN, "Alice Admin", ["Stockholm"])
    d.add_user("sales-1", ORG, Role.SALES, "Sam Sales", ["Stockholm", "Uppsala"])
    d.add_user("sales-2", ORG, Role.SALES, "Sara Sales", ["Malmö"])
    d.add_user("worker-1", ORG, Role.WORKER, "Walt Worker", ["Stockholm"])
    d.add_user("worker-2", ORG, Role.WORKER, "Wendy Worker", ["Malmö"])
    d.add_user("worker-3", ORG, Role.WORKER, "Will Worker", [])
    d.add_team("team-a", ORG, "Crew A", ["Stockholm"], ["worker-1", "worker-3"])
    d.add_team("team-b", ORG, "Crew B", ["Malmö"], ["worker-2"])

    d.add_user("outsider", OTHER_ORG, Role.ADMIN, "Otto Outsider", ["Stockholm"])
    d.add_team("team-x", OTHER_ORG, "Crew X", ["Stockholm"], ["outsider"])
    return d


@pytest.fixture
def users(directory: SQLiteDirectory) -> dict:
    """Seeded user profiles keyed by id."""
    ids = ["admin-1", "sales-1", "sales-2", "worker-1", "worker-2", "worker-3", "outsider"]
    return {user_id: directory.get_user(user_id) for user_id in ids}


# ─────────────────────────────────────────────────────────────────────────────
# Configuration Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def calendar_config(temp_db: Path) -> CalendarConfig:
    """Default configuration pointed at the temporary database."""
    return CalendarConfig.model_validate({"storage": {"db_path": str(temp_db)}})


@pytest.fixture
def strict_config(temp_db: Path) -> CalendarConfig:
    """Configuration that rejects a recurring batch when any instance conflicts."""
    return CalendarConfig.model_validate(
        {
            "storage": {"db_path": str(temp_db)},
            "scheduling": {"recurrence_conflict_policy": "all_or_nothing"},
        }
    )


# ─────────────────────────────────────────────────────────────────────────────
# Coordinator Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def coordinator(store, directory, calendar_config) -> SchedulingCoordinator:
    """Coordinator over the temporary store and seeded directory."""
    return SchedulingCoordinator(store, directory, calendar_config)
