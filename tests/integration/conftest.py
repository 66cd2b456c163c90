"""
Integration test fixtures for the CRM calendar.

Provides fixtures specific to integration testing:
- FastAPI test client over an isolated database
- Header helpers for acting as a seeded user

Test modules skip themselves when FastAPI is not installed; the fixtures
import it lazily so collection never needs it.
"""

import pytest


# ─────────────────────────────────────────────────────────────────────────────
# Calendar API Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def calendar_app(calendar_config, directory):
    """Calendar FastAPI app over the temporary, seeded database."""
    from crm_calendar.api.main import create_app

    return create_app(calendar_config)


@pytest.fixture
def test_client(calendar_app):
    """Create a test client for the calendar API (runs the app lifespan)."""
    from fastapi.testclient import TestClient

    with TestClient(calendar_app) as client:
        yield client


@pytest.fixture
def as_user():
    """Build the X-User-Id header for a seeded user."""

    def _headers(user_id: str) -> dict[str, str]:
        return {"X-User-Id": user_id}

    return _headers
