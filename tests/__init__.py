"""CRM Calendar Test Suite

Test organization:
- unit/: Unit tests for individual modules
  - scheduling/: Recurrence, conflicts, visibility, audience, views, coordinator
  - store/: SQLite event store and directory
  - test_calendar_config.py, test_cli.py: configuration, logging and CLI
- integration/: FastAPI endpoint tests against a temporary database

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/scheduling/

    # Skip the HTTP tests
    pytest -m "not integration"
"""
