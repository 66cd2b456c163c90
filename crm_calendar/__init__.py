"""CRM Calendar - Scheduling and conflict core for staff and team calendars

Philosophy:
    The calendar is where sales promises meet field capacity. A meeting booked
    on top of another meeting, or a job handed to someone outside your scope,
    costs more than any form validation ever saves. This core keeps those
    decisions in one place.

Components:
    models.py: Data models (CalendarEvent, Assignee, RecurrenceRequest, FilterState)
    errors.py: Typed scheduling errors and the Result wrapper
    config.py: Configuration models loaded from args/calendar.yaml
    scheduling/: Recurrence, conflicts, visibility, audience, views, coordinator
    store/: Event store and directory interfaces with SQLite implementations
    api/: FastAPI routes exposing the coordinator
    cli.py: Command line entry point

Design Principles:
    1. One Assignee - an event belongs to a user, a team, or nobody
    2. Instances Are Independent - recurring requests become plain rows
    3. Roles Are Tables - every role has exactly one visibility policy
    4. Snapshots Over Re-fetches - optimistic moves restore what they replaced
"""

import sqlite3
from pathlib import Path


# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "args"
DATA_PATH = PROJECT_ROOT / "data"
DB_PATH = DATA_PATH / "calendar.db"


def get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    """
    Get database connection, creating tables if needed.

    Args:
        db_path: Database file to open (defaults to DB_PATH)

    Returns:
        SQLite connection with row_factory set
    """
    path = Path(db_path) if db_path else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row

    cursor = conn.cursor()

    # Calendar events (one row per concrete instance)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS calendar_events (
            id TEXT PRIMARY KEY,
            organisation_id TEXT NOT NULL,
            kind TEXT NOT NULL,
            title TEXT,
            description TEXT,
            location TEXT,
            meeting_link TEXT,
            start_time TEXT NOT NULL,
            end_time TEXT,
            start_ts REAL NOT NULL,
            end_ts REAL NOT NULL,
            assignee_kind TEXT NOT NULL DEFAULT 'none',
            assignee_id TEXT,
            related_lead_id TEXT,
            related_order_id TEXT,
            city TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TEXT,
            updated_at TEXT,
            CHECK (assignee_kind IN ('user', 'team', 'none'))
        )
    """)

    # Directory: users
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS directory_users (
            id TEXT PRIMARY KEY,
            organisation_id TEXT NOT NULL,
            full_name TEXT,
            role TEXT NOT NULL,
            cities TEXT
        )
    """)

    # Directory: teams
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS directory_teams (
            id TEXT PRIMARY KEY,
            organisation_id TEXT NOT NULL,
            name TEXT,
            cities TEXT
        )
    """)

    # Directory: team membership
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS directory_team_members (
            team_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            PRIMARY KEY (team_id, user_id),
            FOREIGN KEY (team_id) REFERENCES directory_teams(id)
        )
    """)

    # Indexes
    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_events_org_start "
        "ON calendar_events(organisation_id, start_ts)"
    )
    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_events_assignee "
        "ON calendar_events(assignee_kind, assignee_id)"
    )
    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_team_members_user "
        "ON directory_team_members(user_id)"
    )

    conn.commit()
    return conn
