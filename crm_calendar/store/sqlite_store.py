"""
Tool: SQLite Event Store
Purpose: Reference EventStore backed by the calendar_events table

Opens one connection per call. Updates are compare-and-set on the version
column so two writers racing on the same event cannot silently overwrite
each other.

Usage:
    from crm_calendar.store.sqlite_store import SQLiteEventStore

    store = SQLiteEventStore(db_path)
    event = await store.insert(event)
    moved = await store.update(event.id, {"start_time": new_start}, expected_version=event.version)
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from crm_calendar import get_connection
from crm_calendar.errors import EventNotFoundError, PersistenceError, StaleVersionError
from crm_calendar.models import (
    UNASSIGNED,
    CalendarEvent,
    EventKind,
    TeamAssignee,
    UserAssignee,
    instant_key,
    normalize_patch,
    parse_instant,
)
from crm_calendar.store.base import AssigneeFilter, DateRange, EventStore

logger = logging.getLogger(__name__)

EVENT_COLUMNS = (
    "id",
    "organisation_id",
    "kind",
    "title",
    "description",
    "location",
    "meeting_link",
    "start_time",
    "end_time",
    "start_ts",
    "end_ts",
    "assignee_kind",
    "assignee_id",
    "related_lead_id",
    "related_order_id",
    "city",
    "version",
    "created_at",
    "updated_at",
)


def _event_to_row(event: CalendarEvent) -> tuple:
    """Flatten an event into calendar_events column order."""
    return (
        event.id,
        event.organisation_id,
        event.kind.value,
        event.title,
        event.description,
        event.location,
        event.meeting_link,
        event.start_time.isoformat(),
        event.end_time.isoformat() if event.end_time else None,
        instant_key(event.start_time),
        instant_key(event.effective_end),
        event.assignee.kind,
        event.assignee.id,
        event.related_lead_id,
        event.related_order_id,
        event.city,
        event.version,
        event.created_at.isoformat(),
        event.updated_at.isoformat() if event.updated_at else None,
    )


def _row_to_event(row: sqlite3.Row) -> CalendarEvent:
    if row["assignee_kind"] == "user":
        assignee = UserAssignee(row["assignee_id"])
    elif row["assignee_kind"] == "team":
        assignee = TeamAssignee(row["assignee_id"])
    else:
        assignee = UNASSIGNED

    return CalendarEvent(
        id=row["id"],
        organisation_id=row["organisation_id"],
        kind=EventKind(row["kind"]),
        title=row["title"] or "",
        description=row["description"] or "",
        location=row["location"] or "",
        meeting_link=row["meeting_link"],
        start_time=parse_instant(row["start_time"]),
        end_time=parse_instant(row["end_time"]),
        assignee=assignee,
        related_lead_id=row["related_lead_id"],
        related_order_id=row["related_order_id"],
        city=row["city"],
        version=row["version"],
        created_at=parse_instant(row["created_at"]) or datetime.now(),
        updated_at=parse_instant(row["updated_at"]),
    )


class SQLiteEventStore(EventStore):
    """EventStore over a local SQLite database."""

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = Path(db_path) if db_path else None

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open event store: {e}") from e

    def _fetch(self, cursor: sqlite3.Cursor, event_id: str) -> CalendarEvent:
        cursor.execute("SELECT * FROM calendar_events WHERE id = ?", (event_id,))
        row = cursor.fetchone()
        if not row:
            raise EventNotFoundError(f"Event not found: {event_id}")
        return _row_to_event(row)

    async def list_events(
        self,
        organisation_id: str,
        date_range: DateRange | None = None,
        assignee_filter: AssigneeFilter | None = None,
    ) -> list[CalendarEvent]:
        clauses = ["organisation_id = ?"]
        params: list[Any] = [organisation_id]

        if date_range is not None:
            clauses.append("start_ts <= ? AND end_ts >= ?")
            params.extend([instant_key(date_range.end), instant_key(date_range.start)])

        if assignee_filter is not None and not assignee_filter.is_empty:
            assignee_clauses = []
            for kind, ids in (("user", assignee_filter.user_ids), ("team", assignee_filter.team_ids)):
                if ids:
                    placeholders = ", ".join("?" for _ in ids)
                    assignee_clauses.append(
                        f"(assignee_kind = '{kind}' AND assignee_id IN ({placeholders}))"
                    )
                    params.extend(sorted(ids))
            clauses.append(f"({' OR '.join(assignee_clauses)})")

        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM calendar_events WHERE {' AND '.join(clauses)} "
                "ORDER BY start_ts ASC, id ASC",
                params,
            )
            return [_row_to_event(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not list events: {e}") from e
        finally:
            conn.close()

    async def get_event(self, event_id: str) -> CalendarEvent:
        conn = self._connect()
        try:
            return self._fetch(conn.cursor(), event_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not load event {event_id}: {e}") from e
        finally:
            conn.close()

    async def insert(self, event: CalendarEvent) -> CalendarEvent:
        stored = await self.insert_many([event])
        return stored[0]

    async def insert_many(self, events: list[CalendarEvent]) -> list[CalendarEvent]:
        if not events:
            return []

        placeholders = ", ".join("?" for _ in EVENT_COLUMNS)
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.executemany(
                f"INSERT INTO calendar_events ({', '.join(EVENT_COLUMNS)}) VALUES ({placeholders})",
                [_event_to_row(event) for event in events],
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"Could not insert {len(events)} event(s): {e}") from e
        finally:
            conn.close()

        logger.debug(f"Inserted {len(events)} event(s)")
        return list(events)

    async def update(
        self,
        event_id: str,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> CalendarEvent:
        changes = normalize_patch(patch)

        conn = self._connect()
        try:
            cursor = conn.cursor()
            current = self._fetch(cursor, event_id)

            if expected_version is not None and current.version != expected_version:
                raise StaleVersionError(
                    f"Event {event_id} is at version {current.version}, expected {expected_version}",
                    expected=expected_version,
                    actual=current.version,
                )

            updated = current.with_changes(
                **changes,
                version=current.version + 1,
                updated_at=datetime.now(),
            )
            assignments = ", ".join(f"{column} = ?" for column in EVENT_COLUMNS[1:])
            cursor.execute(
                f"UPDATE calendar_events SET {assignments} WHERE id = ? AND version = ?",
                (*_event_to_row(updated)[1:], event_id, current.version),
            )
            if cursor.rowcount == 0:
                raise StaleVersionError(
                    f"Event {event_id} changed during update",
                    expected=current.version,
                )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"Could not update event {event_id}: {e}") from e
        finally:
            conn.close()

        return updated

    async def delete(self, event_id: str) -> None:
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM calendar_events WHERE id = ?", (event_id,))
            if cursor.rowcount == 0:
                raise EventNotFoundError(f"Event not found: {event_id}")
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"Could not delete event {event_id}: {e}") from e
        finally:
            conn.close()
