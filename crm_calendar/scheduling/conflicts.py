"""
Tool: Conflict Detector
Purpose: Decide whether a time range collides with existing commitments

Rule:
    Two ranges conflict iff they share the same assignee (user id for users,
    team id for teams) and start1 < end2 and start2 < end1. Touching ranges
    do not conflict. Unassigned events never conflict with anything.

    An event without an end time is a zero-length point at its start and goes
    through the same rule: it collides only with ranges that strictly
    contain it.

Usage:
    from crm_calendar.scheduling.conflicts import find_conflicts, check_member_availability

    colliding = find_conflicts(candidate, pool, exclude_id=event.id)
    report = check_member_availability(start, end, "u1", {"t1"}, pool)
    if report.has_conflicts:
        ...

Pure and synchronous; safe to call from any number of concurrent readers.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from crm_calendar.models import (
    UNASSIGNED,
    Assignee,
    CalendarEvent,
    TeamAssignee,
    UserAssignee,
    instant_key,
)


@dataclass(frozen=True)
class TimeSlot:
    """A candidate range to check; CalendarEvent and EventDraft fit the same shape."""

    start_time: datetime
    end_time: datetime | None = None
    assignee: Assignee = UNASSIGNED


def overlaps(
    start1: datetime,
    end1: datetime | None,
    start2: datetime,
    end2: datetime | None,
) -> bool:
    """Half-open overlap test; a missing end is a point at its start."""
    s1 = instant_key(start1)
    e1 = instant_key(end1) if end1 is not None else s1
    s2 = instant_key(start2)
    e2 = instant_key(end2) if end2 is not None else s2
    return s1 < e2 and s2 < e1


def _assignee_key(assignee: Assignee) -> tuple[str, str] | None:
    if isinstance(assignee, (UserAssignee, TeamAssignee)):
        return (assignee.kind, assignee.id)
    return None


def find_conflicts(
    candidate: TimeSlot | CalendarEvent,
    pool: Iterable[CalendarEvent],
    exclude_id: str | None = None,
) -> list[CalendarEvent]:
    """
    Return the events in ``pool`` that collide with ``candidate``.

    Args:
        candidate: Anything with start_time, end_time and assignee
        pool: Existing events
        exclude_id: Event being edited, so it never conflicts with itself

    Returns:
        Colliding events in pool order
    """
    key = _assignee_key(candidate.assignee)
    if key is None:
        return []

    return [
        event
        for event in pool
        if event.id != exclude_id
        and _assignee_key(event.assignee) == key
        and overlaps(candidate.start_time, candidate.end_time, event.start_time, event.end_time)
    ]


def has_conflict(
    candidate: TimeSlot | CalendarEvent,
    pool: Iterable[CalendarEvent],
    exclude_id: str | None = None,
) -> bool:
    return bool(find_conflicts(candidate, pool, exclude_id))


@dataclass
class ConflictReport:
    """Result of checking a person and their teams as separate passes."""

    user_conflicts: list[CalendarEvent] = field(default_factory=list)
    team_conflicts: dict[str, list[CalendarEvent]] = field(default_factory=dict)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.user_conflicts) or any(self.team_conflicts.values())

    @property
    def all_conflicts(self) -> list[CalendarEvent]:
        """Every colliding event once, user pass first."""
        seen: set[str] = set()
        merged = []
        for event in [*self.user_conflicts, *(e for es in self.team_conflicts.values() for e in es)]:
            if event.id not in seen:
                seen.add(event.id)
                merged.append(event)
        return merged


def check_member_availability(
    start_time: datetime,
    end_time: datetime | None,
    user_id: str | None,
    team_ids: Iterable[str],
    pool: Iterable[CalendarEvent],
    exclude_id: str | None = None,
) -> ConflictReport:
    """
    Check that a user and each of their teams are free in the given range.

    The user pass and every team pass use the same overlap rule; they differ
    only in which assignee they compare.
    """
    pool = list(pool)
    report = ConflictReport()

    if user_id:
        report.user_conflicts = find_conflicts(
            TimeSlot(start_time, end_time, UserAssignee(user_id)), pool, exclude_id
        )

    for team_id in sorted(set(team_ids)):
        colliding = find_conflicts(TimeSlot(start_time, end_time, TeamAssignee(team_id)), pool, exclude_id)
        if colliding:
            report.team_conflicts[team_id] = colliding

    return report
