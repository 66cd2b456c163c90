"""
Tool: Store Interfaces
Purpose: Abstract event store and directory the scheduling core depends on

The coordinator only ever talks to these interfaces. Any backend (SQL,
REST, in-memory) can be plugged in by implementing them.

Usage:
    from crm_calendar.store.base import EventStore, Directory, DateRange, AssigneeFilter

    events = await store.list_events(
        "org-1",
        DateRange(start, end),
        AssigneeFilter(user_ids={"u1"}),
    )
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from crm_calendar.models import (
    Assignee,
    CalendarEvent,
    Team,
    TeamAssignee,
    UserAssignee,
    UserProfile,
    instant_key,
)


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive listing window.

    Stores return every event that touches the window; exact overlap
    semantics belong to the conflict detector.
    """

    start: datetime
    end: datetime

    def contains_event(self, event: CalendarEvent) -> bool:
        return (
            instant_key(event.start_time) <= instant_key(self.end)
            and instant_key(event.effective_end) >= instant_key(self.start)
        )


@dataclass(frozen=True)
class AssigneeFilter:
    """
    Restrict a listing to events assigned to any of the given users or teams.

    An empty filter means no restriction.
    """

    user_ids: frozenset[str] = field(default_factory=frozenset)
    team_ids: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def for_assignee(cls, assignee: Assignee) -> "AssigneeFilter":
        if isinstance(assignee, UserAssignee):
            return cls(user_ids=frozenset({assignee.id}))
        if isinstance(assignee, TeamAssignee):
            return cls(team_ids=frozenset({assignee.id}))
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.user_ids and not self.team_ids

    def matches(self, event: CalendarEvent) -> bool:
        if self.is_empty:
            return True
        if isinstance(event.assignee, UserAssignee):
            return event.assignee.id in self.user_ids
        if isinstance(event.assignee, TeamAssignee):
            return event.assignee.id in self.team_ids
        return False


class EventStore(ABC):
    """
    Asynchronous persistence for calendar events.

    Every method may raise crm_calendar.errors.PersistenceError. Methods that
    address a single event raise EventNotFoundError when it does not exist.
    """

    @abstractmethod
    async def list_events(
        self,
        organisation_id: str,
        date_range: DateRange | None = None,
        assignee_filter: AssigneeFilter | None = None,
    ) -> list[CalendarEvent]:
        """
        List events of an organisation, ordered by start time.

        Args:
            organisation_id: Owning organisation
            date_range: Only events touching this window (all when None)
            assignee_filter: Only events for these users/teams (all when None)
        """
        pass

    @abstractmethod
    async def get_event(self, event_id: str) -> CalendarEvent:
        """Fetch a single event by id."""
        pass

    @abstractmethod
    async def insert(self, event: CalendarEvent) -> CalendarEvent:
        """Persist a new event and return the stored record."""
        pass

    @abstractmethod
    async def insert_many(self, events: list[CalendarEvent]) -> list[CalendarEvent]:
        """Persist several new events atomically and return the stored records."""
        pass

    @abstractmethod
    async def update(
        self,
        event_id: str,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> CalendarEvent:
        """
        Apply a patch and return the authoritative record.

        Args:
            event_id: Event to update
            patch: Normalized field values (see models.normalize_patch)
            expected_version: When given, reject with StaleVersionError if the
                stored version differs

        The stored version is incremented on every successful update.
        """
        pass

    @abstractmethod
    async def delete(self, event_id: str) -> None:
        """Delete an event."""
        pass


class Directory(ABC):
    """
    Read-only lookup of users and teams.

    Synchronous: directory data is expected to be cached by the host
    application, so lookups are not suspension points.
    """

    @abstractmethod
    def get_user(self, user_id: str) -> UserProfile | None:
        pass

    @abstractmethod
    def get_team(self, team_id: str) -> Team | None:
        pass

    @abstractmethod
    def teams_for_user(self, user_id: str) -> list[Team]:
        pass

    @abstractmethod
    def list_users(self, organisation_id: str) -> list[UserProfile]:
        pass

    @abstractmethod
    def list_teams(self, organisation_id: str) -> list[Team]:
        pass

    def team_ids_for_user(self, user_id: str) -> set[str]:
        """Ids of every team the user belongs to."""
        return {team.id for team in self.teams_for_user(user_id)}
