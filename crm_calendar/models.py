"""
Tool: Calendar Models
Purpose: Data structures and validation for calendar scheduling

Usage:
    from crm_calendar.models import (
        CalendarEvent, EventDraft, RecurrenceRequest, UserAssignee, TeamAssignee,
        UNASSIGNED, validate_event,
    )

This module is the contract shared by every other component. It has no side
effects: validation raises crm_calendar.errors.ValidationError and nothing
else.
"""

import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar

from crm_calendar.errors import ValidationError


class EventKind(str, Enum):
    """Kinds of scheduled commitment."""

    MEETING = "meeting"
    TASK = "task"
    REMINDER = "reminder"


class Frequency(str, Enum):
    """Recurrence step units."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Role(str, Enum):
    """
    Roles attached to acting users.

    Ranked worker < sales < admin; everything a lower rank may see or
    assign, a higher rank may too.
    """

    WORKER = "worker"
    SALES = "sales"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        ranks = {"worker": 1, "sales": 2, "admin": 3}
        return ranks[self.value]

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


# =============================================================================
# Assignee (tagged union)
# =============================================================================


@dataclass(frozen=True)
class UserAssignee:
    """Event bound to a single user."""

    id: str
    kind: ClassVar[str] = "user"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "id": self.id}


@dataclass(frozen=True)
class TeamAssignee:
    """Event bound to a whole team."""

    id: str
    kind: ClassVar[str] = "team"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "id": self.id}


@dataclass(frozen=True)
class Unassigned:
    """Event with no assignee. Never takes part in conflict checks."""

    kind: ClassVar[str] = "none"
    id: ClassVar[None] = None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "id": None}


UNASSIGNED = Unassigned()

Assignee = UserAssignee | TeamAssignee | Unassigned


def assignee_from_fields(user_id: str | None = None, team_id: str | None = None) -> Assignee:
    """
    Build an assignee from the legacy pair of nullable foreign keys.

    Raises:
        ValidationError: if both a user and a team are set
    """
    if user_id and team_id:
        raise ValidationError("An event cannot be assigned to both a user and a team")
    if user_id:
        return UserAssignee(user_id)
    if team_id:
        return TeamAssignee(team_id)
    return UNASSIGNED


def assignee_from_dict(data: dict[str, Any] | None) -> Assignee:
    """Parse {"kind": ..., "id": ...} or the assigned_to_user_id/team_id pair."""
    if not data:
        return UNASSIGNED
    if "kind" in data:
        kind = data.get("kind") or "none"
        if kind == "user" and data.get("id"):
            return UserAssignee(data["id"])
        if kind == "team" and data.get("id"):
            return TeamAssignee(data["id"])
        if kind == "none":
            return UNASSIGNED
        raise ValidationError(f"Invalid assignee: {data}")
    return assignee_from_fields(data.get("assigned_to_user_id"), data.get("assigned_to_team_id"))


# =============================================================================
# Time helpers
# =============================================================================


def parse_instant(value: datetime | str | None) -> datetime | None:
    """Parse an ISO-8601 string (a trailing 'Z' is accepted) or pass a datetime through."""
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Invalid instant: {value!r}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid instant: {value!r}") from None


def parse_day(value: date | str) -> date:
    """Parse a YYYY-MM-DD string or pass a date through."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date: {value!r}") from None


def instant_key(value: datetime) -> float:
    """POSIX timestamp for ordering and storage; naive values are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).timestamp()
    return value.timestamp()


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.tzinfo.utcoffset(value) is not None


# =============================================================================
# Events
# =============================================================================


@dataclass
class CalendarEvent:
    """
    A scheduled commitment (meeting, task or reminder).

    Title, description, location and meeting link are opaque payload. The
    related lead/order ids are informational links and are not enforced.
    """

    id: str
    organisation_id: str
    start_time: datetime
    kind: EventKind = EventKind.MEETING
    end_time: datetime | None = None
    assignee: Assignee = UNASSIGNED

    # Presentation payload
    title: str = ""
    description: str = ""
    location: str = ""
    meeting_link: str | None = None

    # Links
    related_lead_id: str | None = None
    related_order_id: str | None = None
    city: str | None = None  # customer city of the linked lead/order

    # Concurrency and metadata
    version: int = 1
    created_at: datetime = field(default_factory=datetime.now, compare=False)
    updated_at: datetime | None = field(default=None, compare=False)

    @property
    def duration(self) -> timedelta:
        """Length of the event; events without an end are zero-length."""
        if self.end_time is None:
            return timedelta(0)
        return self.end_time - self.start_time

    @property
    def effective_end(self) -> datetime:
        return self.end_time if self.end_time is not None else self.start_time

    def with_changes(self, **changes: Any) -> "CalendarEvent":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        d = asdict(self)
        d["kind"] = self.kind.value
        d["assignee"] = self.assignee.to_dict()
        d["start_time"] = self.start_time.isoformat()
        d["end_time"] = self.end_time.isoformat() if self.end_time else None
        d["created_at"] = self.created_at.isoformat()
        d["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CalendarEvent":
        """Create from dict."""
        data = data.copy()
        for time_field in ["start_time", "end_time", "created_at", "updated_at"]:
            if isinstance(data.get(time_field), str):
                data[time_field] = parse_instant(data[time_field])
        if data.get("created_at") is None:
            data.pop("created_at", None)
        data["kind"] = EventKind(data.get("kind") or EventKind.MEETING)
        data["assignee"] = _assignee_from_payload(data)
        return cls(**data)

    @staticmethod
    def generate_id() -> str:
        """Generate a new event ID."""
        return str(uuid.uuid4())


@dataclass
class EventDraft:
    """
    Payload for creating an event: everything but identity and version.

    ``organisation_id`` may be left empty; the coordinator fills in the
    acting user's organisation.
    """

    start_time: datetime
    kind: EventKind = EventKind.MEETING
    end_time: datetime | None = None
    assignee: Assignee = UNASSIGNED
    organisation_id: str = ""
    title: str = ""
    description: str = ""
    location: str = ""
    meeting_link: str | None = None
    related_lead_id: str | None = None
    related_order_id: str | None = None
    city: str | None = None

    @property
    def duration(self) -> timedelta:
        if self.end_time is None:
            return timedelta(0)
        return self.end_time - self.start_time

    def to_event(self, event_id: str | None = None, **overrides: Any) -> CalendarEvent:
        """Materialize a concrete event from this draft."""
        values = {
            "id": event_id or CalendarEvent.generate_id(),
            "organisation_id": self.organisation_id,
            "start_time": self.start_time,
            "kind": self.kind,
            "end_time": self.end_time,
            "assignee": self.assignee,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "meeting_link": self.meeting_link,
            "related_lead_id": self.related_lead_id,
            "related_order_id": self.related_order_id,
            "city": self.city,
        }
        values.update(overrides)
        return CalendarEvent(**values)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EventDraft":
        data = data.copy()
        if not data.get("start_time"):
            raise ValidationError("start_time is required")
        data["start_time"] = parse_instant(data["start_time"])
        data["end_time"] = parse_instant(data.get("end_time") or None)
        try:
            data["kind"] = EventKind(data.get("kind") or EventKind.MEETING)
        except ValueError:
            raise ValidationError(f"Invalid event kind: {data.get('kind')}") from None
        data["assignee"] = _assignee_from_payload(data)
        known = {f for f in cls.__dataclass_fields__}
        unknown = set(data) - known
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        return cls(**data)


def _assignee_from_payload(data: dict[str, Any]) -> Assignee:
    """Pop assignee keys from a payload dict and return the parsed assignee."""
    user_id = data.pop("assigned_to_user_id", None)
    team_id = data.pop("assigned_to_team_id", None)
    raw = data.pop("assignee", None)
    if isinstance(raw, (UserAssignee, TeamAssignee, Unassigned)):
        if user_id or team_id:
            raise ValidationError("Give either assignee or assigned_to_* fields, not both")
        return raw
    if raw:
        if user_id or team_id:
            raise ValidationError("Give either assignee or assigned_to_* fields, not both")
        return assignee_from_dict(raw)
    return assignee_from_fields(user_id, team_id)


# Fields an update patch may touch
PATCHABLE_FIELDS = {
    "kind",
    "title",
    "description",
    "location",
    "meeting_link",
    "start_time",
    "end_time",
    "assignee",
    "related_lead_id",
    "related_order_id",
    "city",
}


def normalize_patch(patch: dict[str, Any]) -> dict[str, Any]:
    """
    Coerce a raw update patch into model types.

    Accepts ISO strings for instants, plain strings for kind, and either an
    ``assignee`` dict or the assigned_to_user_id/assigned_to_team_id pair.

    Raises:
        ValidationError: on unknown fields or unparseable values
    """
    patch = dict(patch)
    if any(k in patch for k in ("assignee", "assigned_to_user_id", "assigned_to_team_id")):
        patch["assignee"] = _assignee_from_payload(patch)

    unknown = set(patch) - PATCHABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    if "start_time" in patch:
        if not patch["start_time"]:
            raise ValidationError("start_time is required")
        patch["start_time"] = parse_instant(patch["start_time"])
    if "end_time" in patch:
        patch["end_time"] = parse_instant(patch["end_time"] or None)
    if "kind" in patch:
        try:
            patch["kind"] = EventKind(patch["kind"])
        except ValueError:
            raise ValidationError(f"Invalid event kind: {patch['kind']}") from None
    return patch


def validate_event(event: CalendarEvent | EventDraft) -> None:
    """
    Validate timing and identity of an event or draft.

    Raises:
        ValidationError: on empty organisation, unknown kind, mixed naive and
            aware instants, or end before start
    """
    if not event.organisation_id:
        raise ValidationError("organisation_id is required")
    if not isinstance(event.kind, EventKind):
        raise ValidationError(f"Invalid event kind: {event.kind}")
    if not isinstance(event.start_time, datetime):
        raise ValidationError("start_time is required")
    if not isinstance(event.assignee, (UserAssignee, TeamAssignee, Unassigned)):
        raise ValidationError(f"Invalid assignee: {event.assignee!r}")

    if event.end_time is None:
        return
    if _is_aware(event.start_time) != _is_aware(event.end_time):
        raise ValidationError("start_time and end_time must both carry a UTC offset or neither")
    if event.end_time < event.start_time:
        raise ValidationError("end_time must not be before start_time")


# =============================================================================
# Recurrence
# =============================================================================


@dataclass
class RecurrenceRequest:
    """
    Transient request to materialize a recurring series.

    Never stored: the expander turns it into independent CalendarEvents.
    """

    base: EventDraft
    frequency: Frequency
    end_date: date
    interval: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecurrenceRequest":
        base = data.get("base")
        if not isinstance(base, EventDraft):
            base = EventDraft.from_dict(base or {})
        try:
            frequency = Frequency(data.get("frequency") or data.get("type"))
        except ValueError:
            raise ValidationError(f"Invalid frequency: {data.get('frequency')}") from None
        interval = data.get("interval", 1)
        if isinstance(interval, bool) or not isinstance(interval, int):
            raise ValidationError(f"interval must be an integer, got {interval!r}")
        end_date = data.get("end_date") or data.get("endDate")
        if not end_date:
            raise ValidationError("end_date is required")
        return cls(base=base, frequency=frequency, end_date=parse_day(end_date), interval=interval)


def validate_recurrence(request: RecurrenceRequest) -> None:
    """
    Validate a recurrence request and its base event.

    Raises:
        ValidationError: on non-positive interval or end_date before the base start date
    """
    validate_event(request.base)
    if not isinstance(request.frequency, Frequency):
        raise ValidationError(f"Invalid frequency: {request.frequency}")
    if isinstance(request.interval, bool) or not isinstance(request.interval, int):
        raise ValidationError(f"interval must be an integer, got {request.interval!r}")
    if request.interval <= 0:
        raise ValidationError(f"interval must be positive, got {request.interval}")
    if request.end_date < request.base.start_time.date():
        raise ValidationError(
            f"end_date {request.end_date.isoformat()} is before the first occurrence "
            f"{request.base.start_time.date().isoformat()}"
        )


# =============================================================================
# Filters and directory records
# =============================================================================


@dataclass
class FilterState:
    """Per-query filter axes chosen by the viewer. Not persisted."""

    selected_city: str | None = None
    selected_user_ids: frozenset[str] = frozenset()
    selected_team_ids: frozenset[str] = frozenset()

    def __post_init__(self):
        self.selected_city = (self.selected_city or "").strip() or None
        self.selected_user_ids = frozenset(self.selected_user_ids or ())
        self.selected_team_ids = frozenset(self.selected_team_ids or ())

    @property
    def is_empty(self) -> bool:
        return not (self.selected_city or self.selected_user_ids or self.selected_team_ids)


@dataclass
class UserProfile:
    """Directory entry for a staff member."""

    id: str
    organisation_id: str
    role: Role
    full_name: str = ""
    cities: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["role"] = self.role.value
        return d


@dataclass
class Team:
    """Directory entry for a team."""

    id: str
    organisation_id: str
    name: str = ""
    cities: list[str] = field(default_factory=list)
    member_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# Statuses that count as open, unscheduled work
OPEN_WORK_STATUSES = {
    "order": ("open",),
    "lead": ("new", "contacted"),
}


@dataclass
class WorkItem:
    """An order or lead waiting to be scheduled."""

    id: str
    organisation_id: str
    kind: str  # 'order' or 'lead'
    title: str = ""
    city: str | None = None
    status: str = "open"
    assigned_user_id: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_WORK_STATUSES.get(self.kind, ())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
