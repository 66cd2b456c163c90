"""
Tool: Scheduling Errors
Purpose: Typed error taxonomy and the Result wrapper returned by the coordinator

Error kinds:
    ValidationError     - malformed input, never persisted
    ConflictError       - overlapping commitment, carries the colliding events
    AuthorizationError  - acting role may not view or assign the target
    PersistenceError    - the event store failed
    StaleVersionError   - a concurrent write changed the event first
    EventNotFoundError  - the referenced event does not exist

Usage:
    from crm_calendar.errors import ConflictError, Result

    result = await coordinator.create_event(actor, draft)
    if not result.success and isinstance(result.error, ConflictError):
        for event in result.error.conflicts:
            ...
"""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar


T = TypeVar("T")


class SchedulingError(Exception):
    """Base class for every error the scheduling core reports to callers."""

    code = "scheduling_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(SchedulingError):
    """Malformed input: bad time ordering, non-positive interval, dual assignee."""

    code = "validation_error"


class ConflictError(SchedulingError):
    """Overlapping commitment for the same user or team."""

    code = "conflict"

    def __init__(self, message: str, conflicts: list | None = None):
        super().__init__(message)
        self.conflicts = list(conflicts or [])

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["conflicts"] = [event.to_dict() for event in self.conflicts]
        return d


class AuthorizationError(SchedulingError):
    """Acting role lacks permission to view or assign the target."""

    code = "forbidden"


class PersistenceError(SchedulingError):
    """The external event store failed."""

    code = "persistence_error"


class StaleVersionError(PersistenceError):
    """The stored event changed since the caller last read it."""

    code = "stale_version"

    def __init__(self, message: str, expected: int | None = None, actual: int | None = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class EventNotFoundError(SchedulingError):
    """The referenced event does not exist (or was deleted)."""

    code = "not_found"


@dataclass
class ConflictWarning:
    """A conflict that was reported but did not block the operation."""

    event_id: str
    conflicts: list = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "conflicts": [event.to_dict() for event in self.conflicts],
        }


@dataclass
class Result(Generic[T]):
    """
    Outcome of a coordinator operation.

    Exactly one of ``data`` / ``error`` is meaningful: ``success`` is True
    when no error was recorded. Warnings never imply failure.
    """

    data: T | None = None
    error: SchedulingError | None = None
    warnings: list[ConflictWarning] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, data: T | None = None, warnings: list[ConflictWarning] | None = None) -> "Result[T]":
        return cls(data=data, warnings=list(warnings or []))

    @classmethod
    def failure(cls, error: SchedulingError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T | None:
        """Return the data or raise the recorded error."""
        if self.error is not None:
            raise self.error
        return self.data

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        if self.error is not None:
            d = {"success": False, "error": self.error.message}
            d.update({"error_code": self.error.code, "details": self.error.to_dict()})
            return d

        if isinstance(self.data, list):
            data = [item.to_dict() for item in self.data]
        elif self.data is not None:
            data = self.data.to_dict()
        else:
            data = None

        return {
            "success": True,
            "data": data,
            "warnings": [w.to_dict() for w in self.warnings],
        }
