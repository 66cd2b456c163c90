"""
Tool: Scheduling Coordinator
Purpose: Orchestrate create/update/move/delete with validation, conflicts and rollback

Every operation is one-shot:
    validate -> authorize -> conflict check -> persist

The coordinator keeps an in-memory view of the events it has loaded or
written (``coordinator.view``). Moves are applied to that view optimistically
before the store confirms them; on failure or cancellation the previous value
is restored verbatim from a snapshot.

Usage:
    from crm_calendar.scheduling.coordinator import SchedulingCoordinator

    coordinator = SchedulingCoordinator(store, directory, config)
    result = await coordinator.create_event(actor, draft)
    if not result.success:
        print(result.error.to_dict())

    result = await coordinator.move_event(actor, event_id, new_start)

Errors:
    All SchedulingErrors come back inside the Result; only unexpected
    exceptions propagate.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any

from crm_calendar.config import CalendarConfig
from crm_calendar.errors import (
    AuthorizationError,
    ConflictError,
    ConflictWarning,
    Result,
    SchedulingError,
    StaleVersionError,
    ValidationError,
)
from crm_calendar.models import (
    CalendarEvent,
    EventDraft,
    FilterState,
    RecurrenceRequest,
    Team,
    UserProfile,
    normalize_patch,
    parse_instant,
    validate_event,
    validate_recurrence,
)
from crm_calendar.scheduling.audience import assignment_candidates, narrow_events
from crm_calendar.scheduling.conflicts import find_conflicts
from crm_calendar.scheduling.recurrence import expand_recurrence
from crm_calendar.scheduling.views import CalendarMode, filter_by_mode
from crm_calendar.scheduling.visibility import require_assign, require_view, visible_events
from crm_calendar.store.base import AssigneeFilter, DateRange, Directory, EventStore

logger = logging.getLogger(__name__)


def _describe(event: CalendarEvent | EventDraft) -> str:
    target = f"{event.assignee.kind}:{event.assignee.id}" if event.assignee.id else "unassigned"
    return f"{event.kind.value} {event.start_time.isoformat()} ({target})"


def _dedupe(events: list[CalendarEvent]) -> list[CalendarEvent]:
    seen: set[str] = set()
    unique = []
    for event in events:
        if event.id not in seen:
            seen.add(event.id)
            unique.append(event)
    return unique


class SchedulingCoordinator:
    """
    Caller-facing scheduling API.

    Args:
        store: Event store (the only suspension point)
        directory: User/team lookup for the visibility policy
        config: Calendar configuration; defaults when omitted
    """

    def __init__(
        self,
        store: EventStore,
        directory: Directory,
        config: CalendarConfig | None = None,
    ):
        self.store = store
        self.directory = directory
        self.config = config or CalendarConfig()
        self.view: dict[str, CalendarEvent] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: dict[str, int] = {}

    # =========================================================================
    # Helpers
    # =========================================================================

    @asynccontextmanager
    async def _serialized(self, event_id: str):
        """
        Serialize operations on one event id issued through this coordinator.

        The lock lives only while someone holds or waits for it.
        """
        lock = self._locks.get(event_id)
        if lock is None:
            lock = self._locks[event_id] = asyncio.Lock()
        self._lock_holders[event_id] = self._lock_holders.get(event_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_holders[event_id] - 1
            if remaining:
                self._lock_holders[event_id] = remaining
            else:
                del self._lock_holders[event_id]
                del self._locks[event_id]

    def resolve_actor(self, user_id: str) -> UserProfile:
        """
        Look up the acting user.

        Raises:
            AuthorizationError: unknown user
        """
        actor = self.directory.get_user(user_id)
        if actor is None:
            raise AuthorizationError(f"Unknown user: {user_id}")
        return actor

    def _with_organisation(self, actor: UserProfile, draft: EventDraft) -> EventDraft:
        if not draft.organisation_id:
            return replace(draft, organisation_id=actor.organisation_id)
        if draft.organisation_id != actor.organisation_id:
            raise AuthorizationError(
                f"User {actor.id} cannot schedule for organisation {draft.organisation_id}"
            )
        return draft

    async def _pool_for(self, event: CalendarEvent) -> list[CalendarEvent]:
        """Stored events of the same assignee touching the event's window."""
        assignee_filter = AssigneeFilter.for_assignee(event.assignee)
        if assignee_filter.is_empty:
            return []
        window = DateRange(event.start_time, event.effective_end)
        return await self.store.list_events(event.organisation_id, window, assignee_filter)

    def _fail(self, operation: str, error: SchedulingError) -> Result:
        if isinstance(error, ConflictError):
            logger.warning(f"{operation} rejected: {error.message} ({len(error.conflicts)} conflict(s))")
        else:
            logger.info(f"{operation} failed: [{error.code}] {error.message}")
        return Result.failure(error)

    # =========================================================================
    # Create
    # =========================================================================

    async def create_event(
        self,
        actor: UserProfile,
        draft: EventDraft,
        override: bool = False,
    ) -> Result[CalendarEvent]:
        """
        Create a single event.

        Args:
            actor: Acting user
            draft: Event payload
            override: Persist even when the assignee is already busy

        Returns:
            Result with the stored event; colliding events are returned as a
            ConflictError, or as warnings when overridden
        """
        try:
            draft = self._with_organisation(actor, draft)
            validate_event(draft)
            require_assign(actor, draft.assignee, self.directory)

            event = draft.to_event()
            conflicts = find_conflicts(event, await self._pool_for(event))
            if conflicts and not override:
                raise ConflictError(
                    f"{event.assignee.kind.capitalize()} {event.assignee.id} is already booked "
                    f"at {event.start_time.isoformat()}",
                    conflicts=conflicts,
                )

            stored = await self.store.insert(event)
        except SchedulingError as e:
            return self._fail("create_event", e)

        self.view[stored.id] = stored
        logger.info(f"Created {_describe(stored)} as {stored.id}")

        warnings = [ConflictWarning(stored.id, conflicts)] if conflicts else []
        if warnings:
            logger.warning(f"Event {stored.id} created over {len(conflicts)} conflict(s)")
        return Result.ok(stored, warnings)

    async def create_recurring(
        self,
        actor: UserProfile,
        request: RecurrenceRequest,
        override: bool = False,
    ) -> Result[list[CalendarEvent]]:
        """
        Expand and persist a recurring request as independent events.

        Each instance is checked against stored events and against the
        instances before it. What happens on conflict depends on
        ``scheduling.recurrence_conflict_policy``:

            partial        - persist everything, one warning per conflicting instance
            all_or_nothing - ConflictError and nothing persisted, unless overridden
        """
        settings = self.config.scheduling
        try:
            base = self._with_organisation(actor, request.base)
            request = replace(request, base=base)
            validate_recurrence(request)
            require_assign(actor, base.assignee, self.directory)

            batch = uuid.uuid4()
            instances = expand_recurrence(
                request,
                id_factory=lambda index: str(uuid.uuid5(batch, str(index))),
                max_instances=settings.max_recurrence_instances,
            )
            if not instances:
                logger.info("Recurrence produced no instances; nothing to create")
                return Result.ok([])

            pool: list[CalendarEvent] = []
            assignee_filter = AssigneeFilter.for_assignee(base.assignee)
            if not assignee_filter.is_empty:
                window = DateRange(instances[0].start_time, instances[-1].effective_end)
                pool = await self.store.list_events(base.organisation_id, window, assignee_filter)

            warnings: list[ConflictWarning] = []
            for index, instance in enumerate(instances):
                conflicts = find_conflicts(instance, [*pool, *instances[:index]])
                if conflicts:
                    warnings.append(ConflictWarning(instance.id, conflicts))

            if warnings and settings.recurrence_conflict_policy == "all_or_nothing" and not override:
                raise ConflictError(
                    f"{len(warnings)} of {len(instances)} instances conflict",
                    conflicts=_dedupe([e for w in warnings for e in w.conflicts]),
                )

            stored = await self.store.insert_many(instances)
        except SchedulingError as e:
            return self._fail("create_recurring", e)

        for event in stored:
            self.view[event.id] = event
        logger.info(
            f"Created {len(stored)} {request.frequency.value} instance(s) of {_describe(base)}"
        )
        if warnings:
            logger.warning(f"{len(warnings)} recurring instance(s) created over conflicts")
        return Result.ok(stored, warnings)

    # =========================================================================
    # Update / Move / Delete
    # =========================================================================

    async def update_event(
        self,
        actor: UserProfile,
        event_id: str,
        patch: dict[str, Any],
        override: bool = False,
        expected_version: int | None = None,
    ) -> Result[CalendarEvent]:
        """
        Apply a patch through the same pipeline as create.

        The event never conflicts with its own pre-update self. When
        ``expected_version`` is given the update is rejected if the event
        has changed since the caller read it.
        """
        async with self._serialized(event_id):
            try:
                changes = normalize_patch(patch)
                current = await self.store.get_event(event_id)
                require_view(actor, current, self.directory)

                if expected_version is not None and expected_version != current.version:
                    raise StaleVersionError(
                        f"Event {event_id} is at version {current.version}, expected {expected_version}",
                        expected=expected_version,
                        actual=current.version,
                    )

                candidate = current.with_changes(**changes)
                validate_event(candidate)
                require_assign(actor, candidate.assignee, self.directory)

                conflicts = find_conflicts(candidate, await self._pool_for(candidate), exclude_id=event_id)
                if conflicts and not override:
                    raise ConflictError(
                        f"Update of {event_id} collides with {len(conflicts)} event(s)",
                        conflicts=conflicts,
                    )

                stored = await self.store.update(event_id, changes, expected_version=current.version)
            except SchedulingError as e:
                return self._fail("update_event", e)

        self.view[stored.id] = stored
        logger.info(f"Updated event {stored.id} to version {stored.version}")
        warnings = [ConflictWarning(stored.id, conflicts)] if conflicts else []
        return Result.ok(stored, warnings)

    async def move_event(
        self,
        actor: UserProfile,
        event_id: str,
        new_start: datetime | str,
    ) -> Result[CalendarEvent]:
        """
        Reschedule an event to a new start, keeping its duration.

        Conflicts reject the move with nothing changed. Otherwise the new
        times are written into ``view`` immediately, then confirmed with the
        store. A store failure or cancellation restores the snapshot; a
        success replaces the optimistic value with the stored record.
        """
        async with self._serialized(event_id):
            try:
                new_start = parse_instant(new_start)
                if new_start is None:
                    raise ValidationError("new_start is required")

                current = await self.store.get_event(event_id)
                require_view(actor, current, self.directory)
                require_assign(actor, current.assignee, self.directory)

                new_end = new_start + current.duration if current.end_time is not None else None
                candidate = current.with_changes(start_time=new_start, end_time=new_end)
                validate_event(candidate)

                conflicts = find_conflicts(candidate, await self._pool_for(candidate), exclude_id=event_id)
                if conflicts:
                    raise ConflictError(
                        f"Cannot move {event_id} to {new_start.isoformat()}: assignee is busy",
                        conflicts=conflicts,
                    )
            except SchedulingError as e:
                return self._fail("move_event", e)

            snapshot = self.view.get(event_id)
            self.view[event_id] = candidate

            try:
                stored = await self.store.update(
                    event_id,
                    {"start_time": new_start, "end_time": new_end},
                    expected_version=current.version,
                )
            except SchedulingError as e:
                self._restore(event_id, snapshot)
                logger.warning(f"Move of {event_id} rolled back: [{e.code}] {e.message}")
                return Result.failure(e)
            except asyncio.CancelledError:
                self._restore(event_id, snapshot)
                logger.warning(f"Move of {event_id} cancelled; rolled back")
                raise

        self.view[event_id] = stored
        logger.info(f"Moved event {event_id} to {stored.start_time.isoformat()}")
        return Result.ok(stored)

    def _restore(self, event_id: str, snapshot: CalendarEvent | None) -> None:
        if snapshot is None:
            self.view.pop(event_id, None)
        else:
            self.view[event_id] = snapshot

    async def delete_event(self, actor: UserProfile, event_id: str) -> Result[None]:
        """Delete an event the actor may see and assign. No conflict check."""
        async with self._serialized(event_id):
            try:
                current = await self.store.get_event(event_id)
                require_view(actor, current, self.directory)
                require_assign(actor, current.assignee, self.directory)
                await self.store.delete(event_id)
            except SchedulingError as e:
                return self._fail("delete_event", e)

        self.view.pop(event_id, None)
        logger.info(f"Deleted event {event_id}")
        return Result.ok()

    # =========================================================================
    # Queries
    # =========================================================================

    async def visible_events(
        self,
        actor: UserProfile,
        filter_state: FilterState | None = None,
        date_range: DateRange | None = None,
        mode: CalendarMode | str = CalendarMode.MAIN,
    ) -> list[CalendarEvent]:
        """
        Events the actor may see, narrowed by their filter selections.

        Refreshes ``view`` with everything the policy allows in the window.

        Raises:
            PersistenceError: the store listing failed
        """
        filter_state = filter_state or FilterState()
        listing_filter = AssigneeFilter(
            user_ids=filter_state.selected_user_ids,
            team_ids=filter_state.selected_team_ids,
        )
        events = await self.store.list_events(actor.organisation_id, date_range, listing_filter)

        allowed = visible_events(actor, events, self.directory)
        for event in allowed:
            self.view[event.id] = event

        return filter_by_mode(narrow_events(allowed, filter_state), mode)

    def assignment_candidates(
        self,
        actor: UserProfile,
        item_city: str | None = None,
    ) -> tuple[list[UserProfile], list[Team]]:
        """Users and teams the actor may assign a work item in ``item_city`` to."""
        return assignment_candidates(actor, self.directory, item_city)
