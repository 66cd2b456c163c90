"""
Calendar Route - Scheduling endpoints

Provides endpoints over the scheduling coordinator:
- List visible events for a view window and filter selection
- Create single and recurring events
- Patch, move and delete events
- List assignment candidates for a dropped work item

The acting user is taken from the X-User-Id header and resolved through the
directory. Scheduling errors map to status codes in one place (STATUS_BY_CODE).
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from crm_calendar.api.models import (
    EventCreateRequest,
    EventPatchRequest,
    MoveRequest,
    RecurringCreateRequest,
)
from crm_calendar.errors import (
    AuthorizationError,
    PersistenceError,
    Result,
    SchedulingError,
    ValidationError,
)
from crm_calendar.models import EventDraft, FilterState, RecurrenceRequest, UserProfile, instant_key
from crm_calendar.scheduling.coordinator import SchedulingCoordinator
from crm_calendar.scheduling.views import CalendarMode, ViewMode, view_range
from crm_calendar.store.base import DateRange

logger = logging.getLogger(__name__)


router = APIRouter()

STATUS_BY_CODE = {
    "validation_error": 400,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "stale_version": 409,
    "persistence_error": 503,
}


def error_response(error: SchedulingError) -> HTTPException:
    """HTTPException carrying the Result failure body for a scheduling error."""
    status_code = STATUS_BY_CODE.get(error.code, 500)
    logger.debug(f"Responding {status_code} for {error.code}: {error.message}")
    return HTTPException(status_code=status_code, detail=Result.failure(error).to_dict())


def respond(result: Result) -> dict[str, Any]:
    if not result.success:
        raise error_response(result.error)
    return result.to_dict()


# =============================================================================
# Dependencies
# =============================================================================


def get_coordinator(request: Request) -> SchedulingCoordinator:
    return request.app.state.coordinator


def get_actor(
    x_user_id: str = Header(..., alias="X-User-Id", description="Acting user ID"),
    coordinator: SchedulingCoordinator = Depends(get_coordinator),
) -> UserProfile:
    try:
        return coordinator.resolve_actor(x_user_id)
    except AuthorizationError as e:
        raise error_response(e) from None


# =============================================================================
# Events
# =============================================================================


@router.get("/events")
async def list_events(
    view: ViewMode | None = Query(None, description="month, week, day or agenda"),
    anchor: datetime | None = Query(None, description="Date the view is centred on"),
    start: datetime | None = Query(None, description="Explicit window start"),
    end: datetime | None = Query(None, description="Explicit window end"),
    city: str | None = Query(None),
    user_ids: list[str] | None = Query(None),
    team_ids: list[str] | None = Query(None),
    mode: CalendarMode = Query(CalendarMode.MAIN, description="main, sales or delivery"),
    actor: UserProfile = Depends(get_actor),
    coordinator: SchedulingCoordinator = Depends(get_coordinator),
):
    """
    List events visible to the acting user.

    A view mode picks the window around ``anchor`` (today when omitted);
    otherwise ``start``/``end`` are used, and with neither the listing is
    unbounded.
    """
    try:
        date_range = None
        if view is not None:
            views = coordinator.config.views
            date_range = view_range(
                anchor or datetime.now(),
                view,
                week_starts_on=views.week_starts_on,
                agenda_days=views.agenda_days,
            )
        elif start is not None and end is not None:
            if instant_key(end) < instant_key(start):
                raise ValidationError("end must not be before start")
            date_range = DateRange(start, end)
        elif start is not None or end is not None:
            raise ValidationError("start and end must be given together")

        filter_state = FilterState(
            selected_city=city,
            selected_user_ids=frozenset(user_ids or ()),
            selected_team_ids=frozenset(team_ids or ()),
        )
        events = await coordinator.visible_events(actor, filter_state, date_range, mode)
    except (ValidationError, PersistenceError) as e:
        raise error_response(e) from None

    return {
        "success": True,
        "data": [event.to_dict() for event in events],
        "total": len(events),
    }


@router.post("/events", status_code=201)
async def create_event(
    body: EventCreateRequest,
    actor: UserProfile = Depends(get_actor),
    coordinator: SchedulingCoordinator = Depends(get_coordinator),
):
    """Create a single event. Set ``override`` to book over a conflict."""
    try:
        draft = EventDraft.from_dict(body.to_payload())
    except ValidationError as e:
        raise error_response(e) from None

    return respond(await coordinator.create_event(actor, draft, override=body.override))


@router.post("/events/recurring", status_code=201)
async def create_recurring(
    body: RecurringCreateRequest,
    actor: UserProfile = Depends(get_actor),
    coordinator: SchedulingCoordinator = Depends(get_coordinator),
):
    """Expand a recurring request and create every instance."""
    try:
        request = RecurrenceRequest.from_dict(body.to_payload())
    except ValidationError as e:
        raise error_response(e) from None

    return respond(await coordinator.create_recurring(actor, request, override=body.override))


@router.patch("/events/{event_id}")
async def update_event(
    event_id: str,
    body: EventPatchRequest,
    actor: UserProfile = Depends(get_actor),
    coordinator: SchedulingCoordinator = Depends(get_coordinator),
):
    """Patch an event; only fields present in the body change."""
    result = await coordinator.update_event(
        actor,
        event_id,
        body.to_patch(),
        override=body.override,
        expected_version=body.expected_version,
    )
    return respond(result)


@router.post("/events/{event_id}/move")
async def move_event(
    event_id: str,
    body: MoveRequest,
    actor: UserProfile = Depends(get_actor),
    coordinator: SchedulingCoordinator = Depends(get_coordinator),
):
    """Reschedule an event to a new start, keeping its duration."""
    return respond(await coordinator.move_event(actor, event_id, body.new_start))


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: str,
    actor: UserProfile = Depends(get_actor),
    coordinator: SchedulingCoordinator = Depends(get_coordinator),
):
    return respond(await coordinator.delete_event(actor, event_id))


# =============================================================================
# Assignees
# =============================================================================


@router.get("/assignees")
async def list_assignees(
    city: str | None = Query(None, description="City of the work item being assigned"),
    actor: UserProfile = Depends(get_actor),
    coordinator: SchedulingCoordinator = Depends(get_coordinator),
):
    """Users and teams the acting user may assign work to."""
    try:
        users, teams = coordinator.assignment_candidates(actor, city)
    except PersistenceError as e:
        raise error_response(e) from None

    return {
        "success": True,
        "users": [user.to_dict() for user in users],
        "teams": [team.to_dict() for team in teams],
    }
