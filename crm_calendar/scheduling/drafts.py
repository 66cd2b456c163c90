"""
Tool: Work Item Drafts
Purpose: Prefill an event draft when an open lead or order is dropped on the calendar

Leads become one-hour sales meetings, orders become one-hour booked jobs.
The draft is only a suggestion; it goes through the coordinator like any
other create.

Usage:
    from crm_calendar.scheduling.drafts import draft_from_work_item

    draft = draft_from_work_item(item, date(2024, 3, 4), time(9, 0))
    result = await coordinator.create_event(actor, draft)
"""

from datetime import date, datetime, time, timedelta, tzinfo

from crm_calendar.errors import ValidationError
from crm_calendar.models import EventDraft, EventKind, UserAssignee, UNASSIGNED, WorkItem


DEFAULT_START = time(9, 0)
DEFAULT_LENGTH = timedelta(hours=1)

TITLE_PREFIXES = {
    "lead": "Sales call",
    "order": "Booked job",
}


def draft_from_work_item(
    item: WorkItem,
    day: date,
    start_clock: time | None = None,
    tz: tzinfo | None = None,
    fallback_user_id: str | None = None,
) -> EventDraft:
    """
    Build an event draft for a dropped work item.

    Args:
        item: The lead or order being scheduled
        day: Calendar day it was dropped on
        start_clock: Time slot it was dropped on (09:00 when omitted)
        tz: Timezone for the resulting instants
        fallback_user_id: Assignee when the item has no assigned user
            (usually the acting user)
    """
    if item.kind not in TITLE_PREFIXES:
        raise ValidationError(f"Cannot schedule work item of kind: {item.kind}")

    start = datetime.combine(day, start_clock or DEFAULT_START).replace(tzinfo=tz)
    assignee_id = item.assigned_user_id or fallback_user_id

    return EventDraft(
        organisation_id=item.organisation_id,
        kind=EventKind.MEETING if item.kind == "lead" else EventKind.TASK,
        title=f"{TITLE_PREFIXES[item.kind]}: {item.title}",
        description=f"Created from {item.kind}: {item.title}",
        start_time=start,
        end_time=start + DEFAULT_LENGTH,
        assignee=UserAssignee(assignee_id) if assignee_id else UNASSIGNED,
        related_lead_id=item.id if item.kind == "lead" else None,
        related_order_id=item.id if item.kind == "order" else None,
        city=item.city,
    )
