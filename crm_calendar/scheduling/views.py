"""
Tool: Calendar Views
Purpose: Date windows per view mode and event filters per calendar mode

View modes:
    month  - first to last day of the anchor's month
    week   - the anchor's week (Monday or Sunday start)
    day    - the anchor's day
    agenda - now through the next N days

Calendar modes:
    main     - everything
    sales    - meetings linked to a lead
    delivery - tasks linked to an order

Usage:
    from crm_calendar.scheduling.views import ViewMode, CalendarMode, view_range, filter_by_mode

    window = view_range(datetime(2024, 2, 14), ViewMode.MONTH)
    events = filter_by_mode(events, CalendarMode.DELIVERY)
"""

from collections.abc import Iterable
from datetime import datetime, time, timedelta
from enum import Enum

from dateutil.relativedelta import relativedelta

from crm_calendar.models import CalendarEvent, EventKind
from crm_calendar.store.base import DateRange


class ViewMode(str, Enum):
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    AGENDA = "agenda"


class CalendarMode(str, Enum):
    MAIN = "main"
    SALES = "sales"
    DELIVERY = "delivery"


END_OF_DAY = time(23, 59, 59)


def _at(day, clock: time, tzinfo) -> datetime:
    return datetime.combine(day, clock).replace(tzinfo=tzinfo)


def view_range(
    anchor: datetime,
    mode: ViewMode | str,
    now: datetime | None = None,
    week_starts_on: str = "monday",
    agenda_days: int = 30,
) -> DateRange:
    """
    Listing window for a calendar view.

    Windows keep the anchor's tzinfo and end at 23:59:59 of their last day,
    except agenda which runs from ``now`` for ``agenda_days`` days.
    """
    mode = ViewMode(mode)
    tz = anchor.tzinfo
    day = anchor.date()

    if mode == ViewMode.MONTH:
        return DateRange(
            _at(day.replace(day=1), time.min, tz),
            _at(day + relativedelta(day=31), END_OF_DAY, tz),
        )

    if mode == ViewMode.WEEK:
        offset = day.weekday() if week_starts_on == "monday" else (day.weekday() + 1) % 7
        first = day - timedelta(days=offset)
        return DateRange(
            _at(first, time.min, tz),
            _at(first + timedelta(days=6), END_OF_DAY, tz),
        )

    if mode == ViewMode.DAY:
        return DateRange(_at(day, time.min, tz), _at(day, END_OF_DAY, tz))

    start = now or datetime.now(tz)
    return DateRange(start, start + timedelta(days=agenda_days))


def matches_mode(event: CalendarEvent, mode: CalendarMode | str) -> bool:
    mode = CalendarMode(mode)
    if mode == CalendarMode.SALES:
        return event.kind == EventKind.MEETING and bool(event.related_lead_id)
    if mode == CalendarMode.DELIVERY:
        return event.kind == EventKind.TASK and bool(event.related_order_id)
    return True


def filter_by_mode(events: Iterable[CalendarEvent], mode: CalendarMode | str) -> list[CalendarEvent]:
    return [event for event in events if matches_mode(event, mode)]
