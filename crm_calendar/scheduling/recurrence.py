"""
Tool: Recurrence Expander
Purpose: Turn one recurring request into concrete, independent event instances

Every occurrence is computed from the base start (step k = base + k * interval
units), never from the previous occurrence, so a monthly series anchored on
the 31st returns to the 31st after passing through shorter months.

Usage:
    from crm_calendar.scheduling.recurrence import expand_recurrence

    instances = expand_recurrence(request)
    # weekly, 2024-01-01 .. 2024-01-22 -> 01, 08, 15, 22

Notes:
    Times are wall-clock: the base clock time and tzinfo are kept on every
    instance and end - start is held constant. No astronomical DST shifts.
"""

import uuid
from collections.abc import Callable, Iterator
from datetime import date, datetime

from dateutil.relativedelta import relativedelta

from crm_calendar.errors import ValidationError
from crm_calendar.models import CalendarEvent, Frequency, RecurrenceRequest, validate_recurrence


DEFAULT_MAX_INSTANCES = 500

# Namespace for deterministic instance ids
RECURRENCE_NAMESPACE = uuid.UUID("6f1c7a52-2f4e-4d0b-9a57-3f0c1f6e8b21")


def occurrence_date(start_day: date, frequency: Frequency, step: int) -> date:
    """
    Date of the occurrence ``step`` units after ``start_day``.

    Monthly steps keep the day of month, clamped to the end of shorter
    months (Jan 31 + 1 month -> Feb 29 in a leap year).

    Raises:
        OverflowError, ValueError: the date falls outside the supported calendar
    """
    if frequency == Frequency.DAILY:
        return start_day + relativedelta(days=step)
    if frequency == Frequency.WEEKLY:
        return start_day + relativedelta(weeks=step)
    if frequency == Frequency.MONTHLY:
        return start_day + relativedelta(months=step)
    raise ValidationError(f"Invalid frequency: {frequency}")


def iter_occurrence_dates(
    start_day: date,
    frequency: Frequency,
    interval: int,
    end_date: date,
) -> Iterator[date]:
    """Yield occurrence dates up to and including ``end_date``."""
    if interval <= 0:
        raise ValidationError(f"interval must be positive, got {interval}")

    k = 0
    while True:
        try:
            day = occurrence_date(start_day, frequency, k * interval)
        except (OverflowError, ValueError):
            # Past date.max, so past end_date too
            return
        if day > end_date:
            return
        yield day
        k += 1


def _default_id_factory(request: RecurrenceRequest) -> Callable[[int], str]:
    base = request.base
    fingerprint = "|".join(
        [
            base.organisation_id,
            base.start_time.isoformat(),
            base.end_time.isoformat() if base.end_time else "",
            f"{base.assignee.kind}:{base.assignee.id or ''}",
            base.kind.value,
            base.title,
            request.frequency.value,
            str(request.interval),
            request.end_date.isoformat(),
        ]
    )
    return lambda index: str(uuid.uuid5(RECURRENCE_NAMESPACE, f"{fingerprint}#{index}"))


def expand_recurrence(
    request: RecurrenceRequest,
    id_factory: Callable[[int], str] | None = None,
    max_instances: int | None = DEFAULT_MAX_INSTANCES,
) -> list[CalendarEvent]:
    """
    Expand a recurring request into concrete events.

    Pure and restartable: the same request (and id factory) always yields the
    same list. Zero instances is a valid result.

    Args:
        request: The recurring request
        id_factory: Maps instance index to event id; defaults to ids derived
            from the request so repeated expansion is identical
        max_instances: Reject requests that would produce more instances
            (None disables the cap)

    Returns:
        Ordered list of independent CalendarEvents

    Raises:
        ValidationError: invalid request or too many instances
    """
    validate_recurrence(request)

    base = request.base
    make_id = id_factory or _default_id_factory(request)
    clock = base.start_time.timetz()
    duration = base.end_time - base.start_time if base.end_time is not None else None

    instances: list[CalendarEvent] = []
    dates = iter_occurrence_dates(
        base.start_time.date(), request.frequency, request.interval, request.end_date
    )
    for index, day in enumerate(dates):
        if max_instances is not None and index >= max_instances:
            raise ValidationError(
                f"Recurrence would create more than {max_instances} instances; "
                "shorten the range or raise the interval"
            )
        start = datetime.combine(day, clock)
        try:
            end = start + duration if duration is not None else None
        except OverflowError:
            raise ValidationError(f"Instance on {day.isoformat()} would end past the supported calendar") from None
        instances.append(base.to_event(make_id(index), start_time=start, end_time=end))

    return instances
