#!/usr/bin/env python3
"""
CRM Calendar Command Line Interface

Main entry point for the `crm-calendar` command.

Usage:
    crm-calendar init-db                      # Create the calendar database
    crm-calendar expand --start 2024-01-01T09:00 --end 2024-01-01T10:00 \\
        --frequency weekly --until 2024-01-29 # Print expanded instances as JSON
    crm-calendar check --start 2024-01-01T09:30 --end 2024-01-01T10:30 \\
        --user u1 --org org-1                 # Conflict check against stored events
    crm-calendar serve --port 8080            # Start the HTTP API
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from crm_calendar import get_connection
from crm_calendar.config import CalendarConfig, load_config
from crm_calendar.errors import SchedulingError, ValidationError
from crm_calendar.logging_config import setup_logging
from crm_calendar.models import (
    EventDraft,
    EventKind,
    Frequency,
    RecurrenceRequest,
    assignee_from_fields,
    parse_day,
    parse_instant,
    validate_event,
)
from crm_calendar.scheduling.conflicts import find_conflicts
from crm_calendar.scheduling.recurrence import expand_recurrence
from crm_calendar.store.base import AssigneeFilter, DateRange
from crm_calendar.store.sqlite_store import SQLiteEventStore

logger = logging.getLogger(__name__)


def _print(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _draft_from_args(args) -> EventDraft:
    start = parse_instant(args.start)
    if start is None:
        raise ValidationError("--start is required")
    return EventDraft(
        organisation_id=args.org,
        kind=EventKind(args.kind),
        title=args.title or "",
        start_time=start,
        end_time=parse_instant(args.end),
        assignee=assignee_from_fields(args.user, args.team),
    )


def cmd_init_db(args, config: CalendarConfig):
    """Create the calendar tables."""
    db_path = Path(args.db) if args.db else config.storage.resolved_db_path()
    get_connection(db_path).close()
    _print({"success": True, "db_path": str(db_path)})


def cmd_expand(args, config: CalendarConfig):
    """Print the instances a recurring request would create. Nothing is stored."""
    request = RecurrenceRequest(
        base=_draft_from_args(args),
        frequency=Frequency(args.frequency),
        end_date=parse_day(args.until),
        interval=args.interval,
    )
    instances = expand_recurrence(request, max_instances=config.scheduling.max_recurrence_instances)
    _print({
        "success": True,
        "count": len(instances),
        "instances": [event.to_dict() for event in instances],
    })


def cmd_check(args, config: CalendarConfig):
    """Check a slot against stored events of the same assignee."""
    draft = _draft_from_args(args)
    validate_event(draft)
    candidate = draft.to_event()

    conflicts = []
    assignee_filter = AssigneeFilter.for_assignee(candidate.assignee)
    if not assignee_filter.is_empty:
        db_path = Path(args.db) if args.db else config.storage.resolved_db_path()
        store = SQLiteEventStore(db_path)
        pool = asyncio.run(
            store.list_events(
                candidate.organisation_id,
                DateRange(candidate.start_time, candidate.effective_end),
                assignee_filter,
            )
        )
        conflicts = find_conflicts(candidate, pool)

    _print({
        "success": True,
        "has_conflict": bool(conflicts),
        "conflicts": [event.to_dict() for event in conflicts],
    })


def cmd_serve(args, config: CalendarConfig):
    """Start the HTTP API."""
    import uvicorn

    host = args.host or "127.0.0.1"
    port = args.port or 8080

    print(f"Starting CRM Calendar API at http://{host}:{port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "crm_calendar.api.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level=config.logging.level.lower(),
    )


def _add_event_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--start", required=True, help="Start instant (ISO-8601)")
    parser.add_argument("--end", help="End instant (ISO-8601); omit for a point event")
    parser.add_argument("--kind", default="meeting", choices=[k.value for k in EventKind])
    parser.add_argument("--title", help="Event title")
    parser.add_argument("--org", default="default", help="Organisation ID (default: default)")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--user", help="Assign to this user ID")
    group.add_argument("--team", help="Assign to this team ID")


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="crm-calendar",
        description="CRM Calendar - scheduling and conflict checks",
    )
    parser.add_argument("--config", help="Path to calendar.yaml (default: args/calendar.yaml)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db subcommand
    init_parser = subparsers.add_parser("init-db", help="Create the calendar database")
    init_parser.add_argument("--db", help="Database path (default: from config)")
    init_parser.set_defaults(func=cmd_init_db)

    # expand subcommand
    expand_parser = subparsers.add_parser(
        "expand", help="Print the instances of a recurring request as JSON"
    )
    _add_event_arguments(expand_parser)
    expand_parser.add_argument(
        "--frequency", required=True, choices=[f.value for f in Frequency]
    )
    expand_parser.add_argument("--interval", type=int, default=1, help="Step size (default: 1)")
    expand_parser.add_argument("--until", required=True, help="Last date (YYYY-MM-DD, inclusive)")
    expand_parser.set_defaults(func=cmd_expand)

    # check subcommand
    check_parser = subparsers.add_parser(
        "check", help="Check a slot for conflicts against stored events"
    )
    _add_event_arguments(check_parser)
    check_parser.add_argument("--db", help="Database path (default: from config)")
    check_parser.set_defaults(func=cmd_check)

    # serve subcommand
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", type=int, default=8080, help="Port to bind to (default: 8080)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    # If no command given, show help
    if not args.command:
        parser.print_help()
        return 0

    config = load_config(Path(args.config) if args.config else None)
    setup_logging(config.logging)

    try:
        args.func(args, config)
    except SchedulingError as e:
        logger.debug(f"{args.command} failed: {e.message}")
        _print({"success": False, "error": e.message, "error_code": e.code})
        return 1
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
