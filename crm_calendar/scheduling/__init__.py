"""Calendar Scheduling - Rules that decide what may be booked and who sees it

Components:
    recurrence.py: Expand recurring requests into independent instances
    conflicts.py: Half-open overlap checks per user or team
    visibility.py: Role policies for viewing and assigning
    audience.py: City/user/team filter resolution and assignment candidates
    views.py: View windows (month/week/day/agenda) and calendar modes
    drafts.py: Prefilled drafts for leads and orders dropped on the calendar
    coordinator.py: Validate, authorize, check and persist with rollback
"""
