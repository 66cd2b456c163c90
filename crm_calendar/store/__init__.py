"""Calendar Stores - Persistence and directory interfaces

Components:
    base.py: EventStore and Directory interfaces, DateRange, AssigneeFilter
    sqlite_store.py: SQLite-backed EventStore with version checks
    directory.py: SQLite-backed Directory with seeding helpers
"""
