"""Tests for crm_calendar/scheduling/conflicts.py

Two ranges conflict iff they share an assignee and overlap as half-open
intervals. These tests cover:
- Overlap, touching and disjoint ranges
- Symmetry of the overlap rule
- Users and teams as separate namespaces, unassigned never conflicting
- Point events (no end time)
- Member availability across a user and their teams
"""

from datetime import datetime, timedelta, timezone

import pytest

from crm_calendar.models import UNASSIGNED, CalendarEvent, TeamAssignee, UserAssignee
from crm_calendar.scheduling.conflicts import (
    TimeSlot,
    check_member_availability,
    find_conflicts,
    has_conflict,
    overlaps,
)


def utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, 4, hour, minute, tzinfo=timezone.utc)


def make_event(event_id, start, end, assignee=UserAssignee("u1")) -> CalendarEvent:
    return CalendarEvent(
        id=event_id,
        organisation_id="org-1",
        start_time=start,
        end_time=end,
        assignee=assignee,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Overlap Rule Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestOverlaps:
    """Tests for the half-open overlap rule."""

    def test_partial_overlap(self):
        assert overlaps(utc(10), utc(11), utc(10, 30), utc(11, 30)) is True

    def test_containment(self):
        assert overlaps(utc(9), utc(12), utc(10), utc(11)) is True

    def test_touching_ranges_do_not_overlap(self):
        """[10:00, 11:00) and [11:00, 12:00) only touch."""
        assert overlaps(utc(10), utc(11), utc(11), utc(12)) is False

    def test_disjoint(self):
        assert overlaps(utc(8), utc(9), utc(10), utc(11)) is False

    @pytest.mark.parametrize(
        "a, b",
        [
            ((utc(10), utc(11)), (utc(10, 30), utc(11, 30))),
            ((utc(10), utc(11)), (utc(11), utc(12))),
            ((utc(9), utc(12)), (utc(10), None)),
            ((utc(10), None), (utc(10), utc(11))),
        ],
    )
    def test_symmetric(self, a, b):
        """overlaps(a, b) == overlaps(b, a)."""
        assert overlaps(*a, *b) == overlaps(*b, *a)

    def test_point_inside_range(self):
        """A point strictly inside a range conflicts."""
        assert overlaps(utc(10, 30), None, utc(10), utc(11)) is True

    def test_point_at_range_start(self):
        """A point on the range's start only touches it."""
        assert overlaps(utc(10), None, utc(10), utc(11)) is False

    def test_identical_points(self):
        assert overlaps(utc(10), None, utc(10), None) is False

    def test_mixed_offsets_compare_instants(self):
        """10:30+01:00 is 09:30Z, inside 09:00-10:00Z."""
        cet = timezone(timedelta(hours=1))
        start = datetime(2024, 3, 4, 10, 30, tzinfo=cet)
        assert overlaps(start, start.replace(minute=45), utc(9), utc(10)) is True


# ─────────────────────────────────────────────────────────────────────────────
# find_conflicts Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestFindConflicts:
    """Tests for find_conflicts."""

    def test_overlapping_meeting_same_user(self):
        """A 10:30-11:30 meeting collides with a 10:00-11:00 one for the same user."""
        existing = make_event("e1", utc(10), utc(11))
        candidate = TimeSlot(utc(10, 30), utc(11, 30), UserAssignee("u1"))

        assert find_conflicts(candidate, [existing]) == [existing]

    def test_back_to_back_does_not_conflict(self):
        """An 11:00-12:00 meeting directly after 10:00-11:00 is fine."""
        existing = make_event("e1", utc(10), utc(11))
        candidate = TimeSlot(utc(11), utc(12), UserAssignee("u1"))

        assert find_conflicts(candidate, [existing]) == []

    def test_different_users_never_conflict(self):
        existing = make_event("e1", utc(10), utc(11))
        candidate = TimeSlot(utc(10), utc(11), UserAssignee("u2"))

        assert find_conflicts(candidate, [existing]) == []

    def test_user_and_team_with_same_id_do_not_conflict(self):
        existing = make_event("e1", utc(10), utc(11), TeamAssignee("u1"))
        candidate = TimeSlot(utc(10), utc(11), UserAssignee("u1"))

        assert find_conflicts(candidate, [existing]) == []

    def test_team_conflict(self):
        existing = make_event("e1", utc(10), utc(11), TeamAssignee("t1"))
        candidate = TimeSlot(utc(10, 45), utc(12), TeamAssignee("t1"))

        assert find_conflicts(candidate, [existing]) == [existing]

    def test_unassigned_candidate_never_conflicts(self):
        existing = make_event("e1", utc(10), utc(11))
        candidate = TimeSlot(utc(10), utc(11), UNASSIGNED)

        assert find_conflicts(candidate, [existing]) == []

    def test_unassigned_pool_events_ignored(self):
        existing = make_event("e1", utc(10), utc(11), UNASSIGNED)
        candidate = TimeSlot(utc(10), utc(11), UserAssignee("u1"))

        assert find_conflicts(candidate, [existing]) == []

    def test_excludes_event_being_edited(self):
        """An event never conflicts with its own previous self."""
        existing = make_event("e1", utc(10), utc(11))
        edited = existing.with_changes(start_time=utc(10, 15), end_time=utc(11, 15))

        assert find_conflicts(edited, [existing], exclude_id="e1") == []

    def test_returns_all_colliding_in_pool_order(self):
        pool = [
            make_event("e1", utc(9), utc(10, 15)),
            make_event("e2", utc(12), utc(13)),
            make_event("e3", utc(10, 45), utc(11, 30)),
        ]
        candidate = TimeSlot(utc(10), utc(11), UserAssignee("u1"))

        assert [e.id for e in find_conflicts(candidate, pool)] == ["e1", "e3"]

    def test_has_conflict(self):
        existing = make_event("e1", utc(10), utc(11))
        assert has_conflict(TimeSlot(utc(10), utc(11), UserAssignee("u1")), [existing]) is True
        assert has_conflict(TimeSlot(utc(11), utc(12), UserAssignee("u1")), [existing]) is False


# ─────────────────────────────────────────────────────────────────────────────
# Member Availability Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestCheckMemberAvailability:
    """Tests for the user pass plus per-team passes."""

    def test_free(self):
        report = check_member_availability(utc(10), utc(11), "u1", {"t1"}, [])
        assert report.has_conflicts is False
        assert report.all_conflicts == []

    def test_user_and_team_passes_are_separate(self):
        user_event = make_event("e1", utc(10), utc(11), UserAssignee("u1"))
        team_event = make_event("e2", utc(10, 30), utc(12), TeamAssignee("t1"))
        other_team = make_event("e3", utc(10), utc(11), TeamAssignee("t9"))

        report = check_member_availability(
            utc(10), utc(11), "u1", ["t1", "t2"], [user_event, team_event, other_team]
        )

        assert report.user_conflicts == [user_event]
        assert report.team_conflicts == {"t1": [team_event]}
        assert [e.id for e in report.all_conflicts] == ["e1", "e2"]

    def test_team_only(self):
        team_event = make_event("e2", utc(10), utc(11), TeamAssignee("t1"))
        report = check_member_availability(utc(10), utc(11), None, ["t1"], [team_event])

        assert report.user_conflicts == []
        assert report.has_conflicts is True
