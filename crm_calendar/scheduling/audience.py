"""
Tool: Audience Resolver
Purpose: Combine city, user and team filter axes into one effective scope

Priority:
    1. A selected city alone decides relevance.
    2. Otherwise the city tags of the selected users and teams are unioned.
    3. A non-empty union narrows to those cities.
    4. Nothing selected (or selections without city tags) leaves it unfiltered.

The resolver only narrows. It runs on top of the visibility policy and never
shows anything the policy hides.

Usage:
    from crm_calendar.scheduling.audience import resolve_city_scope, relevant_work_items

    scope = resolve_city_scope(filter_state, directory)
    items = relevant_work_items(open_orders, scope)
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from crm_calendar.models import (
    CalendarEvent,
    FilterState,
    Role,
    Team,
    TeamAssignee,
    UserAssignee,
    UserProfile,
    WorkItem,
)
from crm_calendar.scheduling.visibility import policy_for
from crm_calendar.store.base import Directory


@dataclass(frozen=True)
class CityScope:
    """
    Effective set of relevant cities.

    ``cities`` is None when nothing narrows the view.
    """

    cities: frozenset[str] | None = None
    source: str = "none"  # 'city', 'selection' or 'none'

    @property
    def is_unfiltered(self) -> bool:
        return self.cities is None

    def includes(self, city: str | None) -> bool:
        if self.cities is None:
            return True
        return city in self.cities


UNFILTERED = CityScope()


def resolve_city_scope(filter_state: FilterState, directory: Directory) -> CityScope:
    """Resolve the filter axes into a CityScope."""
    if filter_state.selected_city:
        return CityScope(frozenset({filter_state.selected_city}), source="city")

    cities: set[str] = set()
    for user_id in filter_state.selected_user_ids:
        user = directory.get_user(user_id)
        if user:
            cities.update(user.cities)
    for team_id in filter_state.selected_team_ids:
        team = directory.get_team(team_id)
        if team:
            cities.update(team.cities)

    if cities:
        return CityScope(frozenset(cities), source="selection")
    return UNFILTERED


def relevant_work_items(items: Iterable[WorkItem], scope: CityScope) -> list[WorkItem]:
    """Open work items inside the scope, in input order."""
    return [item for item in items if item.is_open and scope.includes(item.city)]


def city_item_counts(items: Iterable[WorkItem]) -> dict[str, int]:
    """Number of open work items per city, for the city picker."""
    counts = Counter(item.city for item in items if item.is_open and item.city)
    return dict(sorted(counts.items()))


def assignment_candidates(
    actor: UserProfile,
    directory: Directory,
    item_city: str | None = None,
) -> tuple[list[UserProfile], list[Team]]:
    """
    Users and teams a dropped work item may be assigned to.

    Admins get their whole roster. Others get their roster narrowed to the
    users and teams tagged with the item's city; an item without a city
    leaves the roster as is.
    """
    users, teams = policy_for(actor.role).roster(actor, directory)
    if actor.role == Role.ADMIN or not item_city:
        return users, teams
    return (
        [u for u in users if item_city in u.cities],
        [t for t in teams if item_city in t.cities],
    )


def narrow_events(events: Iterable[CalendarEvent], filter_state: FilterState) -> list[CalendarEvent]:
    """
    Narrow already-visible events by the viewer's selections.

    Selected users and teams keep events assigned to any of them; a selected
    city keeps events tagged with that city. Both apply when both are set.
    """
    result = []
    selecting = bool(filter_state.selected_user_ids or filter_state.selected_team_ids)
    for event in events:
        if selecting:
            assignee = event.assignee
            if isinstance(assignee, UserAssignee):
                if assignee.id not in filter_state.selected_user_ids:
                    continue
            elif isinstance(assignee, TeamAssignee):
                if assignee.id not in filter_state.selected_team_ids:
                    continue
            else:
                continue
        if filter_state.selected_city and event.city != filter_state.selected_city:
            continue
        result.append(event)
    return result
