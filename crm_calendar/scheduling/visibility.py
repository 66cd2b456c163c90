"""
Tool: Visibility Policy
Purpose: Role-scoped access control for viewing events and assigning work

Roles:
    admin  - sees and assigns across the whole organisation
    sales  - admin and sales users, themself, every team, unassigned events
    worker - themself and the teams they are a member of

The same roster answers both questions: a role may assign work to exactly
the assignees whose events it may see. Every role has one policy class in
POLICIES; a role without a policy fails at import time.

Usage:
    from crm_calendar.scheduling.visibility import policy_for, require_assign

    policy = policy_for(actor.role)
    visible = policy.filter_visible(actor, events, directory)
    require_assign(actor, event.assignee, directory)  # raises AuthorizationError
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import ClassVar

from crm_calendar.errors import AuthorizationError
from crm_calendar.models import (
    Assignee,
    CalendarEvent,
    Role,
    Team,
    TeamAssignee,
    Unassigned,
    UserAssignee,
    UserProfile,
)
from crm_calendar.store.base import Directory

logger = logging.getLogger(__name__)


class _MemoDirectory(Directory):
    """Per-call cache so filtering a long event list looks each id up once."""

    def __init__(self, inner: Directory):
        self.inner = inner
        self._users: dict[str, UserProfile | None] = {}
        self._teams: dict[str, Team | None] = {}

    def get_user(self, user_id: str) -> UserProfile | None:
        if user_id not in self._users:
            self._users[user_id] = self.inner.get_user(user_id)
        return self._users[user_id]

    def get_team(self, team_id: str) -> Team | None:
        if team_id not in self._teams:
            self._teams[team_id] = self.inner.get_team(team_id)
        return self._teams[team_id]

    def teams_for_user(self, user_id: str) -> list[Team]:
        return self.inner.teams_for_user(user_id)

    def list_users(self, organisation_id: str) -> list[UserProfile]:
        return self.inner.list_users(organisation_id)

    def list_teams(self, organisation_id: str) -> list[Team]:
        return self.inner.list_teams(organisation_id)


class VisibilityPolicy(ABC):
    """
    Visibility and assignment rules for one role.

    Subclasses answer three roster questions; everything else is derived.
    All decisions are confined to the actor's organisation.
    """

    role: ClassVar[Role]

    @abstractmethod
    def can_see_user(self, actor: UserProfile, user: UserProfile) -> bool:
        """Whether events assigned to ``user`` are in the actor's roster."""
        pass

    @abstractmethod
    def can_see_team(self, actor: UserProfile, team: Team) -> bool:
        """Whether events assigned to ``team`` are in the actor's roster."""
        pass

    @abstractmethod
    def can_see_unassigned(self, actor: UserProfile) -> bool:
        pass

    def can_see_assignee(self, actor: UserProfile, assignee: Assignee, directory: Directory) -> bool:
        if isinstance(assignee, UserAssignee):
            user = directory.get_user(assignee.id)
            return (
                user is not None
                and user.organisation_id == actor.organisation_id
                and self.can_see_user(actor, user)
            )
        if isinstance(assignee, TeamAssignee):
            team = directory.get_team(assignee.id)
            return (
                team is not None
                and team.organisation_id == actor.organisation_id
                and self.can_see_team(actor, team)
            )
        if isinstance(assignee, Unassigned):
            return self.can_see_unassigned(actor)
        return False

    def can_view(self, actor: UserProfile, event: CalendarEvent, directory: Directory) -> bool:
        if event.organisation_id != actor.organisation_id:
            return False
        return self.can_see_assignee(actor, event.assignee, directory)

    def can_assign(self, actor: UserProfile, assignee: Assignee, directory: Directory) -> bool:
        return self.can_see_assignee(actor, assignee, directory)

    def can_assign_to(self, actor: UserProfile, target_user_id: str, directory: Directory) -> bool:
        return self.can_see_assignee(actor, UserAssignee(target_user_id), directory)

    def can_assign_to_team(self, actor: UserProfile, team_id: str, directory: Directory) -> bool:
        return self.can_see_assignee(actor, TeamAssignee(team_id), directory)

    def filter_visible(
        self,
        actor: UserProfile,
        events: Iterable[CalendarEvent],
        directory: Directory,
    ) -> list[CalendarEvent]:
        cached = _MemoDirectory(directory)
        return [event for event in events if self.can_view(actor, event, cached)]

    def roster(self, actor: UserProfile, directory: Directory) -> tuple[list[UserProfile], list[Team]]:
        """Users and teams the actor may see and assign to."""
        users = [u for u in directory.list_users(actor.organisation_id) if self.can_see_user(actor, u)]
        teams = [t for t in directory.list_teams(actor.organisation_id) if self.can_see_team(actor, t)]
        return users, teams


class AdminPolicy(VisibilityPolicy):
    role = Role.ADMIN

    def can_see_user(self, actor: UserProfile, user: UserProfile) -> bool:
        return True

    def can_see_team(self, actor: UserProfile, team: Team) -> bool:
        return True

    def can_see_unassigned(self, actor: UserProfile) -> bool:
        return True


class SalesPolicy(VisibilityPolicy):
    role = Role.SALES

    def can_see_user(self, actor: UserProfile, user: UserProfile) -> bool:
        return user.id == actor.id or user.role in (Role.ADMIN, Role.SALES)

    def can_see_team(self, actor: UserProfile, team: Team) -> bool:
        return True

    def can_see_unassigned(self, actor: UserProfile) -> bool:
        return True


class WorkerPolicy(VisibilityPolicy):
    role = Role.WORKER

    def can_see_user(self, actor: UserProfile, user: UserProfile) -> bool:
        return user.id == actor.id

    def can_see_team(self, actor: UserProfile, team: Team) -> bool:
        return actor.id in team.member_ids

    def can_see_unassigned(self, actor: UserProfile) -> bool:
        return False


POLICIES: dict[Role, VisibilityPolicy] = {
    policy.role: policy for policy in (AdminPolicy(), SalesPolicy(), WorkerPolicy())
}

_missing = set(Role) - set(POLICIES)
if _missing:
    raise RuntimeError(f"No visibility policy for roles: {sorted(r.value for r in _missing)}")


def policy_for(role: Role | str) -> VisibilityPolicy:
    """Look up the policy for a role."""
    try:
        return POLICIES[Role(role)]
    except ValueError:
        raise AuthorizationError(f"Unknown role: {role}") from None


def can_view(actor: UserProfile, event: CalendarEvent, directory: Directory) -> bool:
    return policy_for(actor.role).can_view(actor, event, directory)


def can_assign_to(actor: UserProfile, target_user_id: str, directory: Directory) -> bool:
    return policy_for(actor.role).can_assign_to(actor, target_user_id, directory)


def visible_events(
    actor: UserProfile,
    events: Iterable[CalendarEvent],
    directory: Directory,
) -> list[CalendarEvent]:
    return policy_for(actor.role).filter_visible(actor, events, directory)


def require_view(actor: UserProfile, event: CalendarEvent, directory: Directory) -> None:
    """
    Raise unless the actor may see the event.

    Raises:
        AuthorizationError
    """
    if not can_view(actor, event, directory):
        logger.warning(f"{actor.role.value} {actor.id} denied view of event {event.id}")
        raise AuthorizationError(f"{actor.role.display_name} {actor.id} may not access event {event.id}")


def require_assign(actor: UserProfile, assignee: Assignee, directory: Directory) -> None:
    """
    Raise unless the actor may assign work to the assignee.

    Raises:
        AuthorizationError
    """
    if not policy_for(actor.role).can_assign(actor, assignee, directory):
        target = f"{assignee.kind} {assignee.id}" if assignee.id else "nobody"
        logger.warning(f"{actor.role.value} {actor.id} denied assigning to {target}")
        raise AuthorizationError(f"{actor.role.display_name} {actor.id} may not assign work to {target}")
