"""
Pydantic models for Calendar API request bodies.

Bodies are parsed here and handed to the scheduling core as plain dicts;
scheduling rules (time ordering, dual assignees, intervals) are enforced by
crm_calendar.models so the HTTP surface and the CLI reject the same input.
"""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class AssigneeBody(BaseModel):
    """Tagged assignee: {"kind": "user", "id": "u1"}."""

    kind: Literal["user", "team", "none"] = "none"
    id: str | None = None


class EventBody(BaseModel):
    """Event payload shared by single and recurring creates."""

    model_config = ConfigDict(extra="forbid")

    kind: str = Field(default="meeting", description="meeting, task or reminder")
    title: str = ""
    description: str = ""
    location: str = ""
    meeting_link: str | None = None
    start_time: datetime
    end_time: datetime | None = None

    # Either the tagged assignee or the legacy id pair
    assignee: AssigneeBody | None = None
    assigned_to_user_id: str | None = None
    assigned_to_team_id: str | None = None

    related_lead_id: str | None = None
    related_order_id: str | None = None
    city: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude={"override"}, exclude_none=True)


class EventCreateRequest(EventBody):
    override: bool = Field(default=False, description="Create even if the assignee is busy")


class RecurringCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base: EventBody
    frequency: str = Field(..., description="daily, weekly or monthly")
    interval: int = 1
    end_date: date
    override: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "base": self.base.to_payload(),
            "frequency": self.frequency,
            "interval": self.interval,
            "end_date": self.end_date,
        }


class EventPatchRequest(BaseModel):
    """Partial update. Only fields present in the body are changed."""

    model_config = ConfigDict(extra="forbid")

    kind: str | None = None
    title: str | None = None
    description: str | None = None
    location: str | None = None
    meeting_link: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    assignee: AssigneeBody | None = None
    assigned_to_user_id: str | None = None
    assigned_to_team_id: str | None = None
    related_lead_id: str | None = None
    related_order_id: str | None = None
    city: str | None = None

    override: bool = False
    expected_version: int | None = Field(default=None, description="Reject if the event changed since this version")

    def to_patch(self) -> dict[str, Any]:
        patch = self.model_dump(exclude_unset=True, exclude={"override", "expected_version"})
        # An explicit null assignee means unassign
        if "assignee" in patch and patch["assignee"] is None:
            patch["assignee"] = {"kind": "none"}
        return patch


class MoveRequest(BaseModel):
    new_start: datetime
