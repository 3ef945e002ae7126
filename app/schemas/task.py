# app/schemas/task.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import Field, field_validator

from app.schemas.base import AirtableRecord, none_as_empty_list
from app.schemas.contact import Contact, Team
from app.schemas.session import Session


class TaskStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class TaskPriority(str, Enum):
    URGENT = "Urgent"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class TaskHealth(str, Enum):
    ON_TRACK = "On Track"
    AT_RISK = "At Risk"
    OFF_TRACK = "Off Track"
    COMPLETED = "Completed"


class TaskUpdate(AirtableRecord):
    """
    A progress update posted on a task. `Task.updates` holds them newest first.
    """

    id: str
    health: TaskHealth | None = None
    message: str | None = None
    created: datetime | None = None
    author: list[Contact] = Field(default_factory=list)

    @field_validator("author", mode="before")
    @classmethod
    def empty_links(cls, value):
        return none_as_empty_list(value)


class Task(AirtableRecord):
    """
    An action item, usually created during or after a session.
    """

    id: str = Field(..., examples=["recTask01"])
    name: str | None = Field(None, examples=["Draft the survey questions"])
    description: str | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    level_of_effort: str | None = Field(None, description="XS / S / M / L / XL.")
    due_date: date | None = None
    created: datetime | None = None

    assigned_to: list[Contact] = Field(default_factory=list)
    team: list[Team] = Field(default_factory=list)
    session: list[Session] = Field(default_factory=list)
    updates: list[TaskUpdate] = Field(default_factory=list)

    @field_validator("assigned_to", "team", "session", "updates", mode="before")
    @classmethod
    def empty_links(cls, value):
        return none_as_empty_list(value)

    @field_validator("updates")
    @classmethod
    def newest_update_first(cls, value: list[TaskUpdate]) -> list[TaskUpdate]:
        # Undated updates go last, in the order received.
        return sorted(
            value,
            key=lambda u: u.created.timestamp() if u.created is not None else float("-inf"),
            reverse=True,
        )

    @field_validator("due_date", mode="before")
    @classmethod
    def date_part(cls, value):
        # Due dates occasionally arrive as full timestamps; keep the calendar day.
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value

    @property
    def assignee(self) -> Contact | None:
        return self.assigned_to[0] if self.assigned_to else None

    @property
    def team_name(self) -> str | None:
        return self.team[0].team_name if self.team else None

    @property
    def latest_health(self) -> TaskHealth | None:
        return self.updates[0].health if self.updates else None
