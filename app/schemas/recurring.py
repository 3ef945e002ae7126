# app/schemas/recurring.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import Field, field_validator, model_validator

from app.schemas.base import CamelModel
from app.schemas.forms import SessionUpdate
from app.schemas.session import ParticipantRole
from app.services.time_display import ensure_utc


class Frequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class SeriesScope(str, Enum):
    """
    Which sessions of a series an edit or delete applies to.
    """

    SINGLE = "single"
    FUTURE = "future"
    ALL = "all"


class RecurrenceConfig(CamelModel):
    """
    Recurrence pattern for a session series.

    Exactly one end condition (`occurrences` or `end_date`) must be given.
    Values are checked by `validate_recurrence_config`, which raises a
    configuration error instead of coercing bad input.
    """

    frequency: str = Field(..., examples=["weekly"])
    interval: int | None = Field(
        None,
        description="Step multiplier (1 = every week/month). Ignored for biweekly.",
    )
    end_date: date | None = Field(None, examples=["2025-06-30"])
    occurrences: int | None = Field(None, examples=[12])
    days_of_week: list[int] | None = Field(
        None,
        description="Weekdays for weekly patterns, 0 = Sunday ... 6 = Saturday.",
        examples=[[1, 3]],
    )


class MentorAssignment(CamelModel):
    contact_id: str = Field(..., examples=["recMentor01"])
    role: ParticipantRole = Field(ParticipantRole.SUPPORTING_MENTOR)

    @field_validator("role")
    @classmethod
    def mentor_roles_only(cls, value: ParticipantRole) -> ParticipantRole:
        if value is ParticipantRole.MENTEE:
            raise ValueError("Mentor assignments cannot use the Mentee role")
        return value


class SeriesConfig(CamelModel):
    """
    Template applied to every session of a series. Stored as JSON on the
    first (parent) session so the series can be recreated.
    """

    session_type: str = Field(..., min_length=1, examples=["Team Check-in"])
    team_id: str = Field(..., min_length=1, examples=["recTeam01"])
    mentors: list[MentorAssignment] = Field(..., min_length=1)
    duration: int = Field(60, gt=0, le=24 * 60)
    meeting_platform: str | None = None
    meeting_url: str | None = None
    location_id: str | None = None
    agenda: str | None = None
    cohort_id: str | None = None
    require_prep: bool = True
    require_feedback: bool = True

    @model_validator(mode="after")
    def needs_lead_mentor(self) -> "SeriesConfig":
        if not any(m.role is ParticipantRole.LEAD_MENTOR for m in self.mentors):
            raise ValueError("At least one mentor must have the Lead Mentor role")
        return self

    @property
    def lead_contact_id(self) -> str:
        for mentor in self.mentors:
            if mentor.role is ParticipantRole.LEAD_MENTOR:
                return mentor.contact_id
        return self.mentors[0].contact_id


class RecurringSessionInput(CamelModel):
    session_config: SeriesConfig
    recurrence: RecurrenceConfig
    scheduled_start: datetime = Field(
        ...,
        description="Start of the first occurrence (UTC).",
        examples=["2025-03-04T17:00:00Z"],
    )

    @field_validator("scheduled_start")
    @classmethod
    def utc_start(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class RecurrencePreviewRequest(CamelModel):
    recurrence: RecurrenceConfig
    scheduled_start: datetime

    @field_validator("scheduled_start")
    @classmethod
    def utc_start(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class RecurrencePreview(CamelModel):
    occurrences: list[datetime]
    count: int
    rrule: str = Field(..., examples=["FREQ=WEEKLY;COUNT=12"])
    description: str = Field(..., examples=["Weekly for 12 sessions"])


class CreatedOccurrence(CamelModel):
    id: str
    scheduled_start: datetime


class RecurringSessionResult(CamelModel):
    sessions: list[CreatedOccurrence]
    series_id: str
    count: int = Field(..., description="Number of sessions actually created.")
    failed: int = Field(0, description="Occurrences the data layer refused to create.")


class SeriesInfo(CamelModel):
    series_id: str
    count: int
    first_session_id: str | None = None
    last_session_id: str | None = None
    first_start: datetime | None = None
    last_start: datetime | None = None
    upcoming_count: int
    past_count: int
    rrule: str | None = None
    template: SeriesConfig | None = Field(
        None,
        description="Series template stored on the parent session.",
    )


class SeriesUpdateRequest(CamelModel):
    session_id: str = Field(..., description="Session the edit was started from.")
    scope: SeriesScope = SeriesScope.SINGLE
    updates: SessionUpdate


class SeriesMutationResult(CamelModel):
    series_id: str
    scope: SeriesScope
    affected_count: int
