# app/schemas/session.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import Field, field_validator

from app.schemas.base import AirtableRecord, none_as_empty_list
from app.schemas.contact import Contact, Team
from app.services.time_display import ensure_utc


class SessionStatus(str, Enum):
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No-Show"


class SessionType(str, Enum):
    OFFICE_HOURS = "Office Hours"
    TEAM_CHECK_IN = "Team Check-in"
    ONE_ON_ONE = "1-on-1"
    GUEST_LECTURE = "Guest Lecture"
    JUDGING = "Judging"
    WORKSHOP = "Workshop"


class ParticipantRole(str, Enum):
    LEAD_MENTOR = "Lead Mentor"
    SUPPORTING_MENTOR = "Supporting Mentor"
    OBSERVER = "Observer"
    MENTEE = "Mentee"


class ParticipantStatus(str, Enum):
    ACTIVE = "Active"
    INVITED = "Invited"
    CANCELLED = "Cancelled"
    DECLINED = "Declined"
    NO_SHOW = "No-Show"


class FeedbackRole(str, Enum):
    MENTOR = "Mentor"
    MENTEE = "Mentee"


class Requirement(str, Enum):
    """
    Three-valued form of the `requirePrep` / `requireFeedback` checkboxes.

    Older records carry no value at all; those are treated as required.
    """

    REQUIRED = "required"
    NOT_REQUIRED = "not_required"
    UNSPECIFIED = "unspecified"

    @property
    def is_required(self) -> bool:
        return self is not Requirement.NOT_REQUIRED

    @classmethod
    def from_raw(cls, value: object) -> "Requirement":
        if value is None:
            return cls.UNSPECIFIED
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.REQUIRED if value else cls.NOT_REQUIRED
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "required"):
                return cls.REQUIRED
            if lowered in ("false", "not_required"):
                return cls.NOT_REQUIRED
            if lowered in ("", "unspecified"):
                return cls.UNSPECIFIED
        raise ValueError(f"Cannot interpret {value!r} as a requirement flag")


class SessionParticipant(AirtableRecord):
    """
    Role-tagged link between a contact and one session.
    """

    id: str
    role: ParticipantRole | None = None
    status: ParticipantStatus | None = None
    contact: list[Contact] = Field(default_factory=list)

    @field_validator("contact", mode="before")
    @classmethod
    def empty_links(cls, value):
        return none_as_empty_list(value)

    @property
    def contact_record(self) -> Contact | None:
        return self.contact[0] if self.contact else None


class SessionFeedback(AirtableRecord):
    id: str
    role: FeedbackRole | None = None
    rating: int | None = None
    content_relevance: int | None = None
    actionability_of_advice: int | None = None
    mentor_preparedness: int | None = None
    mentee_engagement: int | None = None
    what_went_well: str | None = None
    areas_for_improvement: str | None = None
    additional_needs: str | None = None
    request_follow_up: bool | None = None
    suggested_next_steps: str | None = None
    private_notes: str | None = None
    submitted: datetime | None = None
    # Airtable spells the link field "respondant".
    respondent: list[Contact] = Field(default_factory=list, alias="respondant")

    @field_validator("respondent", mode="before")
    @classmethod
    def empty_links(cls, value):
        return none_as_empty_list(value)

    @property
    def respondent_record(self) -> Contact | None:
        return self.respondent[0] if self.respondent else None


class PreMeetingSubmission(AirtableRecord):
    id: str
    agenda_items: str | None = None
    questions: str | None = None
    topics_to_discuss: str | None = None
    materials_links: str | None = None
    submitted: datetime | None = None
    respondent: list[Contact] = Field(default_factory=list, alias="respondant")

    @field_validator("respondent", mode="before")
    @classmethod
    def empty_links(cls, value):
        return none_as_empty_list(value)

    @property
    def respondent_record(self) -> Contact | None:
        return self.respondent[0] if self.respondent else None


class LinkedTask(AirtableRecord):
    """
    Compact view of a task as embedded in a session record.
    """

    id: str
    name: str | None = None
    status: str | None = None
    due_date: date | None = None


class Session(AirtableRecord):
    """
    A scheduled mentorship session as stored in Airtable.
    """

    id: str = Field(..., examples=["recSession01"])
    session_type: str | None = Field(None, examples=["Team Check-in"])
    scheduled_start: datetime | None = Field(
        None,
        description="Scheduled start as a UTC instant.",
        examples=["2025-03-04T17:00:00.000Z"],
    )
    duration: int | None = Field(None, description="Duration in minutes.", examples=[60])
    status: SessionStatus | None = Field(None, examples=["Scheduled"])
    meeting_platform: str | None = None
    meeting_url: str | None = None
    agenda: str | None = None
    require_prep: Requirement = Requirement.UNSPECIFIED
    require_feedback: Requirement = Requirement.UNSPECIFIED
    series_id: str | None = None
    rrule: str | None = None
    series_config: str | None = Field(
        None,
        description="JSON template of the series, stored on its first session only.",
    )

    session_participants: list[SessionParticipant] = Field(default_factory=list)
    mentor: list[Contact] = Field(
        default_factory=list,
        description="Legacy single-mentor link, used when no participants exist.",
    )
    team: list[Team] = Field(default_factory=list)
    feedback: list[SessionFeedback] = Field(default_factory=list)
    pre_meeting_submissions: list[PreMeetingSubmission] = Field(default_factory=list)
    tasks: list[LinkedTask] = Field(default_factory=list)

    @field_validator(
        "session_participants",
        "mentor",
        "team",
        "feedback",
        "pre_meeting_submissions",
        "tasks",
        mode="before",
    )
    @classmethod
    def empty_links(cls, value):
        return none_as_empty_list(value)

    @field_validator("require_prep", "require_feedback", mode="before")
    @classmethod
    def tri_state(cls, value):
        return Requirement.from_raw(value)

    @field_validator("scheduled_start")
    @classmethod
    def utc_start(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @property
    def team_record(self) -> Team | None:
        return self.team[0] if self.team else None

    @property
    def team_name(self) -> str | None:
        team = self.team_record
        return team.team_name if team else None
