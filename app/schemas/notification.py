# app/schemas/notification.py
from datetime import datetime
from enum import Enum

from pydantic import Field

from app.schemas.base import CamelModel


class ReminderKind(str, Enum):
    PREP_48H = "prep-48h"
    PREP_24H = "prep-24h"
    FEEDBACK_IMMEDIATE = "feedback-immediate"
    FEEDBACK_FOLLOWUP = "feedback-followup"


class RecipientRole(str, Enum):
    STUDENT = "student"
    MENTOR = "mentor"


class ScheduledReminder(CamelModel):
    """
    One reminder for one person. Delivery is handled elsewhere; this only
    says who should hear what, and when.
    """

    kind: ReminderKind = Field(..., examples=["prep-48h"])
    session_id: str = Field(..., examples=["recSession01"])
    contact_id: str = Field(..., examples=["recContact01"])
    recipient_email: str = Field(..., examples=["student@example.org"])
    recipient_name: str = Field(..., examples=["Grace Hopper"])
    role: RecipientRole
    send_at: datetime = Field(..., description="UTC instant the reminder should go out.")
    session_date: str = Field(..., examples=["Monday, December 8, 2024"])
    session_time: str = Field(..., examples=["1:00 PM ET"])
    other_party_name: str = Field(
        ...,
        description="Mentor name for students, team name for mentors.",
        examples=["Ada Lovelace"],
    )


class ReminderPlan(CamelModel):
    session_id: str
    reminders: list[ScheduledReminder] = Field(default_factory=list)
    skipped: int = Field(
        0,
        description="Reminders not planned because their send time is in the past or too far ahead.",
    )


class FollowupRunSummary(CamelModel):
    run_at: datetime
    total_sessions: int
    sessions_in_window: int
    reminders: list[ScheduledReminder]
    count: int
