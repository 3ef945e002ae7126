# app/schemas/forms.py
"""
Request bodies for user-initiated mutations.

Everything here is validated before a request is sent to BaseQL; a body
that fails validation is rejected with 422 and no network call is made.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AnyHttpUrl, Field, TypeAdapter, ValidationError, field_validator, model_validator

from app.schemas.base import CamelModel
from app.schemas.session import SessionStatus
from app.services.time_display import ensure_utc

_HTTP_URL = TypeAdapter(AnyHttpUrl)


def check_http_url(value: str, label: str) -> str:
    try:
        _HTTP_URL.validate_python(value)
    except ValidationError:
        raise ValueError(f"{label} must be a valid http(s) URL") from None
    return value


class SessionUpdate(CamelModel):
    """
    Partial update of a session. Only fields that are explicitly set are sent.
    """

    session_type: str | None = None
    scheduled_start: datetime | None = None
    duration: int | None = Field(None, gt=0, le=24 * 60)
    status: SessionStatus | None = None
    meeting_platform: str | None = None
    meeting_url: str | None = None
    agenda: str | None = None
    require_prep: bool | None = None
    require_feedback: bool | None = None

    @field_validator("meeting_url")
    @classmethod
    def valid_meeting_url(cls, value: str | None) -> str | None:
        if value is None or value.strip() == "":
            return value
        return check_http_url(value.strip(), "Meeting URL")

    @field_validator("scheduled_start")
    @classmethod
    def utc_start(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    def to_mutation_fields(self) -> dict[str, Any]:
        """
        camelCase field map for the BaseQL update mutation.
        """
        fields = self.model_dump(exclude_unset=True, by_alias=True)
        if self.scheduled_start is not None:
            fields["scheduledStart"] = self.scheduled_start.isoformat().replace("+00:00", "Z")
        if self.status is not None:
            fields["status"] = self.status.value
        return fields


class PreMeetingSubmissionCreate(CamelModel):
    agenda_items: str | None = None
    questions: str | None = None
    topics_to_discuss: str | None = None
    materials_links: str | None = Field(
        None,
        description="One link per line.",
    )

    @field_validator("materials_links")
    @classmethod
    def valid_links(cls, value: str | None) -> str | None:
        if not value:
            return value
        for line in value.splitlines():
            if line.strip():
                check_http_url(line.strip(), "Each materials link")
        return value

    @model_validator(mode="after")
    def not_blank(self) -> "PreMeetingSubmissionCreate":
        values = (self.agenda_items, self.questions, self.topics_to_discuss, self.materials_links)
        if not any(v and v.strip() for v in values):
            raise ValueError("Fill in at least one preparation field")
        return self


class FeedbackCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    content_relevance: int | None = Field(None, ge=1, le=5)
    actionability_of_advice: int | None = Field(None, ge=1, le=5)
    mentor_preparedness: int | None = Field(None, ge=1, le=5)
    mentee_engagement: int | None = Field(None, ge=1, le=5)
    what_went_well: str | None = None
    areas_for_improvement: str | None = None
    additional_needs: str | None = None
    request_follow_up: bool | None = None
    suggested_next_steps: str | None = None
    private_notes: str | None = Field(
        None,
        description="Mentor-only notes, visible to staff.",
    )
