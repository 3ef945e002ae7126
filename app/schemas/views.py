# app/schemas/views.py
"""
View-ready payloads returned by the session and task endpoints.

These are recomputed on every read from the raw records plus "now"; none of
it is written back to Airtable.
"""
from __future__ import annotations

from pydantic import Field

from app.schemas.base import CamelModel
from app.schemas.session import Session
from app.schemas.task import Task
from app.services.mentor_resolver import MentorParticipant
from app.services.session_phase import SessionPhase, SessionTimeInfo


class SessionCapabilities(CamelModel):
    can_create: bool
    can_update: bool
    can_cancel: bool
    can_add_feedback: bool = Field(
        False,
        description="Whether the viewer may add feedback to this particular session.",
    )
    can_view_private_notes: bool
    allowed_groupings: list[str]
    visible_columns: list[str]
    show_feedback_status: bool


class TaskCapabilities(CamelModel):
    can_create: bool
    can_delete: bool
    can_drag_status: bool
    can_drag_reassign: bool
    allowed_groupings: list[str]
    visible_columns: list[str]
    editable_fields: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Fields the caller may change, per loaded task id.",
    )


class SessionStats(CamelModel):
    total: int = 0
    upcoming: int = 0
    past: int = 0
    completed: int = 0
    cancelled: int = 0
    needs_feedback: int = 0


class TaskStats(CamelModel):
    total: int = 0
    open: int = 0
    completed: int = 0
    overdue: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)


class SessionGroup(CamelModel):
    key: str = Field(..., examples=["Scheduled"])
    sessions: list[Session]


class TaskGroup(CamelModel):
    key: str = Field(..., examples=["High"])
    tasks: list[Task]


class SessionListResponse(CamelModel):
    total: int = Field(..., description="Sessions visible to the caller before search/filter.")
    count: int = Field(..., description="Sessions left after search and filter.")
    groups: list[SessionGroup]
    stats: SessionStats
    capabilities: SessionCapabilities


class PageInfo(CamelModel):
    page: int
    per_page: int
    total_items: int
    has_more: bool


class TaskListResponse(CamelModel):
    count: int
    groups: list[TaskGroup]
    stats: TaskStats
    page_info: PageInfo
    capabilities: TaskCapabilities


class SeriesPosition(CamelModel):
    position: int = Field(..., examples=[3])
    total: int = Field(..., examples=[12])


class SessionEligibility(CamelModel):
    feedback_eligible: bool
    needs_feedback: bool
    prep_required: bool
    prep_eligible: bool
    has_submitted_prep: bool
    meeting_link_locked: bool


class SessionDetail(CamelModel):
    """
    Everything the session detail screen needs for one viewer.
    """

    session: Session
    phase: SessionPhase | None = Field(
        None,
        description=(
            "Null when the session has no scheduled start, or has ended "
            "without being closed out."
        ),
        examples=["starting-soon"],
    )
    time_info: SessionTimeInfo
    display_date: str = Field(..., examples=["Mon, Dec 8, 2024"])
    display_time: str = Field(..., examples=["1:00 PM ET"])
    mentors: list[MentorParticipant]
    eligibility: SessionEligibility
    default_tab: str = Field(..., examples=["preparation"])
    capabilities: SessionCapabilities
    series_position: SeriesPosition | None = None
