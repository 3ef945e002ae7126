# app/services/session_pipeline.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from app.schemas.session import Session, SessionStatus, SessionType
from app.schemas.user import UserContext, UserType
from app.schemas.views import SessionStats
from app.services.feedback_eligibility import (
    has_mentee_feedback,
    has_mentor_feedback,
    is_eligible_for_feedback,
)
from app.services.list_pipeline import (
    ProcessedList,
    SortDirection,
    group_records,
    search_records,
    stable_sort,
)
from app.services.mentor_resolver import get_lead_mentor, get_mentor_participants, is_current_user_mentor
from app.services.session_phase import is_session_past, is_session_upcoming
from app.services.time_display import session_month_label


class SessionFilter(str, Enum):
    ALL = "all"
    UPCOMING = "upcoming"
    PAST = "past"
    NEEDS_FEEDBACK = "needsFeedback"
    CANCELLED = "cancelled"


class SessionSort(str, Enum):
    DATE = "date"
    TYPE = "type"
    STATUS = "status"
    TEAM = "team"
    MENTOR = "mentor"


class SessionGroupBy(str, Enum):
    NONE = "none"
    STATUS = "status"
    TYPE = "type"
    TEAM = "team"
    MONTH = "month"


STATUS_ORDER = {status: index for index, status in enumerate(SessionStatus)}
TYPE_ORDER = {session_type.value: index for index, session_type in enumerate(SessionType)}
UNKNOWN_ORDER = 99


def session_search_text(session: Session) -> Iterable[Optional[str]]:
    yield session.team_name
    for mentor in get_mentor_participants(session):
        yield mentor.contact.full_name
    yield session.session_type
    yield session.agenda
    yield session.status.value if session.status else None


def search_sessions(sessions: Sequence[Session], query: str | None) -> list[Session]:
    return search_records(sessions, query, session_search_text)


def needs_feedback_for(session: Session, user: UserContext, now: datetime) -> bool:
    """
    Role-scoped "needs feedback": mentors only count sessions they mentor,
    staff count any session lacking mentor feedback, students count sessions
    lacking mentee feedback.
    """
    if not is_eligible_for_feedback(session, now):
        return False
    if user.user_type is UserType.MENTOR:
        if not is_current_user_mentor(session, user.email):
            return False
        return not has_mentor_feedback(session)
    if user.user_type is UserType.STAFF:
        return not has_mentor_feedback(session)
    return not has_mentee_feedback(session)


def filter_sessions(
    sessions: Sequence[Session],
    session_filter: SessionFilter,
    user: UserContext,
    now: datetime,
) -> list[Session]:
    if session_filter is SessionFilter.UPCOMING:
        return [s for s in sessions if is_session_upcoming(s, now)]
    if session_filter is SessionFilter.PAST:
        return [
            s for s in sessions
            if is_session_past(s, now) and s.status is not SessionStatus.CANCELLED
        ]
    if session_filter is SessionFilter.NEEDS_FEEDBACK:
        return [s for s in sessions if needs_feedback_for(s, user, now)]
    if session_filter is SessionFilter.CANCELLED:
        return [s for s in sessions if s.status is SessionStatus.CANCELLED]
    return list(sessions)


def _lead_mentor_name(session: Session) -> str | None:
    lead = get_lead_mentor(session)
    if lead is None or not lead.full_name:
        return None
    return lead.full_name.casefold()


_SORT_KEYS: dict[SessionSort, Callable[[Session], object]] = {
    SessionSort.DATE: lambda s: s.scheduled_start,
    SessionSort.TYPE: lambda s: TYPE_ORDER.get(s.session_type, UNKNOWN_ORDER) if s.session_type else None,
    SessionSort.STATUS: lambda s: STATUS_ORDER[s.status] if s.status else None,
    SessionSort.TEAM: lambda s: s.team_name.casefold() if s.team_name else None,
    SessionSort.MENTOR: _lead_mentor_name,
}


def sort_sessions(
    sessions: Sequence[Session],
    sort: SessionSort,
    direction: SortDirection = SortDirection.ASC,
) -> list[Session]:
    return stable_sort(sessions, _SORT_KEYS[sort], direction)


_GROUP_KEYS: dict[SessionGroupBy, Callable[[Session], str]] = {
    SessionGroupBy.STATUS: lambda s: s.status.value if s.status else SessionStatus.SCHEDULED.value,
    SessionGroupBy.TYPE: lambda s: s.session_type or "Other",
    SessionGroupBy.TEAM: lambda s: s.team_name or "No Team",
    SessionGroupBy.MONTH: lambda s: session_month_label(s.scheduled_start),
}


def group_sessions(sessions: Sequence[Session], group_by: SessionGroupBy) -> dict[str, list[Session]]:
    return group_records(sessions, group_by.value, _GROUP_KEYS.get(group_by))


def process_sessions(
    sessions: Sequence[Session],
    *,
    user: UserContext,
    now: datetime,
    search: str | None = None,
    session_filter: SessionFilter = SessionFilter.ALL,
    sort: SessionSort = SessionSort.DATE,
    direction: SortDirection = SortDirection.ASC,
    group_by: SessionGroupBy = SessionGroupBy.NONE,
) -> ProcessedList[Session]:
    """
    Run search, filter, sort and group in that order. Pure: the same input
    and `now` always give the same output.
    """
    searched = search_sessions(sessions, search)
    filtered = filter_sessions(searched, session_filter, user, now)
    ordered = sort_sessions(filtered, sort, direction)
    grouped = group_sessions(ordered, group_by)
    return ProcessedList(searched=searched, filtered=filtered, sorted=ordered, grouped=grouped)


def get_session_stats(sessions: Sequence[Session], user: UserContext, now: datetime) -> SessionStats:
    return SessionStats(
        total=len(sessions),
        upcoming=sum(1 for s in sessions if is_session_upcoming(s, now)),
        past=sum(
            1 for s in sessions
            if is_session_past(s, now) and s.status is not SessionStatus.CANCELLED
        ),
        completed=sum(1 for s in sessions if s.status is SessionStatus.COMPLETED),
        cancelled=sum(1 for s in sessions if s.status is SessionStatus.CANCELLED),
        needs_feedback=sum(1 for s in sessions if needs_feedback_for(s, user, now)),
    )
