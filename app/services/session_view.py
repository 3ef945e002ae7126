# app/services/session_view.py
from __future__ import annotations

from datetime import datetime
from typing import Sequence

from app.schemas.session import Session
from app.schemas.user import UserContext
from app.schemas.views import (
    SessionDetail,
    SessionEligibility,
    SessionGroup,
    SessionListResponse,
)
from app.services.feedback_eligibility import (
    has_submitted_prep,
    is_eligible_for_feedback,
    is_eligible_for_prep,
    is_meeting_link_locked,
    is_prep_required,
)
from app.services.list_pipeline import SortDirection
from app.services.mentor_resolver import get_mentor_participants
from app.services.permissions import (
    build_session_capabilities,
    can_read_session,
    redact_session,
)
from app.services.series_operations import get_series_position
from app.services.session_phase import (
    derive_session_phase,
    get_default_tab_for_phase,
    get_session_time_info,
)
from app.services.session_pipeline import (
    SessionFilter,
    SessionGroupBy,
    SessionSort,
    get_session_stats,
    needs_feedback_for,
    process_sessions,
)
from app.services.time_display import format_session_date, format_session_time


def visible_sessions(sessions: Sequence[Session], user: UserContext) -> list[Session]:
    """
    Sessions the user may read, with feedback redacted for them.
    """
    return [redact_session(s, user) for s in sessions if can_read_session(user, s)]


def build_session_list(
    sessions: Sequence[Session],
    *,
    user: UserContext,
    now: datetime,
    search: str | None = None,
    session_filter: SessionFilter = SessionFilter.ALL,
    sort: SessionSort = SessionSort.DATE,
    direction: SortDirection = SortDirection.ASC,
    group_by: SessionGroupBy = SessionGroupBy.NONE,
) -> SessionListResponse:
    visible = visible_sessions(sessions, user)
    processed = process_sessions(
        visible,
        user=user,
        now=now,
        search=search,
        session_filter=session_filter,
        sort=sort,
        direction=direction,
        group_by=group_by,
    )
    return SessionListResponse(
        total=len(visible),
        count=len(processed.filtered),
        groups=[SessionGroup(key=key, sessions=items) for key, items in processed.grouped.items()],
        stats=get_session_stats(visible, user, now),
        capabilities=build_session_capabilities(user),
    )


def build_session_detail(
    session: Session,
    user: UserContext,
    now: datetime,
    series_sessions: Sequence[Session] = (),
) -> SessionDetail:
    """
    Detail view of one session for one viewer.

    The phase, eligibility and capabilities are derived from the unredacted
    record; only the returned `session` is redacted.
    """
    phase = derive_session_phase(session, now)
    time_info = get_session_time_info(session, now)
    eligibility = SessionEligibility(
        feedback_eligible=is_eligible_for_feedback(session, now),
        needs_feedback=needs_feedback_for(session, user, now),
        prep_required=is_prep_required(session),
        prep_eligible=is_eligible_for_prep(session, now),
        has_submitted_prep=has_submitted_prep(session, user.contact_id),
        meeting_link_locked=is_meeting_link_locked(session, user),
    )
    return SessionDetail(
        session=redact_session(session, user),
        phase=phase,
        time_info=time_info,
        display_date=format_session_date(session.scheduled_start),
        display_time=format_session_time(session.scheduled_start),
        mentors=get_mentor_participants(session),
        eligibility=eligibility,
        default_tab=get_default_tab_for_phase(phase, user.user_type, time_info.is_overdue),
        capabilities=build_session_capabilities(user, session, now),
        series_position=get_series_position(session, series_sessions) if series_sessions else None,
    )
