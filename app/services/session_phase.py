# app/services/session_phase.py
from __future__ import annotations

import math
from datetime import datetime, timedelta
from enum import Enum

from app.schemas.base import CamelModel
from app.schemas.session import Session, SessionStatus
from app.schemas.user import UserType
from app.services.time_display import ensure_utc, session_end_time

DEFAULT_STARTING_SOON_MINUTES = 60
STARTING_SOON_CHECK_MINUTES = 30
TIME_INFO_SOON_MINUTES = 60


class SessionPhase(str, Enum):
    UPCOMING = "upcoming"
    STARTING_SOON = "starting-soon"
    DURING = "during"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


_TERMINAL_PHASES = {
    SessionStatus.CANCELLED: SessionPhase.CANCELLED,
    SessionStatus.NO_SHOW: SessionPhase.NO_SHOW,
    SessionStatus.COMPLETED: SessionPhase.COMPLETED,
}


class SessionTimeInfo(CamelModel):
    minutes_until_start: int | None = None
    minutes_since_end: int | None = None
    is_starting_soon: bool = False
    is_overdue: bool = False


def derive_session_phase(
    session: Session,
    now: datetime,
    starting_soon_minutes: int = DEFAULT_STARTING_SOON_MINUTES,
) -> SessionPhase | None:
    """
    Lifecycle stage of a session at `now`.

    Rules (first match wins)
    ------------------------
    1) status Cancelled / No-Show / Completed    => matching terminal phase
    2) no scheduled start                        => None (no phase asserted)
    3) start <= now <= end                       => DURING
    4) start - window <= now < start             => STARTING_SOON
    5) now < start - window                      => UPCOMING
    6) now > end                                 => In Progress stays DURING,
                                                    anything else is None

    `completed` is never inferred from the clock; only staff mark a session done.
    """
    if session.status in _TERMINAL_PHASES:
        return _TERMINAL_PHASES[session.status]

    if session.scheduled_start is None:
        return None

    now = ensure_utc(now)
    start = session.scheduled_start
    end = session_end_time(start, session.duration)

    if start <= now <= end:
        return SessionPhase.DURING

    if now < start:
        if now >= start - timedelta(minutes=starting_soon_minutes):
            return SessionPhase.STARTING_SOON
        return SessionPhase.UPCOMING

    # Past the end but never closed out: the status stays authoritative.
    if session.status is SessionStatus.IN_PROGRESS:
        return SessionPhase.DURING
    return None


def _whole_minutes(delta: timedelta) -> int:
    # Truncate toward zero so 59.9 minutes reads as 59.
    return math.trunc(delta.total_seconds() / 60)


def get_session_time_info(session: Session, now: datetime) -> SessionTimeInfo:
    """
    Relative timing of a session: minutes until it starts, minutes since it
    ended, whether it starts within the hour, and whether it is overdue
    (ended but not closed out).
    """
    if session.scheduled_start is None:
        return SessionTimeInfo()

    now = ensure_utc(now)
    start = session.scheduled_start
    end = session_end_time(start, session.duration)

    until_start = _whole_minutes(start - now)
    since_end = _whole_minutes(now - end)

    closed = session.status in (
        SessionStatus.COMPLETED,
        SessionStatus.CANCELLED,
        SessionStatus.NO_SHOW,
    )

    return SessionTimeInfo(
        minutes_until_start=until_start if until_start > 0 else None,
        minutes_since_end=since_end if since_end > 0 else None,
        is_starting_soon=0 < until_start <= TIME_INFO_SOON_MINUTES,
        is_overdue=since_end > 0 and not closed,
    )


def is_session_starting_soon(
    session: Session,
    now: datetime,
    within_minutes: int = STARTING_SOON_CHECK_MINUTES,
) -> bool:
    if session.scheduled_start is None or session.status is SessionStatus.CANCELLED:
        return False
    minutes = (session.scheduled_start - ensure_utc(now)).total_seconds() / 60
    return 0 < minutes <= within_minutes


def is_session_upcoming(session: Session, now: datetime) -> bool:
    if session.scheduled_start is None or session.status is SessionStatus.CANCELLED:
        return False
    return session.scheduled_start > ensure_utc(now)


def is_session_past(session: Session, now: datetime) -> bool:
    if session.scheduled_start is None:
        return False
    return session.scheduled_start < ensure_utc(now)


def get_default_tab_for_phase(
    phase: SessionPhase | None,
    user_type: UserType,
    is_overdue: bool = False,
) -> str:
    """
    Detail tab to open first: students prepare before and review after,
    mentors prepare right before, staff always land on the overview.
    A session that ended without being closed out opens on feedback too.
    """
    if user_type is UserType.STUDENT:
        if phase in (SessionPhase.UPCOMING, SessionPhase.STARTING_SOON):
            return "preparation"
        if phase is SessionPhase.COMPLETED or is_overdue:
            return "feedback"
        return "overview"

    if user_type is UserType.MENTOR:
        if phase is SessionPhase.STARTING_SOON:
            return "preparation"
        if phase is SessionPhase.COMPLETED or is_overdue:
            return "feedback"
        return "overview"

    return "overview"
