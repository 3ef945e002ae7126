# app/services/feedback_eligibility.py
from __future__ import annotations

from datetime import datetime

from app.schemas.session import FeedbackRole, Session, SessionStatus
from app.schemas.user import UserContext, UserType
from app.services.session_phase import SessionPhase, derive_session_phase
from app.services.time_display import ensure_utc


def is_feedback_required(session: Session) -> bool:
    return session.require_feedback.is_required


def is_prep_required(session: Session) -> bool:
    return session.require_prep.is_required


def has_mentor_feedback(session: Session) -> bool:
    return any(f.role is FeedbackRole.MENTOR for f in session.feedback)


def has_mentee_feedback(session: Session) -> bool:
    return any(f.role is FeedbackRole.MENTEE for f in session.feedback)


def has_mentee_feedback_from(session: Session, contact_id: str) -> bool:
    return any(
        f.role is FeedbackRole.MENTEE
        and f.respondent_record is not None
        and f.respondent_record.id == contact_id
        for f in session.feedback
    )


def is_eligible_for_feedback(session: Session, now: datetime) -> bool:
    """
    Whether the session has reached the point where feedback is expected.

    Rules
    -----
    1) feedback explicitly not required      => False
    2) status Completed                      => True
    3) status Cancelled / No-Show            => False
    4) scheduled start in the past           => True
    5) otherwise (future or unscheduled)     => False
    """
    if not is_feedback_required(session):
        return False

    if session.status is SessionStatus.COMPLETED:
        return True

    if session.status in (SessionStatus.CANCELLED, SessionStatus.NO_SHOW):
        return False

    if session.scheduled_start is not None:
        return session.scheduled_start < ensure_utc(now)

    return False


def session_needs_feedback(session: Session, user_type: UserType, now: datetime) -> bool:
    """
    Eligible and still missing the feedback this kind of user gives:
    mentor feedback for mentors and staff, mentee feedback for students.
    """
    if not is_eligible_for_feedback(session, now):
        return False
    if user_type in (UserType.MENTOR, UserType.STAFF):
        return not has_mentor_feedback(session)
    return not has_mentee_feedback(session)


def is_eligible_for_prep(session: Session, now: datetime) -> bool:
    """
    Prep can be submitted while a session requiring it has not started yet.
    """
    if not is_prep_required(session):
        return False
    phase = derive_session_phase(session, now)
    return phase in (SessionPhase.UPCOMING, SessionPhase.STARTING_SOON) and (
        session.scheduled_start is not None and session.scheduled_start > ensure_utc(now)
    )


def has_submitted_prep(session: Session, contact_id: str | None) -> bool:
    if not contact_id:
        return False
    return any(
        s.respondent_record is not None and s.respondent_record.id == contact_id
        for s in session.pre_meeting_submissions
    )


def is_meeting_link_locked(session: Session, user: UserContext) -> bool:
    """
    Students only see the meeting link once they have submitted their prep,
    when prep is required. Mentors and staff always see it.
    """
    if user.user_type is not UserType.STUDENT:
        return False
    if not is_prep_required(session):
        return False
    return not has_submitted_prep(session, user.contact_id)
