# app/services/notification_planner.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Sequence

from app.schemas.contact import Contact
from app.schemas.notification import (
    FollowupRunSummary,
    RecipientRole,
    ReminderKind,
    ReminderPlan,
    ScheduledReminder,
)
from app.schemas.session import Session, SessionStatus
from app.services.feedback_eligibility import (
    has_mentee_feedback_from,
    has_mentor_feedback,
    is_eligible_for_feedback,
    is_feedback_required,
    is_prep_required,
)
from app.services.mentor_resolver import get_lead_mentor, get_mentor_participants
from app.services.time_display import (
    calculate_schedule_times,
    ensure_utc,
    format_email_date,
    format_session_time,
    hours_until,
    is_valid_schedule_time,
    session_end_time,
)

logger = logging.getLogger(__name__)

FOLLOWUP_MIN_HOURS = 20
FOLLOWUP_MAX_HOURS = 28


def get_team_students(session: Session) -> List[Contact]:
    """
    Contacts of the session's team with an email, minus anyone mentoring it.
    """
    team = session.team_record
    if team is None:
        return []
    mentor_ids = {m.contact.id for m in get_mentor_participants(session)}
    return [
        contact
        for contact in team.member_contacts()
        if contact.email and contact.id not in mentor_ids
    ]


def _active_mentor_contacts(session: Session) -> List[Contact]:
    return [m.contact for m in get_mentor_participants(session) if m.contact.email]


def _reminder(
    kind: ReminderKind,
    session: Session,
    contact: Contact,
    role: RecipientRole,
    send_at: datetime,
    other_party_name: str,
) -> ScheduledReminder:
    return ScheduledReminder(
        kind=kind,
        session_id=session.id,
        contact_id=contact.id,
        recipient_email=contact.email,
        recipient_name=contact.full_name or contact.email,
        role=role,
        send_at=send_at,
        session_date=format_email_date(session.scheduled_start),
        session_time=format_session_time(session.scheduled_start),
        other_party_name=other_party_name,
    )


def _names(session: Session) -> tuple[str, str]:
    lead = get_lead_mentor(session)
    mentor_name = (lead.full_name if lead else None) or "your mentor"
    team_name = session.team_name or "the team"
    return mentor_name, team_name


def plan_session_reminders(session: Session, now: datetime) -> ReminderPlan:
    """
    Reminders to schedule for a session.

    - Prep reminders 48h and 24h before the start, for each team student,
      when prep is required.
    - Feedback reminders at the session end, for each team student and
      active mentor, when feedback is required.

    Only send times in the future and at most 30 days ahead are planned;
    the rest are counted as skipped.
    """
    plan = ReminderPlan(session_id=session.id)
    if session.scheduled_start is None:
        return plan
    if session.status in (SessionStatus.CANCELLED, SessionStatus.NO_SHOW):
        return plan

    now = ensure_utc(now)
    times = calculate_schedule_times(session.scheduled_start, session.duration)
    mentor_name, team_name = _names(session)
    students = get_team_students(session)

    def add(kind: ReminderKind, contact: Contact, role: RecipientRole, at: datetime, other: str) -> None:
        if is_valid_schedule_time(at, now):
            plan.reminders.append(_reminder(kind, session, contact, role, at, other))
        else:
            plan.skipped += 1

    if is_prep_required(session):
        for student in students:
            add(ReminderKind.PREP_48H, student, RecipientRole.STUDENT, times.prep_48h, mentor_name)
            add(ReminderKind.PREP_24H, student, RecipientRole.STUDENT, times.prep_24h, mentor_name)

    if is_feedback_required(session):
        for student in students:
            add(
                ReminderKind.FEEDBACK_IMMEDIATE,
                student,
                RecipientRole.STUDENT,
                times.feedback_immediate,
                mentor_name,
            )
        for mentor in _active_mentor_contacts(session):
            add(
                ReminderKind.FEEDBACK_IMMEDIATE,
                mentor,
                RecipientRole.MENTOR,
                times.feedback_immediate,
                team_name,
            )

    return plan


def is_in_followup_window(session: Session, now: datetime) -> bool:
    if session.scheduled_start is None:
        return False
    end = session_end_time(session.scheduled_start, session.duration)
    hours_since_end = -hours_until(end, now)
    return FOLLOWUP_MIN_HOURS <= hours_since_end <= FOLLOWUP_MAX_HOURS


def plan_feedback_followups(sessions: Sequence[Session], now: datetime) -> FollowupRunSummary:
    """
    Follow-up reminders for feedback-eligible sessions that ended 20-28
    hours ago: each active mentor when the session has no mentor feedback,
    and each student who has not left mentee feedback themselves.
    """
    now = ensure_utc(now)
    reminders: List[ScheduledReminder] = []
    in_window = 0

    for session in sessions:
        if not is_eligible_for_feedback(session, now):
            continue
        if not is_in_followup_window(session, now):
            continue
        in_window += 1

        mentor_name, team_name = _names(session)

        if not has_mentor_feedback(session):
            for mentor in _active_mentor_contacts(session):
                reminders.append(
                    _reminder(
                        ReminderKind.FEEDBACK_FOLLOWUP,
                        session,
                        mentor,
                        RecipientRole.MENTOR,
                        now,
                        team_name,
                    )
                )

        for student in get_team_students(session):
            if has_mentee_feedback_from(session, student.id):
                continue
            reminders.append(
                _reminder(
                    ReminderKind.FEEDBACK_FOLLOWUP,
                    session,
                    student,
                    RecipientRole.STUDENT,
                    now,
                    mentor_name,
                )
            )

    logger.info(
        "Feedback follow-ups: %d sessions checked, %d in window, %d reminders",
        len(sessions),
        in_window,
        len(reminders),
    )
    return FollowupRunSummary(
        run_at=now,
        total_sessions=len(sessions),
        sessions_in_window=in_window,
        reminders=reminders,
        count=len(reminders),
    )
