# tests/test_feedback_eligibility.py
from datetime import timedelta

from app.schemas.user import UserType
from app.services.feedback_eligibility import (
    has_mentee_feedback_from,
    has_submitted_prep,
    is_eligible_for_feedback,
    is_eligible_for_prep,
    is_feedback_required,
    is_meeting_link_locked,
    is_prep_required,
    session_needs_feedback,
)
from tests.factories import ADA, ALAN, FIXED_NOW, GRACE, feedback, make_session, mentor, prep, student

NOW = FIXED_NOW


def test_requirement_flags_default_to_required():
    """
    Older records carry no requirePrep / requireFeedback value at all.
    """
    session = make_session()
    assert is_feedback_required(session) is True
    assert is_prep_required(session) is True

    explicit = make_session(requirePrep=False, requireFeedback=False)
    assert is_feedback_required(explicit) is False
    assert is_prep_required(explicit) is False


def test_eligible_when_start_in_past():
    session = make_session(start=NOW - timedelta(hours=2))
    assert is_eligible_for_feedback(session, NOW) is True


def test_not_eligible_for_future_or_unscheduled_sessions():
    assert is_eligible_for_feedback(make_session(start=NOW + timedelta(hours=2)), NOW) is False
    assert is_eligible_for_feedback(make_session(start=None), NOW) is False


def test_completed_is_eligible_even_before_start():
    session = make_session(start=NOW + timedelta(days=1), status="Completed")
    assert is_eligible_for_feedback(session, NOW) is True


def test_cancelled_and_no_show_are_never_eligible():
    for status in ("Cancelled", "No-Show"):
        session = make_session(start=NOW - timedelta(days=1), status=status)
        assert is_eligible_for_feedback(session, NOW) is False


def test_not_eligible_when_feedback_not_required():
    session = make_session(start=NOW - timedelta(days=1), status="Completed", requireFeedback=False)
    assert is_eligible_for_feedback(session, NOW) is False


def test_needs_feedback_depends_on_viewer_side():
    session = make_session(
        start=NOW - timedelta(days=1),
        feedback_records=[feedback("fb1", "Mentor", ADA)],
    )

    assert session_needs_feedback(session, UserType.MENTOR, NOW) is False
    assert session_needs_feedback(session, UserType.STAFF, NOW) is False
    assert session_needs_feedback(session, UserType.STUDENT, NOW) is True


def test_mentee_feedback_from_specific_student():
    session = make_session(
        start=NOW - timedelta(days=1),
        feedback_records=[feedback("fb1", "Mentee", GRACE), feedback("fb2", "Mentor", ALAN)],
    )
    assert has_mentee_feedback_from(session, "recGrace") is True
    # Alan left Mentor-role feedback, which does not count as his mentee feedback.
    assert has_mentee_feedback_from(session, "recAlan") is False


def test_prep_open_until_start():
    upcoming = make_session(start=NOW + timedelta(days=2))
    soon = make_session(start=NOW + timedelta(minutes=20))
    started = make_session(start=NOW - timedelta(minutes=5))
    not_required = make_session(start=NOW + timedelta(days=2), requirePrep=False)

    assert is_eligible_for_prep(upcoming, NOW) is True
    assert is_eligible_for_prep(soon, NOW) is True
    assert is_eligible_for_prep(started, NOW) is False
    assert is_eligible_for_prep(not_required, NOW) is False


def test_meeting_link_locked_for_students_until_prep_submitted():
    session = make_session(prep_records=[prep("prep1", ALAN)])

    assert is_meeting_link_locked(session, student()) is True
    assert is_meeting_link_locked(session, student("alan@student.org", "recAlan")) is False
    assert is_meeting_link_locked(session, mentor()) is False
    assert has_submitted_prep(session, None) is False


def test_meeting_link_never_locked_when_prep_not_required():
    session = make_session(requirePrep=False)
    assert is_meeting_link_locked(session, student()) is False
