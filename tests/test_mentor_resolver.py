# tests/test_mentor_resolver.py
from app.schemas.session import ParticipantRole
from app.services.mentor_resolver import (
    get_lead_mentor,
    get_mentor_participants,
    is_current_user_mentor,
    is_team_member,
)
from tests.factories import ADA, GRACE, LINUS, contact, make_session, participant

ZOE = contact("recZoe", "zoe Observer", "zoe@mentor.org", "Mentor")


def test_participants_are_lead_first_then_by_name():
    session = make_session(
        participants=[
            participant(ZOE, "Observer"),
            participant(LINUS, "Supporting Mentor"),
            participant(ADA, "Lead Mentor"),
        ]
    )

    mentors = get_mentor_participants(session)

    assert [m.contact.id for m in mentors] == ["recAda", "recLinus", "recZoe"]
    assert mentors[0].is_lead is True
    assert all(not m.legacy for m in mentors)


def test_inactive_mentees_and_roleless_rows_are_excluded():
    session = make_session(
        participants=[
            participant(ADA, "Lead Mentor"),
            participant(LINUS, "Supporting Mentor", status="Declined"),
            participant(ZOE, "Observer", status="No-Show"),
            participant(GRACE, "Mentee"),
            {"id": "sp-norole", "role": None, "status": "Active", "contact": [LINUS]},
        ]
    )

    assert [m.contact.id for m in get_mentor_participants(session)] == ["recAda"]


def test_invited_participants_still_count_as_mentors():
    session = make_session(participants=[participant(LINUS, "Supporting Mentor", status="Invited")])
    assert [m.contact.id for m in get_mentor_participants(session)] == ["recLinus"]


def test_legacy_mentor_field_used_when_no_participants():
    session = make_session(participants=[], mentors=[ADA, LINUS])

    mentors = get_mentor_participants(session)

    assert [m.contact.id for m in mentors] == ["recAda", "recLinus"]
    assert mentors[0].role is ParticipantRole.LEAD_MENTOR
    assert mentors[0].is_lead is True
    assert mentors[1].role is ParticipantRole.SUPPORTING_MENTOR
    assert all(m.legacy for m in mentors)


def test_legacy_fallback_when_every_participant_is_inactive():
    session = make_session(
        participants=[participant(LINUS, "Lead Mentor", status="Cancelled")],
        mentors=[ADA],
    )
    assert [m.contact.id for m in get_mentor_participants(session)] == ["recAda"]


def test_no_mentors_at_all():
    session = make_session(participants=[], mentors=None)
    assert get_mentor_participants(session) == []
    assert get_lead_mentor(session) is None


def test_lead_mentor_falls_back_to_first_mentor():
    session = make_session(participants=[participant(LINUS, "Supporting Mentor")])
    assert get_lead_mentor(session).id == "recLinus"


def test_current_user_mentor_is_case_insensitive():
    session = make_session(participants=[participant(ADA, "Lead Mentor")])

    assert is_current_user_mentor(session, "ADA@Mentor.org") is True
    assert is_current_user_mentor(session, "someone@else.org") is False
    assert is_current_user_mentor(session, None) is False


def test_current_user_mentor_requires_active_participation():
    session = make_session(
        participants=[
            participant(ADA, "Lead Mentor", status="Declined"),
            participant(LINUS, "Supporting Mentor", status=None),
        ]
    )
    assert is_current_user_mentor(session, ADA["email"]) is False
    assert is_current_user_mentor(session, LINUS["email"]) is True


def test_current_user_mentor_ignores_mentee_rows():
    session = make_session(participants=[participant(GRACE, "Mentee")])
    assert is_current_user_mentor(session, GRACE["email"]) is False


def test_current_user_mentor_uses_legacy_field_without_participants():
    session = make_session(participants=[], mentors=[ADA])
    assert is_current_user_mentor(session, ADA["email"]) is True


def test_team_membership():
    session = make_session()
    assert is_team_member(session, "GRACE@student.org") is True
    assert is_team_member(session, ADA["email"]) is False
