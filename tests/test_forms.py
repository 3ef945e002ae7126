# tests/test_forms.py
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from app.schemas.forms import FeedbackCreate, PreMeetingSubmissionCreate, SessionUpdate
from app.schemas.recurring import MentorAssignment, SeriesConfig
from app.schemas.session import ParticipantRole, Requirement, Session


def test_session_update_sends_only_set_fields():
    update = SessionUpdate(status="Cancelled", agenda="Moved online")
    assert update.to_mutation_fields() == {"status": "Cancelled", "agenda": "Moved online"}


def test_session_update_normalizes_start_to_utc_string():
    eastern = timezone(timedelta(hours=-5))
    update = SessionUpdate(scheduledStart=datetime(2025, 3, 4, 12, 0, tzinfo=eastern))
    assert update.to_mutation_fields() == {"scheduledStart": "2025-03-04T17:00:00Z"}


def test_session_update_validates_meeting_url_and_duration():
    with pytest.raises(ValidationError):
        SessionUpdate(meeting_url="not a url")
    with pytest.raises(ValidationError):
        SessionUpdate(meeting_url="ftp://files.example.org/deck")
    with pytest.raises(ValidationError):
        SessionUpdate(duration=0)
    with pytest.raises(ValidationError):
        SessionUpdate(status="Postponed")

    # Clearing the link is allowed.
    assert SessionUpdate(meeting_url="").to_mutation_fields() == {"meetingUrl": ""}


def test_prep_requires_at_least_one_field():
    with pytest.raises(ValidationError, match="at least one preparation field"):
        PreMeetingSubmissionCreate(agenda_items="  ", questions="")

    assert PreMeetingSubmissionCreate(questions="How do we scope the MVP?").questions


def test_prep_materials_must_be_links():
    ok = PreMeetingSubmissionCreate(materials_links="https://a.example.org/deck\n\nhttp://b.example.org/doc")
    assert ok.materials_links.startswith("https://")

    with pytest.raises(ValidationError, match="materials link"):
        PreMeetingSubmissionCreate(materials_links="https://a.example.org\nmy notes")


@pytest.mark.parametrize("rating", [0, 6])
def test_feedback_rating_range(rating):
    with pytest.raises(ValidationError):
        FeedbackCreate(rating=rating)


def test_feedback_rating_is_required():
    with pytest.raises(ValidationError):
        FeedbackCreate(what_went_well="Great session")

    body = FeedbackCreate(rating=5, contentRelevance=4, requestFollowUp=True)
    assert body.model_dump(by_alias=True, exclude_none=True) == {
        "rating": 5,
        "contentRelevance": 4,
        "requestFollowUp": True,
    }


def test_series_config_needs_a_lead_mentor():
    with pytest.raises(ValidationError, match="Lead Mentor"):
        SeriesConfig(
            session_type="Office Hours",
            team_id="recTeam",
            mentors=[MentorAssignment(contact_id="recLinus")],
        )


def test_mentor_assignment_rejects_mentee_role():
    with pytest.raises(ValidationError):
        MentorAssignment(contact_id="recGrace", role=ParticipantRole.MENTEE)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, Requirement.UNSPECIFIED),
        (True, Requirement.REQUIRED),
        (False, Requirement.NOT_REQUIRED),
        ("true", Requirement.REQUIRED),
    ],
)
def test_requirement_flags_are_tri_state(raw, expected):
    session = Session.model_validate({"id": "rec1", "requirePrep": raw})
    assert session.require_prep is expected


def test_session_parses_null_links_and_airtable_spelling():
    session = Session.model_validate(
        {
            "id": "rec1",
            "scheduledStart": "2025-03-04T17:00:00.000Z",
            "team": None,
            "feedback": [{"id": "fb1", "role": "Mentee", "respondant": [{"id": "recGrace"}], "unknownColumn": 1}],
        }
    )
    assert session.team == []
    assert session.feedback[0].respondent_record.id == "recGrace"
    assert session.scheduled_start.tzinfo is not None
