# tests/test_mentorship_repository.py
import pytest

from app.schemas.forms import FeedbackCreate, PreMeetingSubmissionCreate
from app.schemas.recurring import MentorAssignment
from app.schemas.session import FeedbackRole, ParticipantRole
from app.services import mentorship_repository as repo
from app.services.baseql_client import BaseQLClientError
from app.services.mentorship_repository import MentorshipRepository
from tests.factories import FakeBaseQLClient, session_record, task_record


@pytest.mark.asyncio
async def test_list_and_get_sessions():
    client = FakeBaseQLClient(sessions=[session_record("s1"), session_record("s2")])
    repository = MentorshipRepository(client)

    sessions = await repository.list_sessions()
    assert [s.id for s in sessions] == ["s1", "s2"]

    session = await repository.get_session("s2")
    assert session.id == "s2"
    assert client.calls_to(repo.SESSION_DETAIL_QUERY) == [{"sessionId": "s2"}]


@pytest.mark.asyncio
async def test_get_missing_session_raises_lookup_error():
    repository = MentorshipRepository(FakeBaseQLClient())

    with pytest.raises(LookupError, match="recNope"):
        await repository.get_session("recNope")


@pytest.mark.asyncio
async def test_update_missing_session_raises_lookup_error():
    repository = MentorshipRepository(FakeBaseQLClient())

    with pytest.raises(LookupError):
        await repository.update_session("recNope", {"agenda": "x"})


@pytest.mark.asyncio
async def test_list_tasks_parses_records():
    client = FakeBaseQLClient(tasks=[task_record("t1", "Draft API contract", due="2025-03-05")])

    tasks = await MentorshipRepository(client).list_tasks()

    assert tasks[0].name == "Draft API contract"
    assert tasks[0].due_date.isoformat() == "2025-03-05"


@pytest.mark.asyncio
async def test_data_provider_errors_propagate():
    client = FakeBaseQLClient()
    client.unavailable = True

    with pytest.raises(BaseQLClientError):
        await MentorshipRepository(client).list_sessions()


@pytest.mark.asyncio
async def test_participant_link_failures_are_skipped():
    class _FlakyLinks(FakeBaseQLClient):
        def _mutation(self, document, variables):
            if document is repo.CREATE_PARTICIPANT_MUTATION and variables["contact"] == ["recLinus"]:
                raise BaseQLClientError("Airtable rejected the link")
            return super()._mutation(document, variables)

    client = _FlakyLinks()
    created = await MentorshipRepository(client).add_session_participants(
        "recSession01",
        [
            MentorAssignment(contact_id="recAda", role=ParticipantRole.LEAD_MENTOR),
            MentorAssignment(contact_id="recLinus"),
        ],
    )

    assert created == 1
    assert client.calls_to(repo.CREATE_PARTICIPANT_MUTATION)[0]["status"] == "Active"


@pytest.mark.asyncio
async def test_prep_submission_links_session_and_respondent():
    client = FakeBaseQLClient()

    stored = await MentorshipRepository(client).create_pre_meeting_submission(
        "recSession01",
        "recGrace",
        PreMeetingSubmissionCreate(questions="How should we price it?"),
    )

    variables = client.calls_to(repo.CREATE_PREP_MUTATION)[0]
    assert variables == {
        "session": ["recSession01"],
        "respondant": ["recGrace"],
        "questions": "How should we price it?",
    }
    assert stored.respondent_record.id == "recGrace"


@pytest.mark.asyncio
async def test_feedback_carries_role_and_drops_empty_fields():
    client = FakeBaseQLClient()

    stored = await MentorshipRepository(client).create_feedback(
        "recSession01",
        None,
        FeedbackRole.MENTOR,
        FeedbackCreate(rating=4, privateNotes="Quiet team"),
    )

    variables = client.calls_to(repo.CREATE_FEEDBACK_MUTATION)[0]
    assert variables == {
        "session": ["recSession01"],
        "role": "Mentor",
        "rating": 4,
        "privateNotes": "Quiet team",
    }
    assert stored.role is FeedbackRole.MENTOR
    assert stored.private_notes == "Quiet team"
