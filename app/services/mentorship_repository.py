# app/services/mentorship_repository.py
"""
Data access for sessions and tasks through the BaseQL GraphQL proxy.

Every method issues one request (or one per record for batch mutations),
parses the response into pydantic records at this boundary and lets
BaseQLClientError propagate to the caller.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from app.schemas.forms import FeedbackCreate, PreMeetingSubmissionCreate
from app.schemas.recurring import MentorAssignment
from app.schemas.session import FeedbackRole, PreMeetingSubmission, Session, SessionFeedback
from app.schemas.task import Task
from app.services.baseql_client import BaseQLClient, BaseQLClientError

logger = logging.getLogger(__name__)

CONTACT_FIELDS = """
    id
    fullName
    email
    type
"""

SESSION_FIELDS = f"""
    id
    sessionType
    scheduledStart
    duration
    status
    meetingPlatform
    meetingUrl
    agenda
    requirePrep
    requireFeedback
    seriesId
    rrule
    seriesConfig
    mentor {{ {CONTACT_FIELDS} }}
    sessionParticipants {{
        id
        role
        status
        contact {{ {CONTACT_FIELDS} }}
    }}
    team {{
        id
        teamName
        members(_filter: {{ status: {{_eq: "Active"}} }}) {{
            id
            status
            type
            contact {{ {CONTACT_FIELDS} }}
        }}
    }}
    feedback {{
        id
        role
        rating
        contentRelevance
        actionabilityOfAdvice
        mentorPreparedness
        menteeEngagement
        whatWentWell
        areasForImprovement
        additionalNeeds
        requestFollowUp
        suggestedNextSteps
        privateNotes
        submitted
        respondant {{ {CONTACT_FIELDS} }}
    }}
    preMeetingSubmissions {{
        id
        agendaItems
        questions
        topicsToDiscuss
        materialsLinks
        submitted
        respondant {{ {CONTACT_FIELDS} }}
    }}
    tasks {{
        id
        name
        status
        dueDate
    }}
"""

TASK_FIELDS = f"""
    id
    name
    description
    priority
    status
    levelOfEffort
    dueDate
    created
    assignedTo {{ {CONTACT_FIELDS} }}
    team {{
        id
        teamName
        members(_filter: {{ status: {{_eq: "Active"}} }}) {{
            id
            status
            contact {{ {CONTACT_FIELDS} }}
        }}
    }}
    session {{
        id
        sessionType
        scheduledStart
        status
        mentor {{ {CONTACT_FIELDS} }}
        sessionParticipants {{
            id
            role
            status
            contact {{ {CONTACT_FIELDS} }}
        }}
    }}
    updates {{
        id
        health
        message
        created
        author {{ {CONTACT_FIELDS} }}
    }}
"""

ALL_SESSIONS_QUERY = f"""
query AllSessions {{
    sessions(_order_by: {{ scheduledStart: "desc" }}) {{ {SESSION_FIELDS} }}
}}
"""

SESSION_DETAIL_QUERY = f"""
query SessionDetail($sessionId: String!) {{
    sessions(_filter: {{ id: {{_eq: $sessionId}} }}) {{ {SESSION_FIELDS} }}
}}
"""

SERIES_SESSIONS_QUERY = f"""
query SeriesSessions($seriesId: String!) {{
    sessions(
        _filter: {{ seriesId: {{_eq: $seriesId}} }}
        _order_by: {{ scheduledStart: "asc" }}
    ) {{ {SESSION_FIELDS} }}
}}
"""

ALL_TASKS_QUERY = f"""
query AllTasks {{
    tasks(_order_by: {{ created: "desc" }}) {{ {TASK_FIELDS} }}
}}
"""

CREATE_SESSION_MUTATION = """
mutation CreateSession(
    $sessionType: String!
    $scheduledStart: String!
    $duration: Float
    $mentor: [String!]!
    $team: [String!]!
    $cohort: [String!]
    $location: [String!]
    $meetingPlatform: String
    $meetingUrl: String
    $agenda: String
    $status: String
    $requirePrep: Boolean
    $requireFeedback: Boolean
    $seriesId: String
    $rrule: String
    $seriesConfig: String
) {
    insert_sessions(
        sessionType: $sessionType
        scheduledStart: $scheduledStart
        duration: $duration
        mentor: $mentor
        team: $team
        cohort: $cohort
        location: $location
        meetingPlatform: $meetingPlatform
        meetingUrl: $meetingUrl
        agenda: $agenda
        status: $status
        requirePrep: $requirePrep
        requireFeedback: $requireFeedback
        seriesId: $seriesId
        rrule: $rrule
        seriesConfig: $seriesConfig
    ) {
        id
        scheduledStart
    }
}
"""

UPDATE_SESSION_MUTATION = f"""
mutation UpdateSession(
    $id: String!
    $sessionType: String
    $scheduledStart: String
    $duration: Float
    $status: String
    $meetingPlatform: String
    $meetingUrl: String
    $agenda: String
    $requirePrep: Boolean
    $requireFeedback: Boolean
) {{
    update_sessions(
        id: $id
        sessionType: $sessionType
        scheduledStart: $scheduledStart
        duration: $duration
        status: $status
        meetingPlatform: $meetingPlatform
        meetingUrl: $meetingUrl
        agenda: $agenda
        requirePrep: $requirePrep
        requireFeedback: $requireFeedback
    ) {{ {SESSION_FIELDS} }}
}}
"""

DELETE_SESSION_MUTATION = """
mutation DeleteSession($id: String!) {
    delete_sessions(id: $id) {
        id
    }
}
"""

CREATE_PARTICIPANT_MUTATION = """
mutation CreateSessionParticipant(
    $session: [String!]!
    $contact: [String!]!
    $role: String!
    $status: String
) {
    insert_sessionParticipants(
        session: $session
        contact: $contact
        role: $role
        status: $status
    ) {
        id
    }
}
"""

CREATE_PREP_MUTATION = f"""
mutation CreatePreMeetingSubmission(
    $session: [String!]!
    $respondant: [String!]!
    $agendaItems: String
    $questions: String
    $topicsToDiscuss: String
    $materialsLinks: String
) {{
    insert_preMeetingSubmissions(
        session: $session
        respondant: $respondant
        agendaItems: $agendaItems
        questions: $questions
        topicsToDiscuss: $topicsToDiscuss
        materialsLinks: $materialsLinks
    ) {{
        id
        agendaItems
        questions
        topicsToDiscuss
        materialsLinks
        submitted
        respondant {{ {CONTACT_FIELDS} }}
    }}
}}
"""

CREATE_FEEDBACK_MUTATION = f"""
mutation CreateSessionFeedback(
    $session: [String!]!
    $respondant: [String!]
    $role: String
    $rating: Float
    $contentRelevance: Float
    $actionabilityOfAdvice: Float
    $mentorPreparedness: Float
    $menteeEngagement: Float
    $whatWentWell: String
    $areasForImprovement: String
    $additionalNeeds: String
    $requestFollowUp: Boolean
    $suggestedNextSteps: String
    $privateNotes: String
) {{
    insert_sessionFeedback(
        session: $session
        respondant: $respondant
        role: $role
        rating: $rating
        contentRelevance: $contentRelevance
        actionabilityOfAdvice: $actionabilityOfAdvice
        mentorPreparedness: $mentorPreparedness
        menteeEngagement: $menteeEngagement
        whatWentWell: $whatWentWell
        areasForImprovement: $areasForImprovement
        additionalNeeds: $additionalNeeds
        requestFollowUp: $requestFollowUp
        suggestedNextSteps: $suggestedNextSteps
        privateNotes: $privateNotes
    ) {{
        id
        role
        rating
        contentRelevance
        actionabilityOfAdvice
        mentorPreparedness
        menteeEngagement
        whatWentWell
        areasForImprovement
        additionalNeeds
        requestFollowUp
        suggestedNextSteps
        privateNotes
        submitted
        respondant {{ {CONTACT_FIELDS} }}
    }}
}}
"""


def _single(payload: Any) -> Dict[str, Any]:
    # BaseQL returns either an object or a one-element list for inserts.
    if isinstance(payload, list):
        return payload[0] if payload else {}
    return payload or {}


def _without_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class MentorshipRepository:
    """
    Sessions, tasks, participants, prep and feedback as stored in Airtable.
    """

    def __init__(self, client: BaseQLClient) -> None:
        self._client = client

    # -- sessions -------------------------------------------------------------

    async def list_sessions(self) -> List[Session]:
        data = await self._client.query(ALL_SESSIONS_QUERY)
        return [Session.model_validate(raw) for raw in data.get("sessions") or []]

    async def get_session(self, session_id: str) -> Session:
        """
        Raises LookupError when no session has this id.
        """
        data = await self._client.query(SESSION_DETAIL_QUERY, {"sessionId": session_id})
        sessions = data.get("sessions") or []
        if not sessions:
            raise LookupError(f"Session '{session_id}' not found.")
        return Session.model_validate(sessions[0])

    async def list_series_sessions(self, series_id: str) -> List[Session]:
        data = await self._client.query(SERIES_SESSIONS_QUERY, {"seriesId": series_id})
        return [Session.model_validate(raw) for raw in data.get("sessions") or []]

    async def create_session(self, fields: Dict[str, Any]) -> str:
        """
        Insert one session and return its record id.
        """
        data = await self._client.mutate(CREATE_SESSION_MUTATION, _without_none(fields))
        created = _single(data.get("insert_sessions"))
        if not created.get("id"):
            raise BaseQLClientError("BaseQL did not return an id for the created session")
        return created["id"]

    async def add_session_participants(
        self,
        session_id: str,
        mentors: List[MentorAssignment],
    ) -> int:
        """
        Link mentors to a session. Returns how many links were created; a
        failing link is logged and skipped.
        """
        created = 0
        for mentor in mentors:
            try:
                await self._client.mutate(
                    CREATE_PARTICIPANT_MUTATION,
                    {
                        "session": [session_id],
                        "contact": [mentor.contact_id],
                        "role": mentor.role.value,
                        "status": "Active",
                    },
                )
                created += 1
            except BaseQLClientError:
                logger.exception(
                    "add_session_participants failed session=%s contact=%s",
                    session_id,
                    mentor.contact_id,
                )
        return created

    async def update_session(self, session_id: str, fields: Dict[str, Any]) -> Session:
        data = await self._client.mutate(UPDATE_SESSION_MUTATION, {"id": session_id, **fields})
        updated = _single(data.get("update_sessions"))
        if not updated:
            raise LookupError(f"Session '{session_id}' not found.")
        return Session.model_validate(updated)

    async def delete_session(self, session_id: str) -> None:
        await self._client.mutate(DELETE_SESSION_MUTATION, {"id": session_id})

    async def delete_sessions(self, session_ids: List[str]) -> int:
        """
        Delete sessions one by one. Returns how many were deleted; failures
        are logged and the rest continue.
        """
        deleted = 0
        for session_id in session_ids:
            try:
                await self.delete_session(session_id)
                deleted += 1
            except BaseQLClientError:
                logger.exception("delete_sessions failed session=%s", session_id)
        return deleted

    # -- prep & feedback ------------------------------------------------------

    async def create_pre_meeting_submission(
        self,
        session_id: str,
        respondent_id: str,
        body: PreMeetingSubmissionCreate,
    ) -> PreMeetingSubmission:
        variables = {
            "session": [session_id],
            "respondant": [respondent_id],
            **body.model_dump(by_alias=True, exclude_none=True),
        }
        data = await self._client.mutate(CREATE_PREP_MUTATION, variables)
        return PreMeetingSubmission.model_validate(_single(data.get("insert_preMeetingSubmissions")))

    async def create_feedback(
        self,
        session_id: str,
        respondent_id: Optional[str],
        role: FeedbackRole,
        body: FeedbackCreate,
    ) -> SessionFeedback:
        variables = {
            "session": [session_id],
            "respondant": [respondent_id] if respondent_id else None,
            "role": role.value,
            **body.model_dump(by_alias=True, exclude_none=True),
        }
        data = await self._client.mutate(CREATE_FEEDBACK_MUTATION, _without_none(variables))
        return SessionFeedback.model_validate(_single(data.get("insert_sessionFeedback")))

    # -- tasks ----------------------------------------------------------------

    async def list_tasks(self) -> List[Task]:
        data = await self._client.query(ALL_TASKS_QUERY)
        return [Task.model_validate(raw) for raw in data.get("tasks") or []]
