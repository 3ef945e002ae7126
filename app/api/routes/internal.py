# app/api/routes/internal.py
import logging
from datetime import datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path

from app.api.dependencies.clock import get_now
from app.api.dependencies.internal_auth import verify_internal_api_key
from app.api.dependencies.repository import get_repository
from app.schemas.notification import FollowupRunSummary, ReminderPlan
from app.services.baseql_client import BaseQLClientError
from app.services.mentorship_repository import MentorshipRepository
from app.services.notification_planner import plan_feedback_followups, plan_session_reminders

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/run-feedback-followups",
    response_model=FollowupRunSummary,
    response_model_by_alias=True,
    status_code=HTTPStatus.OK,
    summary="Plan feedback follow-up reminders",
    description=(
        "Scans all sessions and returns the follow-up reminders due now for "
        "sessions that ended between 20 and 28 hours ago.\n\n"
        "This endpoint is intended to be called from a cron job or scheduler once "
        "a day and is protected via the `X-Internal-Api-Key` header when configured. "
        "Delivering the reminders is left to the caller."
    ),
    responses={
        200: {
            "description": "Follow-up run completed. A summary is returned.",
            "content": {
                "application/json": {
                    "example": {
                        "runAt": "2025-03-05T18:00:00Z",
                        "totalSessions": 42,
                        "sessionsInWindow": 1,
                        "count": 1,
                        "reminders": [
                            {
                                "kind": "feedback-followup",
                                "sessionId": "recSession01",
                                "contactId": "recMentor01",
                                "recipientEmail": "mentor@example.org",
                                "recipientName": "Dana Mentor",
                                "role": "mentor",
                                "sendAt": "2025-03-05T18:00:00Z",
                                "sessionDate": "Tuesday, March 4, 2025",
                                "sessionTime": "12:00 PM ET",
                                "otherPartyName": "Team Alpha",
                            }
                        ],
                    }
                }
            },
        },
        401: {"description": "Missing or invalid internal API key (if configured)."},
        502: {"description": "Data provider unavailable."},
    },
)
async def run_feedback_followups(
    repository: MentorshipRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
) -> FollowupRunSummary:
    """
    Daily follow-up sweep. Mentors are reminded when their session has no
    mentor feedback; each student is reminded until they leave their own.
    """
    try:
        sessions = await repository.list_sessions()
    except BaseQLClientError as exc:
        logger.error("Feedback follow-up run could not load sessions: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Data provider error while loading sessions.",
        ) from exc

    return plan_feedback_followups(sessions, now)


@router.get(
    "/sessions/{session_id}/reminder-plan",
    response_model=ReminderPlan,
    response_model_by_alias=True,
    summary="Reminders to schedule for one session",
    description=(
        "Prep reminders (48h and 24h before the start) and immediate feedback "
        "reminders (at the session end) for the session's students and mentors. "
        "Send times in the past or more than 30 days ahead are skipped."
    ),
    responses={
        200: {"description": "Reminder plan computed."},
        401: {"description": "Missing or invalid internal API key (if configured)."},
        404: {"description": "Session not found."},
    },
)
async def session_reminder_plan(
    session_id: str = Path(...),
    repository: MentorshipRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
) -> ReminderPlan:
    try:
        session = await repository.get_session(session_id)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc)) from exc
    except BaseQLClientError as exc:
        logger.error("Reminder plan could not load session %s: %s", session_id, exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Data provider error while loading the session.",
        ) from exc

    return plan_session_reminders(session, now)
