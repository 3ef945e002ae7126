# app/api/routes/sessions.py
import logging
from datetime import datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from app.api.dependencies.clock import get_now
from app.api.dependencies.repository import get_repository
from app.api.dependencies.user_context import get_user_context
from app.schemas.forms import FeedbackCreate, PreMeetingSubmissionCreate, SessionUpdate
from app.schemas.recurring import (
    RecurrencePreview,
    RecurrencePreviewRequest,
    RecurringSessionInput,
    RecurringSessionResult,
    SeriesInfo,
    SeriesMutationResult,
    SeriesScope,
    SeriesUpdateRequest,
)
from app.schemas.session import FeedbackRole, PreMeetingSubmission, Session, SessionFeedback
from app.schemas.user import UserContext, UserType
from app.schemas.views import SessionDetail, SessionListResponse
from app.services.baseql_client import BaseQLClientError
from app.services.feedback_eligibility import has_submitted_prep, is_eligible_for_prep
from app.services.list_pipeline import SortDirection
from app.services.mentor_resolver import is_team_member
from app.services.mentorship_repository import MentorshipRepository
from app.services.permissions import (
    Action,
    Entity,
    can_add_feedback,
    can_read_session,
    has_permission,
    redact_feedback,
    redact_session,
)
from app.services.recurrence import (
    RecurrenceConfigError,
    config_to_rrule,
    describe_recurrence,
    generate_occurrences,
)
from app.services.series_operations import (
    create_recurring_sessions,
    delete_series_sessions,
    get_series_info,
    update_series_sessions,
)
from app.services.session_pipeline import SessionFilter, SessionGroupBy, SessionSort
from app.services.session_view import build_session_detail, build_session_list

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


def _upstream_failure(action: str, exc: BaseQLClientError) -> HTTPException:
    logger.error("%s failed against BaseQL: %s", action, exc)
    return HTTPException(
        status_code=HTTPStatus.BAD_GATEWAY,
        detail=f"Data provider error while trying to {action}.",
    )


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=HTTPStatus.FORBIDDEN, detail=detail)


def _require(user: UserContext, action: Action) -> None:
    if not has_permission(user.user_type, Entity.SESSION, action):
        raise _forbidden(f"{user.user_type.value.capitalize()} users cannot {action.value} sessions.")


async def _load_session(repository: MentorshipRepository, session_id: str) -> Session:
    try:
        return await repository.get_session(session_id)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc)) from exc
    except BaseQLClientError as exc:
        raise _upstream_failure("load the session", exc) from exc


# -- recurring series ---------------------------------------------------------


@router.post(
    "/recurring/preview",
    response_model=RecurrencePreview,
    response_model_by_alias=True,
    summary="Preview the occurrences of a recurring series",
    description=(
        "Expand a recurrence pattern without creating anything.\n\n"
        "Returns every occurrence start (UTC), the RRULE that will be stored on "
        "the parent session and a human-readable description such as "
        "`Weekly for 12 sessions`."
    ),
    responses={
        200: {
            "description": "Occurrences computed.",
            "content": {
                "application/json": {
                    "example": {
                        "occurrences": ["2025-03-04T17:00:00Z", "2025-03-11T17:00:00Z"],
                        "count": 2,
                        "rrule": "FREQ=WEEKLY;COUNT=2",
                        "description": "Weekly for 2 sessions",
                    }
                }
            },
        },
        400: {"description": "Invalid recurrence pattern."},
        403: {"description": "Only staff can create sessions."},
    },
)
async def preview_recurrence(
    payload: RecurrencePreviewRequest,
    user: UserContext = Depends(get_user_context),
) -> RecurrencePreview:
    _require(user, Action.CREATE)
    try:
        occurrences = generate_occurrences(payload.scheduled_start, payload.recurrence)
        rrule = config_to_rrule(payload.scheduled_start, payload.recurrence)
    except RecurrenceConfigError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    return RecurrencePreview(
        occurrences=occurrences,
        count=len(occurrences),
        rrule=rrule,
        description=describe_recurrence(payload.recurrence),
    )


@router.post(
    "/recurring",
    response_model=RecurringSessionResult,
    response_model_by_alias=True,
    status_code=HTTPStatus.CREATED,
    summary="Create a recurring session series",
    description=(
        "Create every occurrence of a series sharing one `seriesId`.\n\n"
        "- The first session stores the RRULE and the JSON series template.\n"
        "- All listed mentors are linked to each session.\n"
        "- Occurrences the data provider refuses are counted in `failed`; "
        "the others are still created."
    ),
    responses={
        201: {"description": "Series created (possibly partially, see `failed`)."},
        400: {"description": "Start not in the future or invalid recurrence pattern."},
        403: {"description": "Only staff can create sessions."},
    },
)
async def create_recurring(
    payload: RecurringSessionInput,
    user: UserContext = Depends(get_user_context),
    repository: MentorshipRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
) -> RecurringSessionResult:
    _require(user, Action.CREATE)
    try:
        return await create_recurring_sessions(repository, payload, now)
    except RecurrenceConfigError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc


@router.get(
    "/series/{series_id}",
    response_model=SeriesInfo,
    response_model_by_alias=True,
    summary="Summary of a session series",
    responses={
        200: {"description": "Series found."},
        404: {"description": "No session carries this series id."},
    },
)
async def read_series(
    series_id: str = Path(..., description="Series identifier shared by all its sessions."),
    user: UserContext = Depends(get_user_context),
    repository: MentorshipRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
) -> SeriesInfo:
    try:
        sessions = await repository.list_series_sessions(series_id)
    except BaseQLClientError as exc:
        raise _upstream_failure("load the series", exc) from exc

    visible = [s for s in sessions if can_read_session(user, s)]
    if not visible:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=f"Series '{series_id}' not found.")
    return get_series_info(series_id, visible, now)


@router.patch(
    "/series/{series_id}",
    response_model=SeriesMutationResult,
    response_model_by_alias=True,
    summary="Update sessions of a series",
    description=(
        "Apply the same field updates to one session (`single`), to a session and "
        "every later one (`future`) or to the whole series (`all`). A new "
        "`scheduledStart` on a `future`/`all` edit moves every session by the same offset."
    ),
    responses={
        200: {"description": "Sessions updated; `affectedCount` counts successes."},
        400: {"description": "A new start cannot be applied to the series from a session without one."},
        403: {"description": "Only staff can update sessions."},
        404: {"description": "Unknown series, or session not part of it."},
    },
)
async def update_series(
    payload: SeriesUpdateRequest,
    series_id: str = Path(...),
    user: UserContext = Depends(get_user_context),
    repository: MentorshipRepository = Depends(get_repository),
) -> SeriesMutationResult:
    _require(user, Action.UPDATE)
    try:
        return await update_series_sessions(
            repository, series_id, payload.session_id, payload.updates, payload.scope
        )
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    except BaseQLClientError as exc:
        raise _upstream_failure("update the series", exc) from exc


@router.delete(
    "/series/{series_id}",
    response_model=SeriesMutationResult,
    response_model_by_alias=True,
    summary="Delete sessions of a series",
    responses={
        200: {"description": "Sessions deleted; `affectedCount` counts successes."},
        403: {"description": "Only staff can delete sessions."},
        404: {"description": "Unknown series, or session not part of it."},
    },
)
async def delete_series(
    series_id: str = Path(...),
    session_id: str = Query(..., description="Session the delete was started from."),
    scope: SeriesScope = Query(SeriesScope.SINGLE),
    user: UserContext = Depends(get_user_context),
    repository: MentorshipRepository = Depends(get_repository),
) -> SeriesMutationResult:
    _require(user, Action.DELETE)
    try:
        return await delete_series_sessions(repository, series_id, session_id, scope)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc)) from exc
    except BaseQLClientError as exc:
        raise _upstream_failure("delete the series", exc) from exc


# -- sessions -----------------------------------------------------------------


@router.get(
    "",
    response_model=SessionListResponse,
    response_model_by_alias=True,
    summary="List sessions visible to the caller",
    description=(
        "Sessions the caller may read, run through search, filter, sort and group "
        "(in that order).\n\n"
        "- Staff see all sessions, mentors the sessions they mentor, students the "
        "sessions of their team.\n"
        "- `stats` are computed over every visible session, before search/filter.\n"
        "- Feedback is redacted for the caller."
    ),
    responses={
        200: {"description": "Grouped session list."},
        401: {"description": "Missing identity headers."},
        502: {"description": "Data provider unavailable."},
    },
)
async def list_sessions(
    search: str | None = Query(None, description="Free-text search (at least 2 characters)."),
    session_filter: SessionFilter = Query(SessionFilter.ALL, alias="filter"),
    sort: SessionSort = Query(SessionSort.DATE),
    direction: SortDirection = Query(SortDirection.ASC),
    group_by: SessionGroupBy = Query(SessionGroupBy.NONE, alias="groupBy"),
    user: UserContext = Depends(get_user_context),
    repository: MentorshipRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
) -> SessionListResponse:
    try:
        sessions = await repository.list_sessions()
    except BaseQLClientError as exc:
        raise _upstream_failure("list sessions", exc) from exc

    return build_session_list(
        sessions,
        user=user,
        now=now,
        search=search,
        session_filter=session_filter,
        sort=sort,
        direction=direction,
        group_by=group_by,
    )


@router.get(
    "/{session_id}",
    response_model=SessionDetail,
    response_model_by_alias=True,
    summary="Session detail for the caller",
    description=(
        "One session with its derived phase, timing, mentors, eligibility flags, "
        "default tab and the caller's capabilities. Sessions in a series also "
        "report their position (e.g. 3 of 12)."
    ),
    responses={
        200: {"description": "Session found."},
        403: {"description": "The caller cannot see this session."},
        404: {"description": "Session not found."},
    },
)
async def read_session(
    session_id: str = Path(..., examples=["recSession01"]),
    user: UserContext = Depends(get_user_context),
    repository: MentorshipRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
) -> SessionDetail:
    session = await _load_session(repository, session_id)
    if not can_read_session(user, session):
        raise _forbidden("You do not have access to this session.")

    series_sessions: list[Session] = []
    if session.series_id:
        try:
            series_sessions = await repository.list_series_sessions(session.series_id)
        except BaseQLClientError:
            # Position is optional; the detail still renders without it.
            logger.warning("Could not load series %s for session %s", session.series_id, session_id)

    return build_session_detail(session, user, now, series_sessions)


@router.patch(
    "/{session_id}",
    response_model=Session,
    response_model_by_alias=True,
    summary="Update a session",
    responses={
        200: {"description": "Session updated."},
        403: {"description": "Only staff can update sessions."},
        404: {"description": "Session not found."},
        422: {"description": "Invalid field values."},
    },
)
async def update_session(
    payload: SessionUpdate,
    session_id: str = Path(...),
    user: UserContext = Depends(get_user_context),
    repository: MentorshipRepository = Depends(get_repository),
) -> Session:
    _require(user, Action.UPDATE)
    fields = payload.to_mutation_fields()
    if not fields:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="No fields to update.")

    try:
        updated = await repository.update_session(session_id, fields)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc)) from exc
    except BaseQLClientError as exc:
        raise _upstream_failure("update the session", exc) from exc

    logger.info("Session %s updated by %s: %s", session_id, user.email, sorted(fields))
    return redact_session(updated, user)


@router.post(
    "/{session_id}/prep",
    response_model=PreMeetingSubmission,
    response_model_by_alias=True,
    status_code=HTTPStatus.CREATED,
    summary="Submit pre-meeting preparation",
    description=(
        "Students of the session's team submit their preparation before the "
        "session starts, when the session requires it. Submitting unlocks the "
        "meeting link for that student."
    ),
    responses={
        201: {"description": "Preparation stored."},
        400: {"description": "Prep not required, already submitted, or the session has started."},
        403: {"description": "Only students of the session's team can submit prep."},
        404: {"description": "Session not found."},
    },
)
async def submit_prep(
    payload: PreMeetingSubmissionCreate,
    session_id: str = Path(...),
    user: UserContext = Depends(get_user_context),
    repository: MentorshipRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
) -> PreMeetingSubmission:
    if user.user_type is not UserType.STUDENT or not user.contact_id:
        raise _forbidden("Only students can submit session preparation.")

    session = await _load_session(repository, session_id)
    if not is_team_member(session, user.email):
        raise _forbidden("You are not a member of this session's team.")
    if not is_eligible_for_prep(session, now):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Preparation is not open for this session.",
        )
    if has_submitted_prep(session, user.contact_id):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Preparation already submitted.",
        )

    try:
        return await repository.create_pre_meeting_submission(session_id, user.contact_id, payload)
    except BaseQLClientError as exc:
        raise _upstream_failure("store the preparation", exc) from exc


@router.post(
    "/{session_id}/feedback",
    response_model=SessionFeedback,
    response_model_by_alias=True,
    status_code=HTTPStatus.CREATED,
    summary="Submit session feedback",
    description=(
        "Feedback opens once the session has started (or is Completed) and stays "
        "open until the feedback for the caller's side has been given.\n\n"
        "Students submit mentee feedback; mentors and staff submit mentor feedback."
    ),
    responses={
        201: {"description": "Feedback stored."},
        403: {"description": "The caller cannot add feedback to this session right now."},
        404: {"description": "Session not found."},
    },
)
async def submit_feedback(
    payload: FeedbackCreate,
    session_id: str = Path(...),
    user: UserContext = Depends(get_user_context),
    repository: MentorshipRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
) -> SessionFeedback:
    session = await _load_session(repository, session_id)
    if not can_add_feedback(user, session, now):
        raise _forbidden("Feedback cannot be added to this session.")

    role = FeedbackRole.MENTEE if user.user_type is UserType.STUDENT else FeedbackRole.MENTOR
    try:
        created = await repository.create_feedback(session_id, user.contact_id, role, payload)
    except BaseQLClientError as exc:
        raise _upstream_failure("store the feedback", exc) from exc

    logger.info(
        "%s feedback stored for session %s by %s",
        role.value,
        session_id,
        user.email,
    )
    return redact_feedback(created, user)
