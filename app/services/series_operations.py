# app/services/series_operations.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from pydantic import ValidationError

from app.schemas.forms import SessionUpdate
from app.schemas.recurring import (
    CreatedOccurrence,
    RecurringSessionInput,
    RecurringSessionResult,
    SeriesConfig,
    SeriesInfo,
    SeriesMutationResult,
    SeriesScope,
)
from app.schemas.session import Session, SessionStatus
from app.schemas.views import SeriesPosition
from app.services.baseql_client import BaseQLClientError
from app.services.mentorship_repository import MentorshipRepository
from app.services.recurrence import RecurrenceConfigError, config_to_rrule, generate_occurrences
from app.services.time_display import ensure_utc

logger = logging.getLogger(__name__)


def generate_series_id() -> str:
    return str(uuid.uuid4())


def _start_key(session: Session) -> datetime:
    # Unscheduled rows sort after every dated row.
    return session.scheduled_start or datetime.max.replace(tzinfo=timezone.utc)


def sort_by_start(sessions: Sequence[Session]) -> List[Session]:
    return sorted(sessions, key=_start_key)


def select_series_sessions(
    sessions: Sequence[Session],
    session_id: str,
    scope: SeriesScope,
) -> List[Session]:
    """
    Sessions of a series an edit/delete applies to.

    single -> only `session_id`
    future -> `session_id` and every session starting at or after it
    all    -> the whole series

    Raises LookupError when `session_id` is not part of the series.
    """
    anchor = next((s for s in sessions if s.id == session_id), None)
    if anchor is None:
        raise LookupError(f"Session '{session_id}' is not part of this series.")

    if scope is SeriesScope.SINGLE:
        return [anchor]

    if scope is SeriesScope.FUTURE:
        if anchor.scheduled_start is None:
            return [anchor]
        return [
            s for s in sort_by_start(sessions)
            if s.id == anchor.id
            or (s.scheduled_start is not None and s.scheduled_start >= anchor.scheduled_start)
        ]

    return sort_by_start(sessions)


def get_series_position(session: Session, series_sessions: Sequence[Session]) -> Optional[SeriesPosition]:
    """
    "3 of 12" for a session within its series; None outside a series.
    """
    if not session.series_id:
        return None
    ordered = sort_by_start(series_sessions)
    ids = [s.id for s in ordered]
    if session.id not in ids:
        return None
    return SeriesPosition(position=ids.index(session.id) + 1, total=len(ordered))


def get_series_info(series_id: str, sessions: Sequence[Session], now: datetime) -> SeriesInfo:
    now = ensure_utc(now)
    ordered = sort_by_start(sessions)
    dated = [s for s in ordered if s.scheduled_start is not None]
    first = ordered[0] if ordered else None
    last = ordered[-1] if ordered else None
    parent = next((s for s in ordered if s.rrule or s.series_config), None)
    return SeriesInfo(
        series_id=series_id,
        count=len(ordered),
        first_session_id=first.id if first else None,
        last_session_id=last.id if last else None,
        first_start=dated[0].scheduled_start if dated else None,
        last_start=dated[-1].scheduled_start if dated else None,
        upcoming_count=sum(1 for s in dated if s.scheduled_start > now),
        past_count=sum(1 for s in dated if s.scheduled_start <= now),
        rrule=parent.rrule if parent else None,
        template=parse_series_config(parent.series_config) if parent else None,
    )


def _occurrence_fields(
    config: SeriesConfig,
    scheduled_start: datetime,
    series_id: str,
    rrule: Optional[str],
    series_config_json: Optional[str],
) -> dict:
    return {
        "sessionType": config.session_type,
        "scheduledStart": scheduled_start.isoformat().replace("+00:00", "Z"),
        "duration": config.duration,
        "mentor": [config.lead_contact_id],
        "team": [config.team_id],
        "cohort": [config.cohort_id] if config.cohort_id else None,
        "location": [config.location_id] if config.location_id else None,
        "meetingPlatform": config.meeting_platform,
        "meetingUrl": config.meeting_url,
        "agenda": config.agenda,
        "status": SessionStatus.SCHEDULED.value,
        "requirePrep": config.require_prep,
        "requireFeedback": config.require_feedback,
        "seriesId": series_id,
        "rrule": rrule,
        "seriesConfig": series_config_json,
    }


async def create_recurring_sessions(
    repository: MentorshipRepository,
    payload: RecurringSessionInput,
    now: datetime,
) -> RecurringSessionResult:
    """
    Create every occurrence of a recurring series.

    Steps
    -----
    1) Reject a start that is not in the future and invalid recurrence patterns.
    2) Expand the occurrences and build the RRULE.
    3) Create each session with a shared series id; the first (parent)
       session also stores the RRULE and the JSON series template.
    4) Link all mentors to each created session.

    An occurrence the data layer refuses is logged and counted in `failed`;
    the remaining occurrences are still created.
    """
    if payload.scheduled_start <= ensure_utc(now):
        raise RecurrenceConfigError("Start date must be in the future")

    occurrences = generate_occurrences(payload.scheduled_start, payload.recurrence)
    rrule = config_to_rrule(payload.scheduled_start, payload.recurrence)
    series_config_json = payload.session_config.model_dump_json(by_alias=True)
    series_id = generate_series_id()

    created: List[CreatedOccurrence] = []
    failed = 0

    for index, occurrence in enumerate(occurrences):
        is_parent = index == 0
        fields = _occurrence_fields(
            payload.session_config,
            occurrence,
            series_id,
            rrule if is_parent else None,
            series_config_json if is_parent else None,
        )
        try:
            session_id = await repository.create_session(fields)
        except BaseQLClientError:
            logger.exception(
                "create_recurring_sessions: occurrence %d/%d failed series=%s",
                index + 1,
                len(occurrences),
                series_id,
            )
            failed += 1
            continue

        await repository.add_session_participants(session_id, payload.session_config.mentors)
        created.append(CreatedOccurrence(id=session_id, scheduled_start=occurrence))

    logger.info(
        "Created recurring series %s: %d sessions, %d failed (%s)",
        series_id,
        len(created),
        failed,
        rrule,
    )
    return RecurringSessionResult(
        sessions=created,
        series_id=series_id,
        count=len(created),
        failed=failed,
    )


def _shifted_fields(fields: dict, session: Session, offset: Optional[timedelta]) -> dict:
    if offset is None or "scheduledStart" not in fields:
        return fields
    shifted = dict(fields)
    if session.scheduled_start is None:
        del shifted["scheduledStart"]
    else:
        start = session.scheduled_start + offset
        shifted["scheduledStart"] = start.isoformat().replace("+00:00", "Z")
    return shifted


async def update_series_sessions(
    repository: MentorshipRepository,
    series_id: str,
    session_id: str,
    updates: SessionUpdate,
    scope: SeriesScope,
) -> SeriesMutationResult:
    """
    Apply `updates` to the sessions selected by `scope`.

    A new `scheduledStart` on a `future`/`all` edit moves every target by
    the same offset the edited session moves, keeping the series spacing.
    Raises ValueError when that session has no start to measure from.
    """
    sessions = await repository.list_series_sessions(series_id)
    if not sessions:
        raise LookupError(f"Series '{series_id}' not found.")

    targets = select_series_sessions(sessions, session_id, scope)
    fields = updates.to_mutation_fields()

    offset = None
    if updates.scheduled_start is not None and scope is not SeriesScope.SINGLE:
        anchor = next(s for s in targets if s.id == session_id)
        if anchor.scheduled_start is None:
            raise ValueError(
                f"Session '{session_id}' has no start to move the series from; edit it alone."
            )
        offset = updates.scheduled_start - anchor.scheduled_start

    updated = 0
    for session in targets:
        try:
            await repository.update_session(session.id, _shifted_fields(fields, session, offset))
            updated += 1
        except BaseQLClientError:
            logger.exception("update_series_sessions failed series=%s session=%s", series_id, session.id)

    logger.info("Updated %d/%d sessions of series %s (scope=%s)", updated, len(targets), series_id, scope.value)
    return SeriesMutationResult(series_id=series_id, scope=scope, affected_count=updated)


async def delete_series_sessions(
    repository: MentorshipRepository,
    series_id: str,
    session_id: str,
    scope: SeriesScope,
) -> SeriesMutationResult:
    sessions = await repository.list_series_sessions(series_id)
    if not sessions:
        raise LookupError(f"Series '{series_id}' not found.")

    targets = select_series_sessions(sessions, session_id, scope)
    deleted = await repository.delete_sessions([s.id for s in targets])

    logger.info("Deleted %d/%d sessions of series %s (scope=%s)", deleted, len(targets), series_id, scope.value)
    return SeriesMutationResult(series_id=series_id, scope=scope, affected_count=deleted)


def parse_series_config(raw: Optional[str]) -> Optional[SeriesConfig]:
    """
    Series template stored on the parent session, or None when absent or
    unreadable (hand-edited in Airtable).
    """
    if not raw:
        return None
    try:
        return SeriesConfig.model_validate_json(raw)
    except ValidationError:
        logger.warning("Ignoring unreadable series config: %.80s", raw)
        return None
