# app/services/permissions.py
"""
Role capability table.

One lookup answers "may this kind of user do X to Y", instead of boolean
checks spread across endpoints. Each cell is either:

- a bool                  -> allowed / denied outright
- a tuple of field names  -> allowed, but only for those fields
- ("own",)                -> allowed, but only on records the user owns
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Iterable, Union

from pydantic.alias_generators import to_camel

from app.schemas.session import FeedbackRole, Session, SessionFeedback
from app.schemas.task import Task
from app.schemas.user import UserContext, UserType
from app.schemas.views import SessionCapabilities, TaskCapabilities
from app.services.feedback_eligibility import (
    has_mentee_feedback,
    has_mentor_feedback,
    is_eligible_for_feedback,
)
from app.services.mentor_resolver import is_current_user_mentor, is_team_member


class Entity(str, Enum):
    SESSION = "session"
    SESSION_FEEDBACK = "sessionFeedback"
    TASK = "task"
    UPDATE = "update"
    CONTACT = "contact"
    TEAM = "team"
    COHORT = "cohort"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


OWN = "own"

Permission = Union[bool, tuple[str, ...]]

STUDENT_TASK_FIELDS = (
    "status",
    "priority",
    "level_of_effort",
    "due_date",
    "name",
    "description",
    "assigned_to",
)
MENTOR_TASK_FIELDS = (
    "status",
    "priority",
    "level_of_effort",
    "due_date",
    "name",
    "description",
)
ALL_TASK_FIELDS = STUDENT_TASK_FIELDS

_READ_ONLY = {Action.READ: True, Action.CREATE: False, Action.UPDATE: False, Action.DELETE: False}
_FULL = {Action.READ: True, Action.CREATE: True, Action.UPDATE: True, Action.DELETE: True}

CAPABILITY_TABLE: dict[UserType, dict[Entity, dict[Action, Permission]]] = {
    UserType.STUDENT: {
        Entity.SESSION: dict(_READ_ONLY),
        Entity.SESSION_FEEDBACK: {
            Action.READ: True,
            Action.CREATE: True,
            Action.UPDATE: (OWN,),
            Action.DELETE: False,
        },
        Entity.TASK: {
            Action.READ: True,
            Action.CREATE: True,
            Action.UPDATE: STUDENT_TASK_FIELDS,
            Action.DELETE: False,
        },
        Entity.UPDATE: {
            Action.READ: True,
            Action.CREATE: True,
            Action.UPDATE: (OWN,),
            Action.DELETE: (OWN,),
        },
        Entity.CONTACT: dict(_READ_ONLY),
        Entity.TEAM: dict(_READ_ONLY),
        Entity.COHORT: dict(_READ_ONLY),
    },
    UserType.MENTOR: {
        Entity.SESSION: dict(_READ_ONLY),
        Entity.SESSION_FEEDBACK: {
            Action.READ: True,
            Action.CREATE: True,
            Action.UPDATE: (OWN,),
            Action.DELETE: False,
        },
        Entity.TASK: {
            Action.READ: True,
            Action.CREATE: False,
            Action.UPDATE: (OWN,),
            Action.DELETE: False,
        },
        Entity.UPDATE: {
            Action.READ: True,
            Action.CREATE: True,
            Action.UPDATE: (OWN,),
            Action.DELETE: (OWN,),
        },
        Entity.CONTACT: dict(_READ_ONLY),
        Entity.TEAM: dict(_READ_ONLY),
        Entity.COHORT: dict(_READ_ONLY),
    },
    UserType.STAFF: {entity: dict(_FULL) for entity in Entity},
}

SESSION_GROUPINGS = {
    UserType.STUDENT: ["none", "status", "type", "month"],
    UserType.MENTOR: ["none", "status", "type", "team", "month"],
    UserType.STAFF: ["none", "status", "type", "team", "month"],
}

SESSION_COLUMNS = {
    UserType.STUDENT: ["indicator", "dateTime", "type", "mentor", "status"],
    UserType.MENTOR: ["indicator", "dateTime", "type", "team", "status", "feedback", "actions"],
    UserType.STAFF: [
        "indicator",
        "dateTime",
        "type",
        "team",
        "mentor",
        "status",
        "feedback",
        "emailStatus",
        "actions",
    ],
}

TASK_GROUPINGS = {
    UserType.STUDENT: ["none", "status", "priority"],
    UserType.MENTOR: ["none", "status", "priority", "team"],
    UserType.STAFF: ["none", "status", "priority", "team", "assignee"],
}

TASK_COLUMNS = {
    UserType.STUDENT: ["name", "status", "priority", "due", "levelOfEffort", "session"],
    UserType.MENTOR: ["name", "assignee", "team", "status", "priority", "due"],
    UserType.STAFF: ["name", "assignee", "team", "status", "priority", "due", "levelOfEffort", "created"],
}

MENTEE_RATING_FIELDS = (
    "rating",
    "content_relevance",
    "actionability_of_advice",
    "mentor_preparedness",
)


def _cell(user_type: UserType, entity: Entity, action: Action) -> Permission:
    return CAPABILITY_TABLE.get(user_type, {}).get(entity, {}).get(action, False)


def has_permission(user_type: UserType, entity: Entity, action: Action) -> bool:
    """
    Coarse check. Field-limited and ownership-limited cells count as allowed;
    callers narrow them with `can_update_field` / `owns_resource`.
    """
    permission = _cell(user_type, entity, action)
    if isinstance(permission, bool):
        return permission
    return len(permission) > 0


def get_allowed_update_fields(user_type: UserType, entity: Entity) -> Permission:
    """
    True for "every field", a tuple of field names, or False.
    """
    return _cell(user_type, entity, Action.UPDATE)


def can_update_field(user_type: UserType, entity: Entity, field: str) -> bool:
    allowed = get_allowed_update_fields(user_type, entity)
    if isinstance(allowed, bool):
        return allowed
    return field in allowed or OWN in allowed


def owns_resource(
    user_id: str | None,
    author_id: str | None = None,
    created_by: str | None = None,
) -> bool:
    if not user_id:
        return False
    return user_id in (author_id, created_by)


# -- sessions -----------------------------------------------------------------


def can_read_session(user: UserContext, session: Session) -> bool:
    """
    Staff see every session, mentors the sessions they mentor, students the
    sessions of their team.
    """
    if user.user_type is UserType.STAFF:
        return True
    if user.user_type is UserType.MENTOR:
        return is_current_user_mentor(session, user.email)
    return is_team_member(session, user.email)


def can_add_feedback(user: UserContext, session: Session, now: datetime) -> bool:
    """
    Staff: any eligible session without mentor feedback.
    Mentor: only their own eligible sessions without mentor feedback.
    Student: only sessions of their team without mentee feedback.
    """
    if not user.email:
        return False
    if not is_eligible_for_feedback(session, now):
        return False

    if user.user_type is UserType.STAFF:
        return not has_mentor_feedback(session)

    if user.user_type is UserType.MENTOR:
        if not is_current_user_mentor(session, user.email):
            return False
        return not has_mentor_feedback(session)

    if user.user_type is UserType.STUDENT:
        if not is_team_member(session, user.email):
            return False
        return not has_mentee_feedback(session)

    return False


def build_session_capabilities(
    user: UserContext,
    session: Session | None = None,
    now: datetime | None = None,
) -> SessionCapabilities:
    user_type = user.user_type
    return SessionCapabilities(
        can_create=has_permission(user_type, Entity.SESSION, Action.CREATE),
        can_update=has_permission(user_type, Entity.SESSION, Action.UPDATE),
        can_cancel=user_type is UserType.STAFF,
        can_add_feedback=(
            can_add_feedback(user, session, now)
            if session is not None and now is not None
            else False
        ),
        can_view_private_notes=user_type is UserType.STAFF,
        allowed_groupings=list(SESSION_GROUPINGS.get(user_type, ["none"])),
        visible_columns=list(SESSION_COLUMNS.get(user_type, ["dateTime", "type", "status"])),
        show_feedback_status=user_type in (UserType.MENTOR, UserType.STAFF),
    )


def redact_feedback(feedback: SessionFeedback, user: UserContext) -> SessionFeedback:
    """
    Hide what the viewer may not see: mentor private notes are staff-only,
    mentee ratings are visible to staff and to the mentee who gave them.
    """
    if user.user_type is UserType.STAFF:
        return feedback

    hidden: dict[str, None] = {"private_notes": None}

    if feedback.role is FeedbackRole.MENTEE:
        respondent = feedback.respondent_record
        own = (
            respondent is not None and owns_resource(user.contact_id, author_id=respondent.id)
        ) or (
            respondent is not None
            and respondent.email is not None
            and respondent.email.casefold() == user.email.casefold()
        )
        if not own:
            hidden.update({name: None for name in MENTEE_RATING_FIELDS})

    return feedback.model_copy(update=hidden)


def redact_session(session: Session, user: UserContext) -> Session:
    return session.model_copy(
        update={"feedback": [redact_feedback(f, user) for f in session.feedback]}
    )


# -- tasks --------------------------------------------------------------------


def _same_email(contact_email: str | None, email: str) -> bool:
    return bool(contact_email) and contact_email.casefold() == email.casefold()


def can_read_task(user: UserContext, task: Task) -> bool:
    """
    Staff see every task, mentors tasks from their sessions, students tasks
    assigned to them or to their team.
    """
    if user.user_type is UserType.STAFF:
        return True
    if user.user_type is UserType.MENTOR:
        return any(is_current_user_mentor(s, user.email) for s in task.session)
    if any(_same_email(c.email, user.email) for c in task.assigned_to):
        return True
    return any(
        _same_email(c.email, user.email)
        for team in task.team
        for c in team.member_contacts()
    )


def can_edit_task(user: UserContext, task: Task) -> bool:
    """
    Staff edit anything, students edit their team's tasks (the only ones they
    see), mentors edit tasks that came out of sessions they mentored.
    """
    if not user.email:
        return False
    if user.user_type in (UserType.STAFF, UserType.STUDENT):
        return True
    if user.user_type is UserType.MENTOR:
        return any(is_current_user_mentor(s, user.email) for s in task.session)
    return False


def get_editable_task_fields(user: UserContext, task: Task) -> tuple[str, ...]:
    """
    Task fields this viewer may change on `task`, read from the capability
    table. An "own" cell narrows to tasks the viewer can edit.
    """
    if not user.email:
        return ()
    allowed = get_allowed_update_fields(user.user_type, Entity.TASK)
    if allowed is True:
        return ALL_TASK_FIELDS
    if not allowed:
        return ()
    if OWN in allowed:
        return MENTOR_TASK_FIELDS if can_edit_task(user, task) else ()
    return tuple(f for f in ALL_TASK_FIELDS if can_update_field(user.user_type, Entity.TASK, f))


def build_task_capabilities(user: UserContext, tasks: Iterable[Task] = ()) -> TaskCapabilities:
    user_type = user.user_type
    return TaskCapabilities(
        can_create=has_permission(user_type, Entity.TASK, Action.CREATE),
        can_delete=has_permission(user_type, Entity.TASK, Action.DELETE),
        can_drag_status=can_update_field(user_type, Entity.TASK, "status"),
        can_drag_reassign=user_type is UserType.STAFF,
        allowed_groupings=list(TASK_GROUPINGS.get(user_type, ["none"])),
        visible_columns=list(TASK_COLUMNS.get(user_type, ["name", "status"])),
        editable_fields={
            task.id: [to_camel(name) for name in get_editable_task_fields(user, task)]
            for task in tasks
        },
    )
