# app/api/routes/tasks.py
import logging
from datetime import datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.dependencies.clock import get_now
from app.api.dependencies.repository import get_repository
from app.api.dependencies.user_context import get_user_context
from app.core.config import get_settings
from app.schemas.user import UserContext
from app.schemas.views import TaskListResponse
from app.services.baseql_client import BaseQLClientError
from app.services.list_pipeline import SortDirection
from app.services.mentorship_repository import MentorshipRepository
from app.services.task_pipeline import TaskFilter, TaskGroupBy, TaskSort
from app.services.task_view import build_task_list

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.get(
    "",
    response_model=TaskListResponse,
    response_model_by_alias=True,
    summary="List tasks visible to the caller",
    description=(
        "Tasks the caller may read, run through search, filter and sort, then "
        "paginated and grouped.\n\n"
        "- Staff see every task, mentors tasks from the sessions they mentored, "
        "students tasks assigned to them or to their team.\n"
        "- Default sort is by priority (Urgent first).\n"
        "- `page` accumulates: page 2 returns the first two pages of tasks."
    ),
    responses={
        200: {
            "description": "Grouped task list.",
            "content": {
                "application/json": {
                    "example": {
                        "count": 1,
                        "groups": [{"key": "all", "tasks": [{"id": "recTask01", "name": "Draft API contract"}]}],
                        "stats": {"total": 1, "open": 1, "completed": 0, "overdue": 0, "byStatus": {}},
                        "pageInfo": {"page": 1, "perPage": 10, "totalItems": 1, "hasMore": False},
                        "capabilities": {"canCreate": True},
                    }
                }
            },
        },
        401: {"description": "Missing identity headers."},
        502: {"description": "Data provider unavailable."},
    },
)
async def list_tasks(
    search: str | None = Query(None, description="Free-text search (at least 2 characters)."),
    task_filter: TaskFilter = Query(TaskFilter.ALL, alias="filter"),
    sort: TaskSort = Query(TaskSort.PRIORITY),
    direction: SortDirection = Query(SortDirection.ASC),
    group_by: TaskGroupBy = Query(TaskGroupBy.NONE, alias="groupBy"),
    page: int = Query(1, ge=1, description="Number of pages loaded so far."),
    user: UserContext = Depends(get_user_context),
    repository: MentorshipRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
) -> TaskListResponse:
    try:
        tasks = await repository.list_tasks()
    except BaseQLClientError as exc:
        logger.error("list tasks failed against BaseQL: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Data provider error while trying to list tasks.",
        ) from exc

    return build_task_list(
        tasks,
        user=user,
        now=now,
        page=page,
        per_page=get_settings().TASKS_PER_PAGE,
        search=search,
        task_filter=task_filter,
        sort=sort,
        direction=direction,
        group_by=group_by,
    )
