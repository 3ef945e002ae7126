# app/services/task_view.py
from __future__ import annotations

from datetime import datetime
from typing import Sequence

from app.schemas.task import Task
from app.schemas.user import UserContext
from app.schemas.views import PageInfo, TaskGroup, TaskListResponse
from app.services.list_pipeline import SortDirection, paginate
from app.services.permissions import build_task_capabilities, can_read_task
from app.services.task_pipeline import (
    TaskFilter,
    TaskGroupBy,
    TaskSort,
    get_task_stats,
    group_tasks,
    process_tasks,
)


def build_task_list(
    tasks: Sequence[Task],
    *,
    user: UserContext,
    now: datetime,
    page: int = 1,
    per_page: int = 10,
    search: str | None = None,
    task_filter: TaskFilter = TaskFilter.ALL,
    sort: TaskSort = TaskSort.PRIORITY,
    direction: SortDirection = SortDirection.ASC,
    group_by: TaskGroupBy = TaskGroupBy.NONE,
) -> TaskListResponse:
    """
    Task list for one viewer.

    Pages accumulate ("load more"): page N returns the first N * per_page
    tasks of the sorted list, grouped after slicing so groups never hold
    tasks beyond the loaded range.
    """
    visible = [t for t in tasks if can_read_task(user, t)]
    processed = process_tasks(
        visible,
        search=search,
        task_filter=task_filter,
        sort=sort,
        direction=direction,
    )
    loaded, has_more = paginate(processed.sorted, page, per_page)
    grouped = group_tasks(loaded, group_by)

    return TaskListResponse(
        count=len(processed.filtered),
        groups=[TaskGroup(key=key, tasks=items) for key, items in grouped.items()],
        stats=get_task_stats(visible, now),
        page_info=PageInfo(
            page=page,
            per_page=per_page,
            total_items=len(processed.sorted),
            has_more=has_more,
        ),
        capabilities=build_task_capabilities(user, loaded),
    )
