# app/services/task_pipeline.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from app.schemas.task import Task, TaskPriority, TaskStatus
from app.schemas.views import TaskStats
from app.services.list_pipeline import (
    ProcessedList,
    SortDirection,
    group_records,
    search_records,
    stable_sort,
)
from app.services.time_display import to_app_time


class TaskFilter(str, Enum):
    ALL = "all"
    OPEN = "open"
    COMPLETED = "completed"


class TaskSort(str, Enum):
    PRIORITY = "priority"
    DUE_DATE = "dueDate"
    STATUS = "status"
    CREATED = "created"


class TaskGroupBy(str, Enum):
    NONE = "none"
    STATUS = "status"
    PRIORITY = "priority"
    TEAM = "team"
    ASSIGNEE = "assignee"


PRIORITY_ORDER = {priority: index for index, priority in enumerate(TaskPriority)}
STATUS_ORDER = {status: index for index, status in enumerate(TaskStatus)}
CLOSED_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


def is_task_open(task: Task) -> bool:
    # A task without a status has not been started.
    return task.status not in CLOSED_STATUSES


def is_task_overdue(task: Task, now: datetime) -> bool:
    """
    An open task whose due date is before today's date in the display timezone.
    """
    if task.due_date is None or not is_task_open(task):
        return False
    return task.due_date < to_app_time(now).date()


def task_search_text(task: Task) -> Iterable[Optional[str]]:
    yield task.name
    yield task.description
    yield task.assignee.full_name if task.assignee else None
    yield task.team_name
    yield task.status.value if task.status else None
    yield task.priority.value if task.priority else None


def search_tasks(tasks: Sequence[Task], query: str | None) -> list[Task]:
    return search_records(tasks, query, task_search_text)


def filter_tasks(tasks: Sequence[Task], task_filter: TaskFilter) -> list[Task]:
    if task_filter is TaskFilter.OPEN:
        return [t for t in tasks if is_task_open(t)]
    if task_filter is TaskFilter.COMPLETED:
        return [t for t in tasks if t.status in CLOSED_STATUSES]
    return list(tasks)


_SORT_KEYS: dict[TaskSort, Callable[[Task], object]] = {
    TaskSort.PRIORITY: lambda t: PRIORITY_ORDER[t.priority] if t.priority else None,
    TaskSort.DUE_DATE: lambda t: t.due_date,
    TaskSort.STATUS: lambda t: STATUS_ORDER[t.status] if t.status else None,
    TaskSort.CREATED: lambda t: t.created,
}


def sort_tasks(
    tasks: Sequence[Task],
    sort: TaskSort,
    direction: SortDirection = SortDirection.ASC,
) -> list[Task]:
    return stable_sort(tasks, _SORT_KEYS[sort], direction)


_GROUP_KEYS: dict[TaskGroupBy, Callable[[Task], str]] = {
    TaskGroupBy.STATUS: lambda t: t.status.value if t.status else TaskStatus.NOT_STARTED.value,
    TaskGroupBy.PRIORITY: lambda t: t.priority.value if t.priority else "No Priority",
    TaskGroupBy.TEAM: lambda t: t.team_name or "No Team",
    TaskGroupBy.ASSIGNEE: lambda t: (t.assignee.full_name if t.assignee else None) or "Unassigned",
}


def group_tasks(tasks: Sequence[Task], group_by: TaskGroupBy) -> dict[str, list[Task]]:
    return group_records(tasks, group_by.value, _GROUP_KEYS.get(group_by))


def process_tasks(
    tasks: Sequence[Task],
    *,
    search: str | None = None,
    task_filter: TaskFilter = TaskFilter.ALL,
    sort: TaskSort = TaskSort.PRIORITY,
    direction: SortDirection = SortDirection.ASC,
    group_by: TaskGroupBy = TaskGroupBy.NONE,
) -> ProcessedList[Task]:
    searched = search_tasks(tasks, search)
    filtered = filter_tasks(searched, task_filter)
    ordered = sort_tasks(filtered, sort, direction)
    grouped = group_tasks(ordered, group_by)
    return ProcessedList(searched=searched, filtered=filtered, sorted=ordered, grouped=grouped)


def count_by_status(tasks: Sequence[Task]) -> dict[str, int]:
    counts = {status.value: 0 for status in TaskStatus}
    for task in tasks:
        status = task.status or TaskStatus.NOT_STARTED
        counts[status.value] += 1
    return counts


def get_task_stats(tasks: Sequence[Task], now: datetime) -> TaskStats:
    return TaskStats(
        total=len(tasks),
        open=sum(1 for t in tasks if is_task_open(t)),
        completed=sum(1 for t in tasks if t.status is TaskStatus.COMPLETED),
        overdue=sum(1 for t in tasks if is_task_overdue(t, now)),
        by_status=count_by_status(tasks),
    )
