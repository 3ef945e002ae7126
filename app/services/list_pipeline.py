# app/services/list_pipeline.py
"""
Generic search -> filter -> sort -> group pipeline.

The session and task pipelines only supply their own searchable text, filter
predicates, sort keys and group keys; the mechanics live here so both lists
behave the same way.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")

MIN_SEARCH_LENGTH = 2
ALL_GROUP = "all"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class ProcessedList(Generic[T]):
    """
    Output of every stage, so callers can report counts per stage.
    """

    searched: list[T]
    filtered: list[T]
    sorted: list[T]
    grouped: dict[str, list[T]] = field(default_factory=dict)


def search_records(
    records: Sequence[T],
    query: str | None,
    searchable_text: Callable[[T], Iterable[Optional[str]]],
) -> list[T]:
    """
    Keep records whose joined searchable text contains every whitespace
    token of `query` (case-insensitive). Queries shorter than two characters
    after trimming leave the input unchanged.
    """
    if not query or len(query.strip()) < MIN_SEARCH_LENGTH:
        return list(records)

    terms = query.casefold().split()

    matches: list[T] = []
    for record in records:
        haystack = " ".join(part for part in searchable_text(record) if part).casefold()
        if all(term in haystack for term in terms):
            matches.append(record)
    return matches


def stable_sort(
    records: Sequence[T],
    key: Callable[[T], Any],
    direction: SortDirection = SortDirection.ASC,
) -> list[T]:
    """
    Stable sort on `key`. Records whose key is None go last in either
    direction; equal keys keep their input order in either direction.
    """
    present: list[tuple[Any, T]] = []
    missing: list[T] = []
    for record in records:
        value = key(record)
        if value is None:
            missing.append(record)
        else:
            present.append((value, record))

    # `reverse=True` keeps equal elements in their original order.
    present.sort(key=lambda pair: pair[0], reverse=direction is SortDirection.DESC)
    return [record for _, record in present] + missing


def group_records(
    records: Sequence[T],
    group_by: str,
    group_key: Callable[[T], str] | None,
) -> dict[str, list[T]]:
    """
    Bucket already-sorted records. "none" yields a single "all" bucket;
    buckets appear in the order their first member does and keep the
    incoming order inside.
    """
    if group_by == "none" or group_key is None:
        return {ALL_GROUP: list(records)}

    groups: dict[str, list[T]] = {}
    for record in records:
        groups.setdefault(group_key(record), []).append(record)
    return groups


def paginate(records: Sequence[T], page: int, per_page: int) -> tuple[list[T], bool]:
    """
    Incremental disclosure: return the first `page * per_page` records and
    whether more remain.
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if per_page < 1:
        raise ValueError("per_page must be >= 1")
    limit = page * per_page
    return list(records[:limit]), len(records) > limit
