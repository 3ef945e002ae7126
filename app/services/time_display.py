# app/services/time_display.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import NamedTuple
from zoneinfo import ZoneInfo

from app.core.config import get_settings

DEFAULT_SESSION_MINUTES = 60
MAX_SCHEDULE_DAYS = 30


class ScheduleTimes(NamedTuple):
    prep_48h: datetime
    prep_24h: datetime
    feedback_immediate: datetime
    session_start: datetime
    session_end: datetime


@lru_cache()
def app_zone() -> ZoneInfo:
    """
    The single civil timezone every user-facing value is rendered in.
    """
    return ZoneInfo(get_settings().APP_TIMEZONE)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC instant. Naive values are UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_utc(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp as stored by Airtable ("...Z") into UTC.

    Raises ValueError for strings that are not valid timestamps; callers
    must not fall back to a default.
    """
    if not value or not value.strip():
        raise ValueError("Empty date string")
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"Invalid date string: {value!r}") from exc
    return ensure_utc(parsed)


def to_app_time(value: datetime) -> datetime:
    return ensure_utc(value).astimezone(app_zone())


def _clock(local: datetime) -> str:
    return local.strftime("%I:%M %p").lstrip("0")


def format_session_date(value: datetime | None) -> str:
    """
    "Mon, Dec 8, 2024" in the display timezone; "" when absent.
    """
    if value is None:
        return ""
    local = to_app_time(value)
    return f"{local:%a, %b} {local.day}, {local.year}"


def format_session_time(value: datetime | None) -> str:
    """
    "1:00 PM ET" in the display timezone; "" when absent.
    """
    if value is None:
        return ""
    return f"{_clock(to_app_time(value))} {get_settings().TIMEZONE_ABBR}"


def format_email_date(value: datetime) -> str:
    local = to_app_time(value)
    return f"{local:%A, %B} {local.day}, {local.year}"


def format_short_date(value: datetime) -> str:
    """
    "Dec 8, 2024" in the display timezone.
    """
    local = to_app_time(value)
    return f"{local:%b} {local.day}, {local.year}"


def session_month_label(value: datetime | None) -> str:
    if value is None:
        return "No Date"
    return f"{to_app_time(value):%B %Y}"


def session_end_time(start: datetime, duration_minutes: int | None) -> datetime:
    return ensure_utc(start) + timedelta(minutes=duration_minutes or DEFAULT_SESSION_MINUTES)


def calculate_schedule_times(start: datetime, duration_minutes: int | None) -> ScheduleTimes:
    """
    Reminder anchor points for a session: prep reminders 48h and 24h before
    the start, and the immediate feedback reminder at the session end.
    """
    start = ensure_utc(start)
    end = session_end_time(start, duration_minutes)
    return ScheduleTimes(
        prep_48h=start - timedelta(hours=48),
        prep_24h=start - timedelta(hours=24),
        feedback_immediate=end,
        session_start=start,
        session_end=end,
    )


def hours_until(target: datetime, now: datetime) -> float:
    """
    Positive when `target` is in the future, negative when in the past.
    """
    return (ensure_utc(target) - ensure_utc(now)).total_seconds() / 3600


def is_valid_schedule_time(
    scheduled_for: datetime,
    now: datetime,
    max_days: int = MAX_SCHEDULE_DAYS,
) -> bool:
    """
    A send time is usable when it lies in the future and at most `max_days` ahead.
    """
    scheduled_for = ensure_utc(scheduled_for)
    now = ensure_utc(now)
    return now < scheduled_for <= now + timedelta(days=max_days)
