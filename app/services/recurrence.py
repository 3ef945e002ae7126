# app/services/recurrence.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from itertools import islice

from dateutil import rrule as rr

from app.core.config import get_settings
from app.schemas.recurring import Frequency, RecurrenceConfig
from app.services.time_display import app_zone, ensure_utc, to_app_time

_RRULE_FREQ = {
    Frequency.WEEKLY: rr.WEEKLY,
    Frequency.BIWEEKLY: rr.WEEKLY,
    Frequency.MONTHLY: rr.MONTHLY,
}
# Rule parts written for a month-end start (see `build_rrule`).
_MONTH_END_PARTS = {"bymonthday", "bysetpos"}


class RecurrenceConfigError(ValueError):
    """
    Raised for a recurrence pattern that cannot produce a valid series.
    Never coerced into a default: the caller must fix the input.
    """


def _limits(max_occurrences: int | None, max_days_ahead: int | None) -> tuple[int, int]:
    settings = get_settings()
    return (
        max_occurrences if max_occurrences is not None else settings.MAX_OCCURRENCES,
        max_days_ahead if max_days_ahead is not None else settings.MAX_DAYS_AHEAD,
    )


def end_of_day(value: date) -> datetime:
    """
    Last instant of `value` in the display timezone, as UTC.
    """
    local = datetime.combine(value, time(23, 59, 59), tzinfo=app_zone())
    return local.astimezone(timezone.utc)


def step_interval(frequency: Frequency, interval: int | None) -> int:
    if frequency is Frequency.BIWEEKLY:
        return 2
    return interval or 1


def to_rrule_weekday(day: int) -> rr.weekday:
    """
    0 = Sunday ... 6 = Saturday, mapped onto dateutil's Monday-first weekdays.
    """
    return rr.weekdays[(day - 1) % 7]


def from_rrule_weekday(day: rr.weekday) -> int:
    return (day.weekday + 1) % 7


def validate_recurrence_config(
    config: RecurrenceConfig,
    start: datetime,
    *,
    max_occurrences: int | None = None,
    max_days_ahead: int | None = None,
) -> Frequency:
    """
    Check a recurrence pattern against `start` and the configured ceilings.

    Returns the parsed frequency. Raises RecurrenceConfigError when:
    - the frequency is unknown
    - the interval is below 1
    - days of week are outside 0-6 or given for a monthly pattern
    - both or neither of `occurrences` / `end_date` are given
    - `occurrences` is below 2 or above MAX_OCCURRENCES
    - `end_date` is before the start date or more than MAX_DAYS_AHEAD days out
    """
    max_occurrences, max_days_ahead = _limits(max_occurrences, max_days_ahead)

    try:
        frequency = Frequency(config.frequency)
    except ValueError:
        raise RecurrenceConfigError(f"Invalid frequency: {config.frequency!r}") from None

    if config.interval is not None and config.interval < 1:
        raise RecurrenceConfigError("Interval must be at least 1")

    if config.days_of_week is not None:
        if frequency is Frequency.MONTHLY:
            raise RecurrenceConfigError("Days of week only apply to weekly patterns")
        if not config.days_of_week:
            raise RecurrenceConfigError("Days of week cannot be empty")
        if any(day < 0 or day > 6 for day in config.days_of_week):
            raise RecurrenceConfigError("Days of week must be between 0 (Sunday) and 6 (Saturday)")

    has_count = config.occurrences is not None
    has_end = config.end_date is not None
    if has_count == has_end:
        raise RecurrenceConfigError("Specify exactly one of occurrences or end date")

    if has_count:
        if config.occurrences < 2:
            raise RecurrenceConfigError("At least 2 occurrences are required")
        if config.occurrences > max_occurrences:
            raise RecurrenceConfigError(f"Maximum {max_occurrences} occurrences allowed")
        return frequency

    start = ensure_utc(start)
    if config.end_date < to_app_time(start).date():
        raise RecurrenceConfigError("End date must be on or after the start date")
    if end_of_day(config.end_date) > start + timedelta(days=max_days_ahead):
        raise RecurrenceConfigError(
            f"End date cannot be more than {max_days_ahead} days from start"
        )
    return frequency


def build_rrule(start: datetime, config: RecurrenceConfig, frequency: Frequency) -> rr.rrule:
    """
    dateutil rule for an already validated pattern.

    A monthly series starting after the 28th picks the last of the days
    28..start.day present in each month, so Jan 31 lands on Feb 28 and
    Mar 31 again without drifting.
    """
    start = ensure_utc(start)
    kwargs: dict = {
        "dtstart": start,
        "interval": step_interval(frequency, config.interval),
    }
    if frequency is Frequency.MONTHLY and start.day > 28:
        kwargs["bymonthday"] = tuple(range(28, start.day + 1))
        kwargs["bysetpos"] = -1
    if config.days_of_week:
        kwargs["byweekday"] = [to_rrule_weekday(day) for day in sorted(set(config.days_of_week))]
    if config.occurrences is not None:
        kwargs["count"] = config.occurrences
    else:
        kwargs["until"] = end_of_day(config.end_date)
    return rr.rrule(_RRULE_FREQ[frequency], **kwargs)


def generate_occurrences(
    start: datetime,
    config: RecurrenceConfig,
    *,
    max_occurrences: int | None = None,
    max_days_ahead: int | None = None,
) -> list[datetime]:
    """
    Expand a recurrence pattern into strictly increasing UTC instants.

    weekly   -> +7 days x interval
    biweekly -> +14 days
    monthly  -> same day of month (calendar arithmetic), x interval

    The first instant is `start` itself unless `days_of_week` leaves out
    its weekday, in which case the series begins on the next listed day.
    With `end_date` every instant up to the end of that day (display
    timezone) is included, never more than MAX_OCCURRENCES.
    """
    max_occurrences, max_days_ahead = _limits(max_occurrences, max_days_ahead)
    frequency = validate_recurrence_config(
        config,
        start,
        max_occurrences=max_occurrences,
        max_days_ahead=max_days_ahead,
    )
    rule = build_rrule(start, config, frequency)
    occurrences = list(islice(rule, max_occurrences))

    if not occurrences:
        raise RecurrenceConfigError("Recurrence pattern produces no occurrences")
    return occurrences


def config_to_rrule(start: datetime, config: RecurrenceConfig) -> str:
    """
    RFC 5545 RRULE body, e.g. "FREQ=WEEKLY;COUNT=12".

    The DTSTART line is left out: the first session's scheduledStart is
    the series anchor.
    """
    frequency = validate_recurrence_config(config, start)
    lines = str(build_rrule(start, config, frequency)).splitlines()
    return lines[-1][len("RRULE:"):]


def parse_rrule(rrule: str) -> RecurrenceConfig:
    """
    Inverse of `config_to_rrule`. Accepts an "RRULE:" prefix and a DTSTART
    line. Rule parts the portal cannot express are rejected, never dropped.
    """
    try:
        rule = rr.rrulestr(rrule.strip(), ignoretz=True)
    except (ValueError, TypeError, IndexError):
        raise RecurrenceConfigError(f"Invalid RRULE: {rrule!r}") from None
    if not isinstance(rule, rr.rrule):
        raise RecurrenceConfigError(f"Only a single RRULE is supported: {rrule!r}")

    # dateutil keeps the parsed options on the rule's private attributes.
    explicit = {key for key, value in rule._original_rule.items() if value}
    interval = rule._interval

    if rule._freq == rr.MONTHLY:
        frequency = Frequency.MONTHLY
        unsupported = explicit - _MONTH_END_PARTS
    elif rule._freq == rr.WEEKLY:
        frequency = Frequency.BIWEEKLY if interval == 2 else Frequency.WEEKLY
        unsupported = explicit - {"byweekday"}
    else:
        raise RecurrenceConfigError(f"Unsupported RRULE frequency: {rrule!r}")
    if unsupported:
        raise RecurrenceConfigError(f"Unsupported RRULE parts {sorted(unsupported)}: {rrule!r}")

    days_of_week = None
    if "byweekday" in explicit:
        weekdays = rule._original_rule["byweekday"]
        if any(day.n for day in weekdays):
            raise RecurrenceConfigError(f"Positional BYDAY values are not supported: {rrule!r}")
        days_of_week = sorted(from_rrule_weekday(day) for day in weekdays)

    until = rule._until
    if until is not None:
        until = until.replace(tzinfo=timezone.utc)

    return RecurrenceConfig(
        frequency=frequency.value,
        interval=interval,
        occurrences=rule._count,
        end_date=to_app_time(until).date() if until is not None else None,
        days_of_week=days_of_week,
    )


def describe_recurrence(config: RecurrenceConfig) -> str:
    """
    "Weekly for 12 sessions", "Every 2 weeks until Mar 1, 2025", ...
    """
    try:
        frequency = Frequency(config.frequency)
    except ValueError:
        raise RecurrenceConfigError(f"Invalid frequency: {config.frequency!r}") from None

    interval = step_interval(frequency, config.interval)
    if frequency is Frequency.MONTHLY:
        text = "Monthly" if interval == 1 else f"Every {interval} months"
    else:
        text = "Weekly" if interval == 1 else f"Every {interval} weeks"

    if config.days_of_week:
        names = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
        days = sorted(day for day in set(config.days_of_week) if 0 <= day <= 6)
        text += " on " + ", ".join(names[day] for day in days)

    if config.occurrences is not None:
        text += f" for {config.occurrences} sessions"
    elif config.end_date is not None:
        end = config.end_date
        text += f" until {end:%b} {end.day}, {end.year}"
    return text
