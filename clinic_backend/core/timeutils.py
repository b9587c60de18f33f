"""Time arithmetic and slot validation helpers.

Times are ``HH:MM`` wall-clock strings. Dates are ``YYYY-MM-DD`` strings or
``datetime.date`` values. Weekdays are derived from the calendar date alone
(0=Sunday..6=Saturday), so the result never depends on the server timezone.
"""

import re
from datetime import date, datetime, time, timezone

from clinic_backend.core import config

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_PATTERN = re.compile(r'^([01]?[0-9]|2[0-3]):([0-5][0-9])$')
MINUTES_PER_DAY = 24 * 60
WEEKDAY_NAMES = ('Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday')


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def parse_date(value: str) -> date | None:
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def is_valid_date(value: str, today: date | None = None) -> bool:
    """True for a well-formed calendar date that is not before today (UTC)."""
    parsed = parse_date(value)
    if parsed is None:
        return False
    return parsed >= (today or utc_today())


def is_valid_time(value: str) -> bool:
    return isinstance(value, str) and TIME_PATTERN.match(value) is not None


def to_minutes(value: str | time) -> int:
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


def from_minutes(total: int) -> str:
    total %= MINUTES_PER_DAY
    return f'{total // 60:02d}:{total % 60:02d}'


def normalize_time(value: str) -> str:
    return from_minutes(to_minutes(value))


def format_time(value: time) -> str:
    return value.strftime('%H:%M')


def parse_time(value: str) -> time:
    total = to_minutes(value)
    return time(total // 60, total % 60)


def is_business_hours(value: str | time) -> bool:
    minutes = to_minutes(value)
    return to_minutes(config.BUSINESS_OPEN_TIME) <= minutes <= to_minutes(config.BUSINESS_CLOSE_TIME)


def add_minutes(value: str | time, minutes: int) -> str:
    return from_minutes(to_minutes(value) + minutes)


def intervals_overlap(start_a: str | time, end_a: str | time, start_b: str | time, end_b: str | time) -> bool:
    # Half-open intervals: touching endpoints do not overlap.
    return to_minutes(start_a) < to_minutes(end_b) and to_minutes(start_b) < to_minutes(end_a)


def day_of_week(value: date | str) -> int:
    if isinstance(value, str):
        value = date.fromisoformat(value)
    # date.weekday() is 0=Monday; shift to 0=Sunday.
    return (value.weekday() + 1) % 7


def weekday_name(day: int) -> str:
    return WEEKDAY_NAMES[day]
