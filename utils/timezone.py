"""UTC-everywhere time handling for financial records."""

import calendar
from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere. Issuance timestamps,
    audit entries and receipt times all come from here.
    """
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Current calendar date in UTC."""
    return now_utc().date()


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def add_years(start: date, years: int) -> date:
    """
    Add whole calendar years to a date.

    February 29th rolls back to February 28th when the target year
    is not a leap year.
    """
    if isinstance(start, datetime):
        start = start.date()

    target_year = start.year + years
    day = start.day
    if start.month == 2 and day == 29 and not calendar.isleap(target_year):
        day = 28
    return start.replace(year=target_year, day=day)
