"""UTC day helpers.

Conventions:
- Days are ``datetime.date`` values in code and ``YYYY-MM-DD`` strings in storage
- Timestamps are timezone-aware UTC datetimes, stored with microseconds so that
  string order matches chronological order
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


class DateParseError(ValueError):
    """Raised when a day string is not YYYY-MM-DD."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid date format '{value}'. Use YYYY-MM-DD")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach or convert to UTC. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_day(value: date | datetime) -> date:
    """Normalise a date or datetime to its UTC calendar day."""
    if isinstance(value, datetime):
        return as_utc(value).date()
    return value


def start_of_day(value: date | datetime) -> datetime:
    """00:00:00 UTC of the given day."""
    return datetime.combine(to_day(value), time.min, tzinfo=timezone.utc)


def day_bounds(value: date | datetime) -> tuple[datetime, datetime]:
    """Half-open interval [day 00:00, next day 00:00)."""
    start = start_of_day(value)
    return start, start + timedelta(days=1)


def yesterday(now: datetime | None = None) -> date:
    """The UTC day before ``now``."""
    return to_day(now or utc_now()) - timedelta(days=1)


def to_iso(value: datetime) -> str:
    """Serialise a timestamp for storage."""
    return as_utc(value).isoformat(timespec="microseconds")


def day_key(value: date | datetime) -> str:
    """YYYY-MM-DD for a day."""
    return to_day(value).isoformat()


def parse_day(value: str) -> date:
    """Parse YYYY-MM-DD.

    Raises:
        DateParseError: If the string is not a valid calendar day
    """
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise DateParseError(value) from None


def iter_days(start: date, end: date):
    """Yield every day in the inclusive range."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
