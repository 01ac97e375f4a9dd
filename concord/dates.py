"""Deadline helpers.

Deadlines are ISO 8601 strings: either a bare date (``2026-12-31``) or
a full datetime. A bare date is read as midnight UTC at the start of
that day, so a deadline of today has already passed.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta


def add_business_days(days: int, start: date | None = None) -> date:
    """Return the date ``days`` business days after ``start``, skipping weekends."""
    result = start or datetime.now(UTC).date()
    added = 0
    while added < days:
        result += timedelta(days=1)
        if result.weekday() < 5:
            added += 1
    return result


def default_deadline(business_days: int = 5, start: date | None = None) -> str:
    """Default deadline as ``YYYY-MM-DD``."""
    return add_business_days(business_days, start).isoformat()


def parse_deadline(deadline: str) -> datetime:
    """Parse a deadline string into an aware UTC datetime.

    Raises:
        ValueError: If the string is not an ISO 8601 date or datetime.
    """
    value = deadline.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_deadline_passed(deadline: str, now: datetime | None = None) -> bool:
    """Whether ``now`` is at or after the deadline."""
    current = now or datetime.now(UTC)
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    return current >= parse_deadline(deadline)


def format_date(value: datetime | date | str) -> str:
    """Format a date, datetime, or ISO string as ``YYYY-MM-DD``."""
    if isinstance(value, str):
        return parse_deadline(value).date().isoformat()
    if isinstance(value, datetime):
        return value.date().isoformat()
    return value.isoformat()
