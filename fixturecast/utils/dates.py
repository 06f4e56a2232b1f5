"""Date helpers for target-date handling (all dates are UTC calendar days)."""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidDateError(ValueError):
    """Raised when a target date is not a valid YYYY-MM-DD string."""

    def __init__(self, provided: str, message: Optional[str] = None):
        self.provided = provided
        super().__init__(message or f"Invalid date format (expected YYYY-MM-DD): {provided!r}")


def utc_now() -> datetime:
    """Get current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


def parse_target_date(value: Optional[str]) -> str:
    """Validate a YYYY-MM-DD string, defaulting to today (UTC).

    Returns the normalized ISO string used in store keys.
    """
    if value is None or value == "":
        return utc_today().isoformat()
    if not _DATE_RE.match(value):
        raise InvalidDateError(value)
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        raise InvalidDateError(value)


def previous_day(value: Optional[str] = None) -> str:
    """Day before `value` (or before today)."""
    base = date.fromisoformat(parse_target_date(value)) if value else utc_today()
    return (base - timedelta(days=1)).isoformat()


def date_range(start: str, end: str) -> list[str]:
    """Inclusive list of ISO dates from start to end."""
    first = date.fromisoformat(parse_target_date(start))
    last = date.fromisoformat(parse_target_date(end))
    days = []
    cursor = first
    while cursor <= last:
        days.append(cursor.isoformat())
        cursor += timedelta(days=1)
    return days


def last_n_days(n: int, today: Optional[date] = None) -> list[str]:
    """The n days before today, most recent first (today excluded)."""
    today = today or utc_today()
    return [(today - timedelta(days=i)).isoformat() for i in range(1, n + 1)]


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp (accepts trailing Z). Returns aware UTC or None."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
