"""Utilities for date, datetime and duration handling."""

import re
from datetime import UTC, date, datetime, time, timedelta

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}


def now_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso(dt: datetime) -> str:
    """Convert datetime to an RFC3339 string, using 'Z' for UTC."""
    return ensure_aware(dt).isoformat().replace("+00:00", "Z")


def from_iso(value: str | datetime) -> datetime:
    """Parse ISO format string to a timezone-aware datetime."""
    if isinstance(value, datetime):
        return ensure_aware(value)
    # Handle both 'Z' suffix and explicit timezone
    return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (YAML loaders may drop the offset)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def parse_date(value: str | date) -> date:
    """
    Parse a civil date in YYYY-MM-DD form.

    Raises:
        ValueError: If the value is not a valid date in that exact form.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not _DATE_PATTERN.match(text):
        raise ValueError(f"invalid date {text!r} (expected YYYY-MM-DD)")
    return date.fromisoformat(text)


def format_date(value: date) -> str:
    """Format a civil date as YYYY-MM-DD."""
    return value.isoformat()


def date_before(value: date, instant: datetime) -> bool:
    """Check whether midnight (local time) of the given date is before instant."""
    return start_of_day(value) < ensure_aware(instant)


def start_of_day(value: date) -> datetime:
    """Local midnight at the start of a civil date."""
    return datetime.combine(value, time()).astimezone()


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string such as "1h", "30m" or "1h30m".

    Raises:
        ValueError: If the string is empty or contains unknown units.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    total = timedelta()
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


def format_duration(value: timedelta) -> str:
    """Format a duration as "2d 3h" or "5h 30m"."""
    total_minutes = max(0, int(value.total_seconds() // 60))
    days, rem = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rem, 60)
    if days > 0:
        return f"{days}d {hours}h"
    return f"{hours}h {minutes}m"


def format_age(value: timedelta) -> str:
    """Format a duration as a short age label ("3d", "5h", "12m")."""
    seconds = max(0, int(value.total_seconds()))
    if seconds >= 86400:
        return f"{seconds // 86400}d"
    if seconds >= 3600:
        return f"{seconds // 3600}h"
    return f"{seconds // 60}m"
