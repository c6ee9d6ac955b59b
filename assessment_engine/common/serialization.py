"""
Serialization helpers

Conversions between wire values (ISO-8601 strings, loosely typed numbers)
and the Python values used by the domain models.
"""

import datetime
from typing import Any, Optional


def parse_datetime(value: Any) -> Optional[datetime.datetime]:
    """
    Parse an ISO-8601 string (or pass through a datetime/date).

    A trailing ``Z`` is accepted as UTC. Returns None for None or ''.

    Raises:
        ValueError: If the value cannot be interpreted as a date/time
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.datetime.fromisoformat(text)
    raise ValueError(f"Invalid date value: {value!r}")


def format_datetime(value: Optional[datetime.datetime]) -> Optional[str]:
    """Render a datetime as ISO-8601, or None."""
    return value.isoformat() if value is not None else None


def as_naive_utc(value: datetime.datetime) -> datetime.datetime:
    """Normalize aware datetimes to naive UTC so they compare with naive ones."""
    if value.tzinfo is not None:
        return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value


def is_number(value: Any) -> bool:
    """True for ints and floats, excluding bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)
