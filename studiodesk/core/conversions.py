"""Conversion helpers for common type coercion."""

from datetime import date, datetime, time, tzinfo
from typing import Optional


def coerce_int(value: object) -> Optional[int]:
    """Return an int for valid string/int inputs, otherwise None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    return None


def coerce_datetime(value: object, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Return an aware datetime for ISO-8601 strings or datetimes, otherwise None.

    Naive values are interpreted in ``tz`` (left naive when no zone is given).
    A trailing ``Z`` is accepted as UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None and tz is not None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def coerce_date(value: object) -> Optional[date]:
    """Return a date for ``YYYY-MM-DD`` strings, dates or datetimes, otherwise None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        # Accept full ISO timestamps too, the date part is what matters
        text = value.strip()[:10]
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None
    return None


def coerce_time(value: object) -> Optional[time]:
    """Return a time for ``HH:MM`` / ``HH:MM:SS`` strings or times, otherwise None."""
    if value is None:
        return None
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        try:
            return time.fromisoformat(value.strip())
        except ValueError:
            return None
    return None
