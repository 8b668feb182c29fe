# src/letitout/db/time.py
"""Time utilities for database models and ordering."""

from __future__ import annotations

from datetime import UTC, date, datetime

# JavaScript clients send epoch milliseconds; anything above this is treated as ms.
_EPOCH_MS_THRESHOLD = 10_000_000_000


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def today_key() -> str:
    """Return today's calendar-day key (``YYYY-MM-DD``) in UTC."""
    return utcnow().date().isoformat()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: datetime | date | str | int | float | None) -> datetime:
    """Normalize the timestamp shapes seen from the store and the backend.

    Accepts datetimes, ISO-8601 strings (with or without ``Z``), calendar
    dates and epoch numbers in seconds or milliseconds. Raises ``ValueError``
    for anything else.
    """
    if value is None:
        raise ValueError("timestamp is missing")
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, int | float):
        seconds = value / 1000 if abs(value) >= _EPOCH_MS_THRESHOLD else value
        return datetime.fromtimestamp(seconds, UTC)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def sort_key(value: datetime | date | str | int | float | None) -> float:
    """Return a numeric ordering key; unparseable values sort as the oldest."""
    try:
        return parse_timestamp(value).timestamp()
    except (TypeError, ValueError, OverflowError):
        return float("-inf")
