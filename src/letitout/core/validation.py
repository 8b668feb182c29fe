"""Payload checks applied before anything reaches the store or the backend."""

from __future__ import annotations

from datetime import date

from letitout.core.errors import ValidationFailure
from letitout.models.mood_log import MOOD_LEVELS
from letitout.models.reaction import REACTION_TYPES
from letitout.models.report import REPORT_REASONS

MAX_VENT_LENGTH = 2000
MAX_COMMENT_LENGTH = 500
MAX_HANDLE_LENGTH = 64
MAX_REPORT_DESCRIPTION_LENGTH = 500
MIN_MOOD = 1
MAX_MOOD = 10


def clean_text(text: str | None, *, field: str = "text", max_length: int = MAX_VENT_LENGTH) -> str:
    """Return ``text`` stripped, or raise if it is empty or too long."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationFailure(f"{field} is required")
    if len(cleaned) > max_length:
        raise ValidationFailure(f"{field} must be at most {max_length} characters")
    return cleaned


def check_mood(value: int, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailure(f"{field} must be an integer")
    if not MIN_MOOD <= value <= MAX_MOOD:
        raise ValidationFailure(f"{field} must be between {MIN_MOOD} and {MAX_MOOD}")
    return value


def check_mood_level(level: str) -> str:
    if level not in MOOD_LEVELS:
        raise ValidationFailure(f"mood level must be one of {', '.join(MOOD_LEVELS)}")
    return level


def check_date_key(value: str) -> str:
    """Return ``value`` if it is a real ``YYYY-MM-DD`` calendar day."""
    try:
        parsed = date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailure(f"invalid date key: {value!r}") from exc
    # fromisoformat also accepts compact forms like 20240101; keys stay canonical.
    if parsed.isoformat() != value:
        raise ValidationFailure(f"invalid date key: {value!r}")
    return value


def check_handle(handle: str) -> str:
    cleaned = (handle or "").strip()
    if not cleaned or len(cleaned) > MAX_HANDLE_LENGTH:
        raise ValidationFailure("handle must be 1-64 characters")
    return cleaned


def check_reaction_type(value: str) -> str:
    if value not in REACTION_TYPES:
        raise ValidationFailure(f"reaction type must be one of {', '.join(REACTION_TYPES)}")
    return value


def check_report_reason(value: str) -> str:
    if value not in REPORT_REASONS:
        raise ValidationFailure(f"report reason must be one of {', '.join(REPORT_REASONS)}")
    return value
