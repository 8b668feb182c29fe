# src/letitout/models/mood_log.py
"""SQLAlchemy model for daily mood check-ins."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from letitout.db.session import Base
from letitout.db.time import utcnow

MOOD_LEVELS = ("Great", "Good", "Okay", "Meh", "Low")


class MoodLog(Base):
    """One mood entry per calendar day on this device."""

    __tablename__ = "mood_log"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Calendar-day key (YYYY-MM-DD); the unique constraint carries the one-per-day rule.
    date: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    mood_level: Mapped[str] = mapped_column(String(16), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
