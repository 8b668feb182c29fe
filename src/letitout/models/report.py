# src/letitout/models/report.py
"""SQLAlchemy model for content reports filed from this device."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from letitout.db.session import Base
from letitout.db.time import utcnow

REPORT_REASONS = ("harassment", "hate_speech", "spam", "inappropriate", "other")


class Report(Base):
    __tablename__ = "report"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    vent_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    anonymous_handle: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
