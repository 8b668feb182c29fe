# src/letitout/models/comment.py
"""SQLAlchemy model for comments written on this device."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from letitout.db.session import Base
from letitout.db.time import utcnow


class Comment(Base):
    """Reply to a vent, stored locally before it reaches the backend."""

    __tablename__ = "comment"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    vent_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    anonymous_handle: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
