# src/letitout/models/vent.py
"""SQLAlchemy model for vents (posts) authored or cached on this device."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from letitout.db.session import Base
from letitout.db.time import utcnow

DEFAULT_HANDLE = "Anonymous"
DEFAULT_MOOD = 5


class Vent(Base):
    """A single anonymous entry, either a local draft or a published post."""

    __tablename__ = "vent"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Room reference as the author picked it: a room id or a bare room name.
    room: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    anonymous_handle: Mapped[str] = mapped_column(
        String(64), nullable=False, default=DEFAULT_HANDLE
    )
    device_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    mood_before: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_MOOD)
    mood_after: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_MOOD)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    is_draft: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    # Backend id, set once the remote create has been confirmed.
    remote_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
