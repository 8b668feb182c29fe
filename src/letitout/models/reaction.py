# src/letitout/models/reaction.py
"""SQLAlchemy model for reactions left from this device."""

from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from letitout.db.session import Base
from letitout.db.time import utcnow

REACTION_TYPES = ("support", "empathy")


class Reaction(Base):
    """One handle's reaction of one type on a vent; toggling removes the row."""

    __tablename__ = "reaction"
    __table_args__ = (UniqueConstraint("vent_id", "type", "anonymous_handle"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    vent_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    anonymous_handle: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
