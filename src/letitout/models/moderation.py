# src/letitout/models/moderation.py
"""Device-local moderation lists: hidden posts and blocked handles."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from letitout.db.session import Base
from letitout.db.time import utcnow


class HiddenPost(Base):
    """A vent id the viewer chose not to see again."""

    __tablename__ = "hidden_post"

    vent_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    hidden_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class BlockedUser(Base):
    """An anonymous handle whose vents and comments are filtered out."""

    __tablename__ = "blocked_user"

    handle: Mapped[str] = mapped_column(String(64), primary_key=True)
    blocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
