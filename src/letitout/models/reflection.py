# src/letitout/models/reflection.py
"""SQLAlchemy model for reflections attached to vents."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from letitout.db.session import Base
from letitout.db.time import utcnow


class Reflection(Base):
    """Generated commentary for a vent; written once per vent."""

    __tablename__ = "reflection"

    vent_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
