"""SQLAlchemy model for the offline action queue."""

from datetime import datetime
from typing import Any

from sqlalchemy import CHAR, JSON, VARCHAR, DateTime, Integer, SmallInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from letitout.db.session import Base
from letitout.db.time import utcnow

ACTION_STATUS_PENDING = "pending"
ACTION_STATUS_REJECTED = "rejected"


class OfflineAction(Base):
    """A remote operation recorded while the backend was unreachable.

    Rows are replayed in ascending ``id`` order and deleted once the backend
    confirms the operation.
    """

    __tablename__ = "offline_action"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)  # e.g. 'vent'
    operation: Mapped[str] = mapped_column(Text, nullable=False)  # e.g. 'create'
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    # BLAKE3 hex digest of the entry, sent as the Idempotency-Key header on replay.
    idempotency_key: Mapped[str] = mapped_column(CHAR(64), nullable=False)
    status: Mapped[str] = mapped_column(
        VARCHAR(20), nullable=False, default=ACTION_STATUS_PENDING, index=True
    )  # 'pending', 'rejected'
    attempt_count: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    enqueued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
