# src/letitout/models/device_state.py
"""Key/value rows for per-install state such as the device identity."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from letitout.db.session import Base

DEVICE_ID_KEY = "device_id"
HANDLE_KEY = "anonymous_handle"
SEEDED_KEY = "seeded"


class DeviceState(Base):
    """Durable per-install setting."""

    __tablename__ = "device_state"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
