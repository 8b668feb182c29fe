# src/letitout/schemas/remote.py
"""Pydantic models for payloads exchanged with the remote backend."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from letitout.db.time import parse_timestamp
from letitout.models.vent import DEFAULT_HANDLE, DEFAULT_MOOD


class _RemoteModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RemoteRoom(_RemoteModel):
    """Room as listed by the backend catalog."""

    id: str
    name: str
    description: str | None = None


class EmbeddedRoom(_RemoteModel):
    """Room reference carried inside a vent; the backend may send only a name."""

    id: str | None = None
    name: str | None = None


class RemoteVent(_RemoteModel):
    """Vent as returned by the backend."""

    id: str
    room_id: str | None = Field(default=None, alias="roomId")
    room: EmbeddedRoom | None = None
    text: str
    anonymous_handle: str = Field(default=DEFAULT_HANDLE, alias="anonymousHandle")
    device_id: str | None = Field(default=None, alias="deviceId")
    mood_before: int = Field(default=DEFAULT_MOOD, alias="moodBefore")
    mood_after: int = Field(default=DEFAULT_MOOD, alias="moodAfter")
    created_at: datetime = Field(alias="createdAt")
    reflection: str | None = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _normalize_created_at(cls, value: Any) -> datetime:
        return parse_timestamp(value)

    @field_validator("room", mode="before")
    @classmethod
    def _room_from_bare_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            name = value.strip()
            return {"id": None, "name": name} if name else None
        return value

    @field_validator("anonymous_handle", mode="before")
    @classmethod
    def _default_handle(cls, value: Any) -> Any:
        return value or DEFAULT_HANDLE


class RemoteVentPage(_RemoteModel):
    """Result of ``GET /vents``."""

    vents: list[RemoteVent] = Field(default_factory=list)
    total: int = 0


class RemoteComment(_RemoteModel):
    id: str
    vent_id: str = Field(alias="ventId")
    text: str
    anonymous_handle: str = Field(default=DEFAULT_HANDLE, alias="anonymousHandle")
    created_at: datetime = Field(alias="createdAt")

    @field_validator("created_at", mode="before")
    @classmethod
    def _normalize_created_at(cls, value: Any) -> datetime:
        return parse_timestamp(value)


class RemoteMoodLog(_RemoteModel):
    id: str
    device_id: str | None = Field(default=None, alias="deviceId")
    date: str
    mood_level: str = Field(alias="moodLevel")
    note: str | None = None


class RemoteReaction(_RemoteModel):
    id: str
    vent_id: str = Field(alias="ventId")
    type: str
    anonymous_handle: str = Field(default=DEFAULT_HANDLE, alias="anonymousHandle")
    created_at: datetime = Field(alias="createdAt")

    @field_validator("created_at", mode="before")
    @classmethod
    def _normalize_created_at(cls, value: Any) -> datetime:
        return parse_timestamp(value)


class RemoteReport(_RemoteModel):
    """Acknowledgement of a content report."""

    id: str
    vent_id: str = Field(alias="ventId")
    reason: str
    description: str | None = None
