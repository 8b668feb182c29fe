# src/letitout/schemas/vent.py
"""Vent and feed Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from letitout.core.validation import MAX_MOOD, MAX_VENT_LENGTH, MIN_MOOD


class VentCreate(BaseModel):
    """Schema for composing a new vent."""

    text: str = Field(..., min_length=1, max_length=MAX_VENT_LENGTH, description="Vent body")
    room: str | None = Field(None, description="Room id or room name")
    mood_before: int = Field(5, ge=MIN_MOOD, le=MAX_MOOD)
    mood_after: int = Field(5, ge=MIN_MOOD, le=MAX_MOOD)
    as_draft: bool = Field(False, description="Keep the vent private as a draft")


class FeedVentResponse(BaseModel):
    """Schema for a vent shown in a feed."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    room_id: str | None
    room_name: str
    text: str
    anonymous_handle: str
    mood_before: int
    mood_after: int
    created_at: datetime
    reflection: str | None = None
    remote_id: str | None = None
    is_local: bool = False


class FeedResponse(BaseModel):
    source: str
    vents: list[FeedVentResponse]


class DraftResponse(BaseModel):
    """Schema for a vent stored on this device."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    room: str | None
    text: str
    anonymous_handle: str
    mood_before: int
    mood_after: int
    created_at: datetime
    is_draft: bool
    remote_id: str | None = None


class PublishResponse(BaseModel):
    """Outcome of a local-first write."""

    id: str
    status: str
    message: str
    remote_id: str | None = None
