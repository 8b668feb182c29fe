# src/letitout/schemas/sync.py
"""Schemas for sync status, moderation actions and identity."""

from pydantic import BaseModel, Field


class FlushResponse(BaseModel):
    replayed: int
    rejected: int
    blocked_action_id: int | None = None
    offline: bool
    completed: bool


class SyncStatusResponse(BaseModel):
    connectivity: str
    circuit: str
    pending_actions: int
    rejected_actions: int
    flushing: bool


class HidePostRequest(BaseModel):
    vent_id: str = Field(..., min_length=1)


class BlockUserRequest(BaseModel):
    handle: str = Field(..., min_length=1, max_length=64)


class IdentityResponse(BaseModel):
    device_id: str
    anonymous_handle: str
