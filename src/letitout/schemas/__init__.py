# src/letitout/schemas/__init__.py
"""
Pydantic schemas for API request/response models and backend payloads.
"""

from .comment import CommentCreate, CommentResponse
from .mood import MoodLogCreate, MoodLogResponse
from .reaction import (
    ReactionSummaryResponse,
    ReactionToggle,
    ReactionToggleResponse,
    ReportCreate,
)
from .room import RoomCreate, RoomResponse
from .sync import (
    BlockUserRequest,
    FlushResponse,
    HidePostRequest,
    IdentityResponse,
    SyncStatusResponse,
)
from .vent import DraftResponse, FeedResponse, FeedVentResponse, PublishResponse, VentCreate

__all__ = [
    "CommentCreate", "CommentResponse",
    "MoodLogCreate", "MoodLogResponse",
    "ReactionSummaryResponse", "ReactionToggle", "ReactionToggleResponse", "ReportCreate",
    "RoomCreate", "RoomResponse",
    "BlockUserRequest", "FlushResponse", "HidePostRequest", "IdentityResponse",
    "SyncStatusResponse",
    "DraftResponse", "FeedResponse", "FeedVentResponse", "PublishResponse", "VentCreate",
]
