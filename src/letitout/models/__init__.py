# src/letitout/models/__init__.py
"""SQLAlchemy models for the local store."""

from .comment import Comment
from .device_state import DeviceState
from .mood_log import MoodLog
from .moderation import BlockedUser, HiddenPost
from .offline_action import OfflineAction
from .reaction import Reaction
from .reflection import Reflection
from .report import Report
from .room import Room
from .vent import Vent

__all__ = [
    "Comment",
    "DeviceState",
    "MoodLog",
    "BlockedUser", "HiddenPost",
    "OfflineAction",
    "Reaction",
    "Reflection",
    "Report",
    "Room",
    "Vent",
]
