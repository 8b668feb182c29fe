# src/letitout/api/v1/endpoints/__init__.py
"""API endpoint routers."""

from .feed import router as feed_router
from .moderation import router as moderation_router
from .mood import router as mood_router
from .sync import router as sync_router
from .vents import router as vents_router

__all__ = [
    "feed_router",
    "moderation_router",
    "mood_router",
    "sync_router",
    "vents_router",
]
