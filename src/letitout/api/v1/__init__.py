# src/letitout/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    feed_router,
    moderation_router,
    mood_router,
    sync_router,
    vents_router,
)

__all__ = [
    "feed_router",
    "vents_router",
    "moderation_router",
    "mood_router",
    "sync_router",
]
