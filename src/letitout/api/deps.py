"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from letitout.services.engine import SyncEngine


def get_engine(request: Request) -> SyncEngine:
    """Return the engine created at application startup."""
    return request.app.state.engine


EngineDep = Annotated[SyncEngine, Depends(get_engine)]
