# src/letitout/api/v1/endpoints/mood.py
"""Mood log endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query, status

from letitout.api.deps import EngineDep
from letitout.schemas import MoodLogCreate, MoodLogResponse, PublishResponse

router = APIRouter(prefix="/mood-logs", tags=["mood"])


@router.get("", response_model=list[MoodLogResponse])
async def mood_history(
    engine: EngineDep,
    days: Annotated[int | None, Query(ge=1, le=366)] = None,
) -> list[MoodLogResponse]:
    """Return mood logs for the trailing window, oldest first."""
    logs = await engine.load_mood_history(days)
    return [MoodLogResponse.model_validate(log) for log in logs]


@router.post("", response_model=PublishResponse, status_code=status.HTTP_201_CREATED)
async def log_mood(payload: MoodLogCreate, engine: EngineDep) -> PublishResponse:
    """Record the mood for a day, replacing any earlier entry for that day."""
    log, outcome = await engine.log_mood(payload.mood_level, payload.note, date=payload.date)
    return PublishResponse(
        id=log.id,
        status=outcome.status.value,
        message=outcome.message,
        remote_id=outcome.remote_id,
    )
