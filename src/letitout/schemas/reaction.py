# src/letitout/schemas/reaction.py
"""Reaction and report Pydantic schemas."""

from pydantic import BaseModel, Field

from letitout.core.validation import MAX_REPORT_DESCRIPTION_LENGTH
from letitout.models.reaction import REACTION_TYPES
from letitout.schemas.vent import PublishResponse


class ReactionToggle(BaseModel):
    type: str = Field(..., description=f"One of: {', '.join(REACTION_TYPES)}")


class ReactionToggleResponse(PublishResponse):
    """Outcome of a toggle; ``active`` is the reaction state after it."""

    active: bool


class ReactionSummaryResponse(BaseModel):
    vent_id: str
    counts: dict[str, int]
    mine: list[str]
    is_local: bool = False


class ReportCreate(BaseModel):
    reason: str
    description: str | None = Field(None, max_length=MAX_REPORT_DESCRIPTION_LENGTH)
