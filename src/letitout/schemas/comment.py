# src/letitout/schemas/comment.py
"""Comment-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from letitout.core.validation import MAX_COMMENT_LENGTH


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=MAX_COMMENT_LENGTH)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    vent_id: str
    text: str
    anonymous_handle: str
    created_at: datetime
    is_local: bool = False
