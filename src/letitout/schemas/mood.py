# src/letitout/schemas/mood.py
"""Mood log Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MoodLevel = Literal["Great", "Good", "Okay", "Meh", "Low"]


class MoodLogCreate(BaseModel):
    """Schema for recording a daily mood check-in."""

    mood_level: MoodLevel
    note: str | None = Field(None, max_length=1000)
    date: str | None = Field(None, description="Calendar day (YYYY-MM-DD); defaults to today")


class MoodLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    date: str
    mood_level: str
    note: str | None = None
