from __future__ import annotations
"""Pydantic v2 schemas for saved podcast configurations."""

from datetime import datetime

from pydantic import BaseModel, Field


class ConfigurationCreate(BaseModel):
    """Schema for saving a new podcast configuration."""

    name: str = Field(..., min_length=1, max_length=255)
    topics: str | None = None
    speaker_background: str | None = None
    podcast_structure: str | None = None
    text_style: str | None = None
    duration_minutes: int | None = Field(None, ge=1, le=60)
    script: str | None = None
    audio_url: str | None = None
    video_url: str | None = None


class ConfigurationUpdate(BaseModel):
    """Schema for updating a saved configuration; unset fields are kept."""

    name: str | None = Field(None, max_length=255)
    topics: str | None = None
    speaker_background: str | None = None
    podcast_structure: str | None = None
    text_style: str | None = None
    duration_minutes: int | None = Field(None, ge=1, le=60)
    script: str | None = None
    audio_url: str | None = None
    video_url: str | None = None


class ConfigurationRead(BaseModel):
    """Schema for reading a saved configuration."""

    id: str
    name: str
    topics: str | None = None
    speaker_background: str | None = None
    podcast_structure: str | None = None
    text_style: str | None = None
    duration_minutes: int | None = None
    script: str | None = None
    audio_url: str | None = None
    video_url: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
