from __future__ import annotations
"""Pydantic v2 schemas for finished-video exports and edit plans."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class DriveExportRequest(BaseModel):
    video_url: str = Field(..., min_length=1, alias="videoUrl")
    folder_id: str | None = Field(None, alias="folderId")
    file_name: str | None = Field(None, alias="fileName")

    model_config = {"populate_by_name": True}


class DriveExportResponse(BaseModel):
    """Upload outcome; ``success`` is False when Drive is not configured."""

    success: bool
    file_id: str | None = Field(None, serialization_alias="fileId")
    file_name: str | None = Field(None, serialization_alias="fileName")
    drive_url: str | None = Field(None, serialization_alias="driveUrl")
    video_url: str | None = Field(None, serialization_alias="videoUrl")
    error: str | None = None
    message: str = ""
    setup_instructions: list[str] = Field(default_factory=list, serialization_alias="setupInstructions")


class EditPlanRequest(BaseModel):
    video_url: str = Field(..., min_length=1, alias="videoUrl")
    caption_text: str | None = Field(None, alias="captionText")
    caption_style: str = Field("modern", alias="captionStyle")
    music_genre: Literal["upbeat", "chill", "cinematic", "corporate", "none"] = Field("none", alias="musicGenre")

    model_config = {"populate_by_name": True}


class EditPlanResponse(BaseModel):
    video_url: str = Field(..., serialization_alias="videoUrl")
    original_url: str = Field(..., serialization_alias="originalUrl")
    edits: dict[str, Any]
    message: str
