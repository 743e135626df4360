from __future__ import annotations
"""Pydantic v2 schemas for script, prompt and speech endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class PodcastScriptConfig(BaseModel):
    """Editorial settings that shape a generated script."""

    topics: str = Field(..., min_length=1)
    speaker_background: str = ""
    podcast_structure: str = ""
    text_style: str = ""

    model_config = {"populate_by_name": True}


class ScriptRequest(BaseModel):
    config: PodcastScriptConfig
    duration: int = Field(5, ge=1, le=60, description="Target length in minutes")
    variant_count: int = Field(3, ge=1, le=5, alias="variantCount")

    model_config = {"populate_by_name": True}


class ScriptVariant(BaseModel):
    id: int | str
    content: str


class ScriptResponse(BaseModel):
    variants: list[ScriptVariant]


class OptimizeRequest(BaseModel):
    script: str = Field(..., min_length=1)
    config: PodcastScriptConfig | None = None


class OptimizeResponse(BaseModel):
    optimized_script: str = Field(..., serialization_alias="optimizedScript")


class PromptEnhanceRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    target_model: str = Field("sora", alias="targetModel")

    model_config = {"populate_by_name": True}


class PromptEnhanceResponse(BaseModel):
    enhanced_prompt: str = Field(..., serialization_alias="enhancedPrompt")


class AudioRequest(BaseModel):
    script: str = Field(..., min_length=1)
    voice_id: str | None = Field(None, alias="voiceId")

    model_config = {"populate_by_name": True}


class AudioResponse(BaseModel):
    audio_content: str = Field(..., serialization_alias="audioContent")


class VoiceRead(BaseModel):
    voice_id: str
    name: str
    category: str | None = None
    description: str | None = None
    labels: dict[str, Any] | None = None
    preview_url: str | None = None
