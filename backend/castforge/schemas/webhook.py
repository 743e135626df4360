from __future__ import annotations
"""Pydantic v2 schemas for the outbound workflow webhook (n8n or any HTTP endpoint)."""

from typing import Any

from pydantic import BaseModel, Field


class WebhookConfig(BaseModel):
    """Which pipeline events are posted to the webhook, and where."""

    enabled: bool = False
    webhook_url: str = Field("", alias="webhookUrl")
    trigger_on_script_generated: bool = Field(True, alias="triggerOnScriptGenerated")
    trigger_on_audio_generated: bool = Field(True, alias="triggerOnAudioGenerated")
    trigger_on_video_generated: bool = Field(True, alias="triggerOnVideoGenerated")
    trigger_on_workflow_complete: bool = Field(True, alias="triggerOnWorkflowComplete")
    custom_headers: dict[str, str] = Field(default_factory=dict, alias="customHeaders")

    model_config = {"populate_by_name": True}


class WebhookTestRequest(BaseModel):
    """Test delivery; uses the server config when no override is given."""

    config: WebhookConfig | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class WebhookTestResponse(BaseModel):
    delivered: bool
