from __future__ import annotations
"""Pydantic v2 schemas for vendor generation jobs."""

import enum
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class Vendor(str, enum.Enum):
    """Third-party generation vendors reachable through the relay."""

    JOGGAI = "joggai"
    KLING = "kling"
    TAVUS = "tavus"
    REPLICATE = "replicate"
    ELEVENLABS = "elevenlabs"


class JobKind(str, enum.Enum):
    AUDIO = "audio"
    AVATAR_VIDEO = "avatar-video"
    TEXT_TO_VIDEO = "text-to-video"
    IMAGE_TO_VIDEO = "image-to-video"
    LIP_SYNC = "lip-sync"


class JobState(str, enum.Enum):
    """Normalized job lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)


class JobSpec(BaseModel):
    """Vendor-agnostic description of requested work. Frozen once built."""

    kind: JobKind
    vendor: Vendor
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class JobHandle(BaseModel):
    """Returned by a vendor create-call; key for all status queries."""

    task_id: str
    vendor: Vendor
    kind: JobKind
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class JobStatus(BaseModel):
    """One status snapshot, parsed from a vendor status response."""

    state: JobState
    vendor_state: str | None = None
    progress: float | str | None = None
    result_url: str | None = None
    error_message: str | None = None

    @model_validator(mode="after")
    def _fields_match_state(self) -> "JobStatus":
        if self.state != JobState.SUCCEEDED:
            self.result_url = None
        if self.state != JobState.FAILED:
            self.error_message = None
        return self


class NormalizedResult(BaseModel):
    """Terminal output of a job: exactly one of media_url / error is set."""

    ok: bool
    media_url: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "NormalizedResult":
        if self.ok and (not self.media_url or self.error is not None):
            raise ValueError("successful result needs media_url and no error")
        if not self.ok and (not self.error or self.media_url is not None):
            raise ValueError("failed result needs error and no media_url")
        return self


# ---------------------------------------------------------------------------
# API request/response models
# ---------------------------------------------------------------------------

class JobCreate(BaseModel):
    """Schema for starting a job through the API."""

    kind: JobKind
    vendor: Vendor
    payload: dict[str, Any] = Field(default_factory=dict)
    api_key: str | None = Field(None, alias="apiKey")
    max_attempts: int | None = Field(None, ge=1, le=2000)
    interval_seconds: float | None = Field(None, ge=0.0, le=120.0)

    model_config = {"populate_by_name": True}

    def to_spec(self) -> JobSpec:
        return JobSpec(kind=self.kind, vendor=self.vendor, payload=self.payload)


class AdVideoCreate(BaseModel):
    """Schema for an ad video; the vendor is chosen by fallback."""

    prompt: str = Field(..., min_length=1)
    aspect_ratio: Literal["16:9", "9:16", "1:1"] = Field("16:9", alias="aspectRatio")
    max_attempts: int | None = Field(None, ge=1, le=2000)
    interval_seconds: float | None = Field(None, ge=0.0, le=120.0)

    model_config = {"populate_by_name": True}


class JobRead(BaseModel):
    """Schema for reading a registered job."""

    job_id: str
    kind: JobKind
    vendor: Vendor
    state: str
    task_id: str | None = None
    result: NormalizedResult | None = None
    created_at: datetime
    updated_at: datetime
