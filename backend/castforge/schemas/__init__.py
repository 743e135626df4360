"""Pydantic v2 schemas package."""

from castforge.schemas.configuration import (
    ConfigurationCreate,
    ConfigurationRead,
    ConfigurationUpdate,
)
from castforge.schemas.jobs import (
    JobCreate,
    JobHandle,
    JobKind,
    JobRead,
    JobSpec,
    JobState,
    JobStatus,
    NormalizedResult,
    Vendor,
)
from castforge.schemas.relay import RelayRequest
from castforge.schemas.webhook import WebhookConfig

__all__ = [
    "ConfigurationCreate",
    "ConfigurationRead",
    "ConfigurationUpdate",
    "JobCreate",
    "JobHandle",
    "JobKind",
    "JobRead",
    "JobSpec",
    "JobState",
    "JobStatus",
    "NormalizedResult",
    "Vendor",
    "RelayRequest",
    "WebhookConfig",
]
