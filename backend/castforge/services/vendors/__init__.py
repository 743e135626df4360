"""Vendor adapters for asynchronous media generation.

Each vendor module owns its request shape, defaults and status mapping and
exposes a client with the job-driver methods:
  create(spec) → task id · get_status(task id) → raw response
  parse_status(raw) → JobStatus · media_url(raw) → URL
"""

from castforge.schemas.jobs import Vendor
from castforge.services import tts_service
from castforge.services.vendors import joggai, kling, replicate, tavus
from castforge.services.vendors.joggai import JoggAiClient
from castforge.services.vendors.kling import KlingClient
from castforge.services.vendors.replicate import ReplicateClient
from castforge.services.vendors.tavus import TavusClient

RELAY_TARGETS = {
    Vendor.JOGGAI: joggai.RELAY_TARGET,
    Vendor.KLING: kling.RELAY_TARGET,
    Vendor.TAVUS: tavus.RELAY_TARGET,
    Vendor.REPLICATE: replicate.RELAY_TARGET,
    Vendor.ELEVENLABS: tts_service.RELAY_TARGET,
}

VIDEO_CLIENTS = {
    Vendor.JOGGAI: JoggAiClient,
    Vendor.KLING: KlingClient,
    Vendor.TAVUS: TavusClient,
    Vendor.REPLICATE: ReplicateClient,
}

__all__ = [
    "RELAY_TARGETS",
    "VIDEO_CLIENTS",
    "JoggAiClient",
    "KlingClient",
    "ReplicateClient",
    "TavusClient",
]
