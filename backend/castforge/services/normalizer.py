"""Result normalizer: one result shape for every vendor.

Maps a vendor's terminal success response, or the error that ended a job,
into ``NormalizedResult {ok, media_url, error}``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from castforge.errors import (
    CastForgeError,
    GenerationFailedError,
    PollingCancelledError,
    PollingTimeoutError,
)
from castforge.schemas.jobs import NormalizedResult, Vendor
from castforge.services.vendors import joggai, kling, replicate, tavus

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Generation is taking longer than expected. Please check again later."
CANCELLED_MESSAGE = "Generation was cancelled."
FALLBACK_MESSAGE = "Generation failed for an unknown reason."


def audio_media_url(response: dict[str, Any]) -> str | None:
    """ElevenLabs audio is delivered inline as a Base64 data URL."""
    content = response.get("audio_content")
    return f"data:audio/mpeg;base64,{content}" if content else None


_MEDIA_URL: dict[Vendor, Callable[[dict[str, Any]], str | None]] = {
    Vendor.KLING: kling.media_url,
    Vendor.JOGGAI: joggai.media_url,
    Vendor.TAVUS: tavus.media_url,
    Vendor.REPLICATE: replicate.media_url,
    Vendor.ELEVENLABS: audio_media_url,
}


def normalize(vendor: Vendor, raw: Any) -> NormalizedResult:
    """Convert a terminal success response into a NormalizedResult.

    A success response without a media URL is reported as a failure.
    """
    url = _MEDIA_URL[vendor](raw) if isinstance(raw, dict) else None
    if not url:
        logger.warning("%s reported success without a media URL", vendor.value)
        return NormalizedResult(ok=False, error=f"{vendor.value} returned no media URL")
    return NormalizedResult(ok=True, media_url=url)


def from_error(exc: BaseException) -> NormalizedResult:
    """Convert the error that ended a job into a user-visible failure."""
    if isinstance(exc, PollingTimeoutError):
        return NormalizedResult(ok=False, error=TIMEOUT_MESSAGE)
    if isinstance(exc, PollingCancelledError):
        return NormalizedResult(ok=False, error=CANCELLED_MESSAGE)
    if isinstance(exc, GenerationFailedError):
        return NormalizedResult(ok=False, error=f"Generation failed: {exc.message}")
    if isinstance(exc, CastForgeError) and exc.message:
        return NormalizedResult(ok=False, error=exc.message)
    return NormalizedResult(ok=False, error=str(exc) or FALLBACK_MESSAGE)
