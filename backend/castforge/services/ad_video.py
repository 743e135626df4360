"""Short ad videos from a single prompt.

A talking-avatar JoggAI video is tried first; when JoggAI is not configured,
rejects the request or cannot be reached, Replicate renders a cinematic clip
from the same prompt instead. See ``JobDriver.submit_first``.
"""

from __future__ import annotations

from datetime import datetime, timezone

from castforge.errors import ValidationError
from castforge.schemas.jobs import JobKind, JobSpec, Vendor

AD_AVATAR_ID = 412
AD_AVATAR_TYPE = 0
AD_VOICE_ID = "MFZUKuGQUsGJPQjTS4wC"
AD_SCREEN_STYLE = 1

AD_ASPECT_RATIOS = ("16:9", "9:16", "1:1")


def build_ad_specs(prompt: str, aspect_ratio: str = "16:9", now: datetime | None = None) -> list[JobSpec]:
    """Job specs for one ad, in fallback order."""
    prompt = (prompt or "").strip()
    if not prompt:
        raise ValidationError("Prompt is required")
    if aspect_ratio not in AD_ASPECT_RATIOS:
        raise ValidationError(f"unsupported aspect_ratio: {aspect_ratio!r}")

    created = (now or datetime.now(timezone.utc)).isoformat()
    avatar = JobSpec(
        kind=JobKind.AVATAR_VIDEO,
        vendor=Vendor.JOGGAI,
        payload={
            "script": prompt,
            "avatar_id": AD_AVATAR_ID,
            "avatar_type": AD_AVATAR_TYPE,
            "voice_id": AD_VOICE_ID,
            "aspect_ratio": aspect_ratio,
            "screen_style": AD_SCREEN_STYLE,
            "caption": True,
            "video_name": f"Ad Video - {created}",
        },
    )
    clip = JobSpec(
        kind=JobKind.TEXT_TO_VIDEO,
        vendor=Vendor.REPLICATE,
        payload={
            "prompt": prompt,
            "scene_prompt": f"{prompt}. Style: Cinematic advertisement, high quality, 4K, professional lighting",
            "aspect_ratio": aspect_ratio,
        },
    )
    return [avatar, clip]
