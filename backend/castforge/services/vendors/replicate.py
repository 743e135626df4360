"""Replicate video generation provider.

Async task pattern, two stages for text-to-video:
1. flux-schnell renders a base image from a cinematic prompt (polled here)
2. stable-video-diffusion animates the image → prediction id for the caller

Image-to-video skips stage 1. ``existing_base_image`` lets a retry after a
rate limit reuse the image from the previous attempt.
"""

from __future__ import annotations

import logging
from typing import Any

from castforge.errors import ValidationError, VendorApiError
from castforge.schemas.jobs import JobKind, JobSpec, JobState, JobStatus, Vendor
from castforge.services.poller import poll_until_complete
from castforge.services.relay import ProxyRelay, RelayResponse, RelayTarget

logger = logging.getLogger(__name__)

RELAY_TARGET = RelayTarget(
    vendor=Vendor.REPLICATE,
    label="Replicate",
    base_url_setting="REPLICATE_BASE_URL",
    auth_headers=lambda key: {"Authorization": f"Bearer {key}"},
    error_body=lambda msg: {"error": msg},
)

IMAGE_MODEL_PATH = "/models/black-forest-labs/flux-schnell/predictions"
SVD_VERSION = "3f0457e4619daac51203dedb472816fd4af51f3149fa7a9e0b5ffcf1b8172438"

_STATE_MAP = {
    "starting": JobState.PENDING,
    "processing": JobState.PROCESSING,
    "succeeded": JobState.SUCCEEDED,
    "failed": JobState.FAILED,
    "canceled": JobState.FAILED,
}


def build_video_prompt(
    topic: str,
    background: str | None = None,
    character1: str | None = None,
    character2: str | None = None,
) -> str:
    """Compose the scene prompt for the base image."""
    parts = [f"Setting: {background}" if background
             else "Setting: Professional podcast studio with soft lighting"]

    if character1 or character2:
        parts.append("Two people having a conversation:")
        if character1:
            parts.append(f"Person 1: {character1}")
        if character2:
            parts.append(f"Person 2: {character2}")
    else:
        parts.append("Two podcast hosts sitting at microphones, engaged in discussion")

    if topic:
        parts.append(f"Topic: {topic}")

    parts.append("Style: Cinematic, high quality, 4K, professional lighting, shallow depth of field")
    parts.append("Camera: Medium shot, eye level, steady")
    return ". ".join(parts)


def build_image_input(prompt: str, aspect_ratio: str = "16:9") -> dict[str, Any]:
    return {
        "input": {
            "prompt": prompt,
            "go_fast": True,
            "megapixels": "1",
            "num_outputs": 1,
            "aspect_ratio": aspect_ratio,
            "output_format": "webp",
            "output_quality": 90,
            "num_inference_steps": 4,
        }
    }


def build_video_input(image_url: str) -> dict[str, Any]:
    return {
        "version": SVD_VERSION,
        "input": {
            "input_image": image_url,
            "motion_bucket_id": 127,
            "fps": 6,
            "cond_aug": 0.02,
            "decoding_t": 7,
            "video_length": "14_frames_with_svd",
            "sizing_strategy": "maintain_aspect_ratio",
            "frames_per_second": 6,
        },
    }


def validate(spec: JobSpec) -> None:
    if spec.kind not in (JobKind.TEXT_TO_VIDEO, JobKind.IMAGE_TO_VIDEO):
        raise ValidationError(f"Replicate cannot run {spec.kind.value} jobs")
    p = spec.payload
    if spec.kind == JobKind.TEXT_TO_VIDEO and not (p.get("prompt") or p.get("existing_base_image")):
        raise ValidationError("Missing required field: prompt")
    if spec.kind == JobKind.IMAGE_TO_VIDEO and not p.get("image_url"):
        raise ValidationError("image_url is required for image-to-video")


def media_url(response: dict[str, Any]) -> str | None:
    output = response.get("output")
    if isinstance(output, list):
        return output[0] if output else None
    return output if isinstance(output, str) else None


def parse_status(response: dict[str, Any]) -> JobStatus:
    raw = str(response.get("status") or "").lower()
    if not raw and (response.get("error") or response.get("detail")):
        raise VendorApiError(str(response.get("error") or response.get("detail")),
                             vendor=Vendor.REPLICATE.value)
    state = _STATE_MAP.get(raw, JobState.PROCESSING)
    if state == JobState.SUCCEEDED:
        return JobStatus(state=state, vendor_state=raw, result_url=media_url(response))
    if state == JobState.FAILED:
        return JobStatus(state=state, vendor_state=raw,
                         error_message=str(response.get("error") or f"Prediction {raw}"))
    return JobStatus(state=state, vendor_state=raw or None)


def _raise_for_vendor(resp: RelayResponse) -> None:
    body = resp.body if isinstance(resp.body, dict) else {}
    detail = body.get("detail") or body.get("error") or f"HTTP {resp.status_code}"
    if resp.status_code == 402:
        raise VendorApiError(
            "Replicate credit exhausted. Please top up at replicate.com.",
            vendor=Vendor.REPLICATE.value, code=402, status_code=402,
        )
    if resp.status_code == 429:
        raise VendorApiError(
            f"Replicate rate limit reached: {detail}",
            vendor=Vendor.REPLICATE.value, code=429, retry_after=10,
            status_code=429, retriable=True,
        )
    raise VendorApiError(f"Replicate API error: {detail}", vendor=Vendor.REPLICATE.value,
                         code=resp.status_code, status_code=resp.status_code)


class ReplicateClient:
    """Replicate predictions routed through the relay."""

    vendor = Vendor.REPLICATE

    def __init__(
        self,
        relay: ProxyRelay,
        api_key: str | None = None,
        image_poll_attempts: int = 60,
        image_poll_interval: float = 2.0,
    ):
        self._relay = relay
        self._api_key = api_key
        self._image_poll_attempts = image_poll_attempts
        self._image_poll_interval = image_poll_interval

    async def request(self, endpoint: str, method: str = "GET", payload: Any = None) -> dict[str, Any]:
        resp = await self._relay.call(Vendor.REPLICATE, endpoint, method, payload, api_key=self._api_key)
        resp.raise_for_transport()
        if not resp.ok:
            _raise_for_vendor(resp)
        return resp.body if isinstance(resp.body, dict) else {}

    async def generate_base_image(self, prompt: str, aspect_ratio: str = "16:9") -> str:
        logger.info("Generating base image for video...")
        prediction = await self.request(IMAGE_MODEL_PATH, "POST", build_image_input(prompt, aspect_ratio))
        prediction_id = prediction.get("id")
        if not prediction_id:
            raise VendorApiError("Failed to generate base image: no prediction id",
                                 vendor=Vendor.REPLICATE.value)

        if parse_status(prediction).state != JobState.SUCCEEDED:
            prediction = await poll_until_complete(
                prediction_id,
                self.get_status,
                parse_status,
                max_attempts=self._image_poll_attempts,
                interval=self._image_poll_interval,
                label="replicate-image",
            )

        url = media_url(prediction)
        if not url:
            raise VendorApiError("Failed to generate base image: empty output", vendor=Vendor.REPLICATE.value)
        logger.info("Base image generated: %s", url)
        return url

    # --- Job driver interface ---

    async def create(self, spec: JobSpec) -> str:
        validate(spec)
        p = spec.payload

        if spec.kind == JobKind.IMAGE_TO_VIDEO:
            image_url = p["image_url"]
        elif p.get("existing_base_image"):
            logger.info("Using existing base image from previous attempt: %s", p["existing_base_image"])
            image_url = p["existing_base_image"]
        else:
            prompt = p.get("scene_prompt") or build_video_prompt(
                p.get("prompt", ""), p.get("background"), p.get("character1"), p.get("character2"),
            )
            logger.info("Generated video prompt: %s", prompt)
            image_url = await self.generate_base_image(prompt, p.get("aspect_ratio") or "16:9")

        try:
            prediction = await self.request("/predictions", "POST", build_video_input(image_url))
        except VendorApiError as e:
            e.base_image_url = image_url
            raise
        prediction_id = prediction.get("id")
        if not prediction_id:
            raise VendorApiError("Replicate video prediction failed: no id", vendor=Vendor.REPLICATE.value)
        logger.info("Started video generation: %s", prediction_id)
        return prediction_id

    async def get_status(self, task_id: str) -> dict[str, Any]:
        return await self.request(f"/predictions/{task_id}")

    parse_status = staticmethod(parse_status)
    media_url = staticmethod(media_url)
