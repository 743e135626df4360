"""Kling video generation via the KIE AI Runway API.

Supports:
- Text-to-video and image-to-video (first frame as URL or data URL)
- Lip-sync is not offered by the KIE Runway API and is rejected up front

KIE answers ``{code: 200, msg, data: {taskId, state, videoInfo}}``. Responses
are converted to the Kling task shape the rest of the app expects:
``{code: 0, message, data: {task_id, task_status, task_status_msg, task_result}}``.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from castforge.errors import ValidationError, VendorApiError
from castforge.schemas.jobs import JobKind, JobSpec, JobState, JobStatus, Vendor
from castforge.services.relay import ProxyRelay, RelayResponse, RelayTarget

logger = logging.getLogger(__name__)

RELAY_TARGET = RelayTarget(
    vendor=Vendor.KLING,
    label="KIE",
    base_url_setting="KIE_BASE_URL",
    auth_headers=lambda key: {"Authorization": f"Bearer {key}"},
    error_body=lambda msg: {"code": -1, "msg": msg, "data": None},
)

_GENERATE_PATH = "/api/v1/runway/generate"
_STATUS_PATH = "/api/v1/runway/record-detail?taskId={task_id}"

ASPECT_RATIOS = ("16:9", "9:16", "1:1", "4:3", "3:4")
DURATIONS = (5, 10)
DEFAULT_ASPECT_RATIO = "16:9"
DEFAULT_DURATION = 5
DEFAULT_QUALITY = "720p"

# KIE state -> Kling task_status
_STATE_MAP = {
    "success": "succeed",
    "fail": "failed",
    "processing": "processing",
    "queueing": "processing",
    "wait": "processing",
}


def build_payload(spec: JobSpec) -> dict[str, Any]:
    """Translate a JobSpec into a KIE Runway generate request."""
    if spec.kind == JobKind.LIP_SYNC:
        raise ValidationError("Lip-sync is not supported by the KIE AI Runway API")
    if spec.kind not in (JobKind.TEXT_TO_VIDEO, JobKind.IMAGE_TO_VIDEO):
        raise ValidationError(f"Kling cannot run {spec.kind.value} jobs")

    p = spec.payload
    prompt = (p.get("prompt") or "").strip()
    image = p.get("image_url") or p.get("image")

    if spec.kind == JobKind.TEXT_TO_VIDEO and not prompt:
        raise ValidationError("prompt is required for text-to-video")
    if spec.kind == JobKind.IMAGE_TO_VIDEO and not image:
        raise ValidationError("image_url is required for image-to-video")

    try:
        duration = int(p.get("duration") or DEFAULT_DURATION)
    except (TypeError, ValueError):
        raise ValidationError(f"invalid duration: {p.get('duration')!r}")
    if duration not in DURATIONS:
        raise ValidationError(f"duration must be one of {DURATIONS}")

    body: dict[str, Any] = {
        "prompt": prompt,
        "duration": duration,
        "quality": p.get("quality") or DEFAULT_QUALITY,
        "waterMark": "",
    }

    if spec.kind == JobKind.TEXT_TO_VIDEO:
        aspect_ratio = p.get("aspect_ratio") or DEFAULT_ASPECT_RATIO
        if aspect_ratio not in ASPECT_RATIOS:
            raise ValidationError(f"aspect_ratio must be one of {ASPECT_RATIOS}")
        body["aspectRatio"] = aspect_ratio
    else:
        # KIE takes http URLs and data URLs in the same field
        body["imageUrl"] = image

    return body


def to_kling_response(kie: dict[str, Any]) -> dict[str, Any]:
    """Convert a KIE response to the Kling task response shape."""
    data = kie.get("data") or {}
    task_id = data.get("taskId") or ""
    video_url = (data.get("videoInfo") or {}).get("videoUrl")
    code = kie.get("code")

    task: dict[str, Any] = {
        "task_id": task_id,
        "task_status": _STATE_MAP.get(data.get("state")),
    }
    if data.get("failMsg"):
        task["task_status_msg"] = data["failMsg"]
    if video_url:
        task["task_result"] = {"videos": [{"id": task_id, "url": video_url, "duration": "5"}]}

    return {
        "code": 0 if code == 200 else code,
        "message": kie.get("msg"),
        "data": task,
    }


def parse_status(response: dict[str, Any]) -> JobStatus:
    """Map a Kling-shaped status response to a JobStatus."""
    if response.get("code") != 0:
        raise VendorApiError(
            f"KIE API error: {response.get('message') or 'unknown error'}",
            vendor=Vendor.KLING.value,
            code=response.get("code"),
        )

    task = response.get("data") or {}
    status = task.get("task_status")

    if status == "succeed":
        videos = (task.get("task_result") or {}).get("videos") or [{}]
        return JobStatus(state=JobState.SUCCEEDED, vendor_state=status, result_url=videos[0].get("url"))
    if status == "failed":
        return JobStatus(
            state=JobState.FAILED,
            vendor_state=status,
            error_message=task.get("task_status_msg") or "Unknown error",
        )
    if status == "processing":
        return JobStatus(state=JobState.PROCESSING, vendor_state=status)
    return JobStatus(state=JobState.PENDING, vendor_state=status)


def media_url(response: dict[str, Any]) -> str | None:
    videos = ((response.get("data") or {}).get("task_result") or {}).get("videos") or []
    return videos[0].get("url") if videos else None


class KlingClient:
    """Create and query Kling/KIE tasks through the relay."""

    vendor = Vendor.KLING

    def __init__(self, relay: ProxyRelay, api_key: str | None = None):
        self._relay = relay
        self._api_key = api_key

    async def _request(self, endpoint: str, method: str = "GET", payload: Any = None) -> dict[str, Any]:
        resp: RelayResponse = await self._relay.call(
            Vendor.KLING, endpoint, method, payload, api_key=self._api_key,
        )
        resp.raise_for_transport()
        if not isinstance(resp.body, dict):
            raise VendorApiError(f"KIE returned unexpected body: {resp.body!r}", vendor=Vendor.KLING.value)
        return to_kling_response(resp.body)

    async def create(self, spec: JobSpec) -> str:
        body = build_payload(spec)
        logger.info("Creating Kling %s task: %s", spec.kind.value, body["prompt"][:80])
        result = await self._request(_GENERATE_PATH, "POST", body)
        if result.get("code") != 0:
            raise VendorApiError(
                f"KIE API error: {result.get('message') or 'unknown error'}",
                vendor=Vendor.KLING.value,
                code=result.get("code"),
            )
        task_id = (result.get("data") or {}).get("task_id")
        if not task_id:
            raise VendorApiError("Kling task creation failed: no task_id returned", vendor=Vendor.KLING.value)
        logger.info("Kling task created: %s", task_id)
        return task_id

    async def get_status(self, task_id: str) -> dict[str, Any]:
        return await self._request(_STATUS_PATH.format(task_id=quote(task_id, safe="")))

    parse_status = staticmethod(parse_status)
    media_url = staticmethod(media_url)
