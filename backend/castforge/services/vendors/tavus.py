"""Tavus replica video provider.

Tavus has no envelope code: success bodies are the resource itself and
errors carry an ``error`` (or ``message``) field with a 4xx/5xx status.
"""

from __future__ import annotations

import logging
from typing import Any

from castforge.errors import ValidationError, VendorApiError
from castforge.schemas.jobs import JobKind, JobSpec, JobState, JobStatus, Vendor
from castforge.services.relay import ProxyRelay, RelayResponse, RelayTarget

logger = logging.getLogger(__name__)

RELAY_TARGET = RelayTarget(
    vendor=Vendor.TAVUS,
    label="Tavus",
    base_url_setting="TAVUS_BASE_URL",
    auth_headers=lambda key: {"x-api-key": key},
    error_body=lambda msg: {"error": msg},
)

_STATE_MAP = {
    "queued": JobState.PENDING,
    "generating": JobState.PROCESSING,
    "ready": JobState.SUCCEEDED,
    "error": JobState.FAILED,
    "deleted": JobState.FAILED,
}


def build_payload(spec: JobSpec) -> dict[str, Any]:
    if spec.kind != JobKind.AVATAR_VIDEO:
        raise ValidationError(f"Tavus cannot run {spec.kind.value} jobs")
    p = spec.payload
    script = (p.get("script") or "").strip()
    if not script:
        raise ValidationError("Script is required")
    replica_id = p.get("replica_id")
    if not replica_id:
        raise ValidationError("replica_id is required")

    body: dict[str, Any] = {"replica_id": replica_id, "script": script}
    for key in ("video_name", "background_url", "background_source_url"):
        if p.get(key):
            body[key] = p[key]
    return body


def _error_message(body: Any) -> str | None:
    if isinstance(body, dict):
        return body.get("error") or body.get("message")
    return None


def parse_status(response: dict[str, Any]) -> JobStatus:
    err = _error_message(response)
    if err and "status" not in response:
        raise VendorApiError(err, vendor=Vendor.TAVUS.value)

    raw = str(response.get("status") or "").lower()
    state = _STATE_MAP.get(raw, JobState.PROCESSING)
    if state == JobState.SUCCEEDED:
        return JobStatus(state=state, vendor_state=raw, result_url=media_url(response))
    if state == JobState.FAILED:
        return JobStatus(
            state=state,
            vendor_state=raw,
            error_message=response.get("status_details") or f"Video {raw}",
        )
    return JobStatus(state=state, vendor_state=raw or None, progress=response.get("generation_progress"))


def media_url(response: dict[str, Any]) -> str | None:
    return response.get("download_url") or response.get("hosted_url") or response.get("stream_url")


class TavusClient:
    """Tavus calls routed through the relay."""

    vendor = Vendor.TAVUS

    def __init__(self, relay: ProxyRelay, api_key: str | None = None):
        self._relay = relay
        self._api_key = api_key

    async def request(self, endpoint: str, method: str = "GET", payload: Any = None) -> Any:
        resp: RelayResponse = await self._relay.call(
            Vendor.TAVUS, endpoint, method, payload, api_key=self._api_key,
        )
        resp.raise_for_transport()
        err = _error_message(resp.body)
        if not resp.ok or (err and isinstance(resp.body, dict) and "status" not in resp.body):
            raise VendorApiError(
                err or f"Tavus API error (HTTP {resp.status_code})",
                vendor=Vendor.TAVUS.value,
                status_code=resp.status_code if not resp.ok else None,
            )
        return resp.body

    # --- Job driver interface ---

    async def create(self, spec: JobSpec) -> str:
        body = build_payload(spec)
        logger.info("Creating Tavus video for replica %s", body["replica_id"])
        video = await self.request("/videos", "POST", body)
        video_id = (video or {}).get("video_id")
        if not video_id:
            raise VendorApiError("Tavus video creation failed: no video_id", vendor=Vendor.TAVUS.value)
        logger.info("Tavus video created: %s", video_id)
        return video_id

    async def get_status(self, task_id: str) -> dict[str, Any]:
        return await self.request(f"/videos/{task_id}?verbose=true")

    parse_status = staticmethod(parse_status)
    media_url = staticmethod(media_url)

    # --- Replicas & videos ---

    async def list_replicas(self) -> list[dict[str, Any]]:
        res = await self.request("/replicas?verbose=true&limit=50")
        return (res or {}).get("data") or []

    async def get_replica(self, replica_id: str) -> dict[str, Any]:
        return await self.request(f"/replicas/{replica_id}")

    async def create_replica(self, train_video_url: str, replica_name: str | None = None,
                             consent_video_url: str | None = None) -> dict[str, Any]:
        if not train_video_url:
            raise ValidationError("train_video_url is required")
        payload = {
            "train_video_url": train_video_url,
            "replica_name": replica_name,
            "consent_video_url": consent_video_url,
        }
        return await self.request("/replicas", "POST", {k: v for k, v in payload.items() if v})

    async def delete_replica(self, replica_id: str) -> None:
        await self.request(f"/replicas/{replica_id}", "DELETE")

    async def list_videos(self) -> list[dict[str, Any]]:
        res = await self.request("/videos?limit=50")
        return (res or {}).get("data") or []
