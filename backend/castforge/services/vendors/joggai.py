"""JoggAI avatar video provider.

Talking-avatar videos from a script, plus the catalogue calls the avatar and
voice pickers need (public/photo avatars, voices, voice cloning, uploads).

Every JoggAI response is ``{code, msg, data}`` with ``code == 0`` on success.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from castforge.errors import TransportError, ValidationError, VendorApiError
from castforge.schemas.jobs import JobKind, JobSpec, JobState, JobStatus, Vendor
from castforge.services.relay import ProxyRelay, RelayTarget

logger = logging.getLogger(__name__)

RELAY_TARGET = RelayTarget(
    vendor=Vendor.JOGGAI,
    label="JoggAI",
    base_url_setting="JOGGAI_BASE_URL",
    auth_headers=lambda key: {"x-api-key": key},
    error_body=lambda msg: {"code": -1, "msg": msg, "data": None},
)

DEFAULT_AVATAR_ID = 412
DEFAULT_AVATAR_TYPE = 0  # 0 = public avatar, 1 = photo avatar
DEFAULT_VOICE_ID = "en-US-ChristopherNeural"
DEFAULT_BACKGROUND = "#1a1a2e"
DEFAULT_SCREEN_STYLE = 1  # full screen

# generic aspect ratio -> JoggAI enumeration
ASPECT_RATIOS = {
    "16:9": "landscape",
    "9:16": "portrait",
    "1:1": "square",
    "landscape": "landscape",
    "portrait": "portrait",
    "square": "square",
}

_SUCCEEDED = {"completed", "success", "succeeded", "done"}
_FAILED = {"failed", "error", "fail"}
_PENDING = {"pending", "queued", "waiting"}


def _int_field(payload: dict[str, Any], name: str, default: int) -> int:
    value = payload.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be numeric: {value!r}")


def build_payload(spec: JobSpec) -> dict[str, Any]:
    """Translate a JobSpec into a ``/create_video_from_avatar`` request."""
    if spec.kind != JobKind.AVATAR_VIDEO:
        raise ValidationError(f"JoggAI cannot run {spec.kind.value} jobs")

    p = spec.payload
    script = (p.get("script") or "").strip()
    if not script:
        raise ValidationError("Script is required")

    avatar_id = _int_field(p, "avatar_id", DEFAULT_AVATAR_ID)
    avatar_type = _int_field(p, "avatar_type", DEFAULT_AVATAR_TYPE)
    screen_style = _int_field(p, "screen_style", DEFAULT_SCREEN_STYLE)

    aspect_ratio = ASPECT_RATIOS.get(p.get("aspect_ratio") or "16:9")
    if aspect_ratio is None:
        raise ValidationError(f"unsupported aspect_ratio: {p.get('aspect_ratio')!r}")

    body: dict[str, Any] = {
        "avatar": {
            "avatar_id": avatar_id,
            "avatar_type": avatar_type,
        },
        "voice": {
            "type": "script",
            "script": script,
            "voice_id": p.get("voice_id") or DEFAULT_VOICE_ID,
        },
        "aspect_ratio": aspect_ratio,
        "screen_style": screen_style,
        "caption": bool(p.get("caption", True)),
        "video_background": {
            "type": "color",
            "value": p.get("background_color") or DEFAULT_BACKGROUND,
        },
    }
    if p.get("video_name"):
        body["video_name"] = p["video_name"]
    if p.get("webhook_url"):
        body["webhook_url"] = p["webhook_url"]
    return body


def parse_status(response: dict[str, Any]) -> JobStatus:
    if response.get("code") != 0:
        raise VendorApiError(
            response.get("msg") or "JoggAI API error",
            vendor=Vendor.JOGGAI.value,
            code=response.get("code"),
        )
    data = response.get("data") or {}
    raw = str(data.get("status") or "").lower()
    progress = data.get("progress")

    if raw in _SUCCEEDED:
        return JobStatus(state=JobState.SUCCEEDED, vendor_state=raw, progress=progress,
                         result_url=data.get("video_url"))
    if raw in _FAILED:
        return JobStatus(state=JobState.FAILED, vendor_state=raw,
                         error_message=data.get("error") or data.get("msg") or "Video generation failed")
    if raw in _PENDING or not raw:
        return JobStatus(state=JobState.PENDING, vendor_state=raw or None, progress=progress)
    return JobStatus(state=JobState.PROCESSING, vendor_state=raw, progress=progress)


def media_url(response: dict[str, Any]) -> str | None:
    return (response.get("data") or {}).get("video_url")


def _as_list(data: Any, key: str) -> list[dict[str, Any]]:
    """JoggAI returns either a bare list or ``{key: [...]}``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return data[key]
    return []


class JoggAiClient:
    """JoggAI calls routed through the relay."""

    vendor = Vendor.JOGGAI

    def __init__(self, relay: ProxyRelay, api_key: str | None = None):
        self._relay = relay
        self._api_key = api_key

    async def _raw(self, endpoint: str, method: str = "GET", payload: Any = None) -> dict[str, Any]:
        resp = await self._relay.call(Vendor.JOGGAI, endpoint, method, payload, api_key=self._api_key)
        resp.raise_for_transport()
        if not isinstance(resp.body, dict):
            raise VendorApiError(f"JoggAI returned unexpected body: {resp.body!r}", vendor=Vendor.JOGGAI.value)
        return resp.body

    async def request(self, endpoint: str, method: str = "GET", payload: Any = None) -> Any:
        """Call JoggAI and return ``data``; non-zero ``code`` raises VendorApiError."""
        body = await self._raw(endpoint, method, payload)
        if body.get("code") != 0:
            raise VendorApiError(
                body.get("msg") or "JoggAI API error",
                vendor=Vendor.JOGGAI.value,
                code=body.get("code"),
            )
        return body.get("data")

    # --- Job driver interface ---

    async def create(self, spec: JobSpec) -> str:
        body = build_payload(spec)
        logger.info("Creating JoggAI video with script: %s...", body["voice"]["script"][:100])
        data = await self.request("/create_video_from_avatar", "POST", body)
        video_id = (data or {}).get("video_id")
        if not video_id:
            raise VendorApiError("JoggAI video creation failed: no video_id", vendor=Vendor.JOGGAI.value)
        logger.info("JoggAI video created: %s", video_id)
        return str(video_id)

    async def get_status(self, task_id: str) -> dict[str, Any]:
        return await self._raw(f"/avatar_video/{task_id}")

    parse_status = staticmethod(parse_status)
    media_url = staticmethod(media_url)

    # --- Catalogue ---

    async def whoami(self) -> dict[str, Any] | None:
        """Return the account for the key, or None when the key is rejected."""
        try:
            return await self.request("/user/whoami")
        except VendorApiError as e:
            logger.info("JoggAI key validation failed: %s", e)
            return None

    async def public_avatars(self) -> list[dict[str, Any]]:
        data = await self.request("/avatars/public")
        return [
            {
                "avatar_id": a.get("id"),
                "name": a.get("name"),
                "preview_url": a.get("cover_url"),
                "cover_url": a.get("cover_url"),
                "gender": a.get("gender"),
                "is_photo_avatar": False,
            }
            for a in _as_list(data, "avatars")
        ]

    async def photo_avatars(self) -> list[dict[str, Any]]:
        data = await self.request("/photo_avatar?page=1&limit=100")
        return [
            {
                "avatar_id": a.get("avatar_id"),
                "name": a.get("name"),
                "preview_url": a.get("thumbnail_url") or a.get("cover_url"),
                "is_photo_avatar": True,
                "status": a.get("status"),
            }
            for a in _as_list(data, "avatars")
        ]

    async def voices(self) -> list[dict[str, Any]]:
        return _as_list(await self.request("/voices"), "voices")

    async def create_photo_avatar(self, photo_url: str, name: str | None = None,
                                  description: str | None = None) -> dict[str, Any]:
        if not photo_url:
            raise ValidationError("photo_url is required")
        payload = {"photo_url": photo_url, "name": name, "description": description}
        return await self.request(
            "/photo_avatar/photo/generate", "POST", {k: v for k, v in payload.items() if v is not None},
        )

    async def clone_voice(self, audio_url: str, name: str) -> dict[str, Any]:
        if not audio_url or not name:
            raise ValidationError("audio_url and name are required")
        return await self.request("/voice/clone", "POST", {"audio_url": audio_url, "name": name})

    async def upload_asset(
        self,
        filename: str,
        content: bytes,
        content_type: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> str:
        """Upload a file through a JoggAI signed URL and return its asset URL."""
        info = await self.request(
            "/upload/asset", "POST", {"filename": filename, "content_type": content_type},
        )
        sign_url, asset_url = (info or {}).get("sign_url"), (info or {}).get("asset_url")
        if not sign_url or not asset_url:
            raise VendorApiError("JoggAI upload: no signed URL returned", vendor=Vendor.JOGGAI.value)

        logger.info("Uploading %s (%d bytes) to signed URL %s...", filename, len(content), sign_url[:80])
        client = http_client or httpx.AsyncClient(timeout=120.0)
        own_client = http_client is None
        try:
            resp = await client.put(sign_url, content=content, headers={"Content-Type": content_type})
        except httpx.HTTPError as e:
            raise TransportError(f"JoggAI upload failed: {e}") from e
        finally:
            if own_client:
                await client.aclose()

        if resp.status_code >= 400:
            raise VendorApiError(
                f"JoggAI upload failed: HTTP {resp.status_code}",
                vendor=Vendor.JOGGAI.value,
                status_code=resp.status_code,
            )
        return asset_url
