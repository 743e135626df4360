from __future__ import annotations
"""Export service: hand finished videos to Google Drive and describe edits.

Drive uploads use the OAuth refresh-token flow: a fresh access token per
export, then a resumable upload session that receives the downloaded video
in one PUT. Without GOOGLE_CLIENT_ID/SECRET/REFRESH_TOKEN the export reports
``success=False`` with setup steps instead of failing.

Caption and music edits are not rendered here; ``build_edit_plan`` returns
the caption style and music track a downstream editor should apply.
"""

import logging
import time
from typing import Any

import httpx

from castforge.config import Settings
from castforge.errors import TransportError, VendorApiError
from castforge.schemas.export import DriveExportResponse

logger = logging.getLogger(__name__)

DRIVE = "google-drive"

SETUP_INSTRUCTIONS = [
    "1. Create a Google Cloud project",
    "2. Enable the Google Drive API",
    "3. Create OAuth 2.0 credentials",
    "4. Set GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REFRESH_TOKEN",
]

CAPTION_STYLES: dict[str, dict[str, Any]] = {
    "modern": {"font": "Inter", "color": "#FFFFFF", "shadow": True, "position": "bottom"},
    "bold": {"font": "Impact", "color": "#FFFF00", "background": "#000000", "position": "bottom"},
    "minimal": {"font": "Helvetica", "color": "#FFFFFF", "opacity": 0.8, "position": "bottom"},
    "dynamic": {"font": "Poppins", "color": "#FFFFFF", "animation": "word-by-word", "position": "center"},
}

MUSIC_TRACKS: dict[str, str | None] = {
    "upbeat": "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-1.mp3",
    "chill": "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-2.mp3",
    "cinematic": "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-3.mp3",
    "corporate": "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-4.mp3",
    "none": None,
}


def build_edit_plan(
    video_url: str,
    caption_text: str | None = None,
    caption_style: str = "modern",
    music_genre: str = "none",
) -> dict[str, Any]:
    """Caption and music settings for ``video_url``; unknown styles fall back to modern."""
    return {
        "video_url": video_url,
        "original_url": video_url,
        "edits": {
            "captions": CAPTION_STYLES.get(caption_style, CAPTION_STYLES["modern"]),
            "caption_text": caption_text or "Auto-transcribed",
            "music": MUSIC_TRACKS.get(music_genre),
            "music_genre": music_genre,
        },
        "message": "Captions added to video" if music_genre == "none" else "Captions and music added to video",
    }


class DriveExporter:
    """Google Drive uploads for finished videos."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self._settings = settings
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        s = self._settings
        return bool(s.GOOGLE_CLIENT_ID and s.GOOGLE_CLIENT_SECRET and s.GOOGLE_REFRESH_TOKEN)

    def _get_http_client(self) -> httpx.AsyncClient:
        """Return the shared httpx.AsyncClient, creating it on first use."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._settings.EXPORT_TIMEOUT)
        return self._http_client

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._get_http_client().request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"Google Drive upload failed: {e}") from e
        if response.status_code >= 400:
            logger.error("Drive export step failed: %s %s -> %d", method, url[:80], response.status_code)
            raise VendorApiError(
                f"Google Drive upload failed: HTTP {response.status_code} - {response.text[:300]}",
                vendor=DRIVE,
                status_code=502,
            )
        return response

    async def access_token(self) -> str:
        s = self._settings
        response = await self._send("POST", s.GOOGLE_TOKEN_URL, data={
            "client_id": s.GOOGLE_CLIENT_ID,
            "client_secret": s.GOOGLE_CLIENT_SECRET,
            "refresh_token": s.GOOGLE_REFRESH_TOKEN,
            "grant_type": "refresh_token",
        })
        token = response.json().get("access_token")
        if not token:
            raise VendorApiError("Failed to get Google access token", vendor=DRIVE)
        return token

    async def export(
        self,
        video_url: str,
        folder_id: str | None = None,
        file_name: str | None = None,
    ) -> DriveExportResponse:
        """Download ``video_url`` and store it in Drive (``folder_id`` or root)."""
        logger.info("Saving video to Google Drive: %s (folder %s)", video_url, folder_id or "root")
        if not self.configured:
            logger.info("Google Drive not configured, returning download info")
            return DriveExportResponse(
                success=False,
                error="Google Drive not configured",
                video_url=video_url,
                message="Google Drive is not configured. Please download the video manually.",
                setup_instructions=SETUP_INSTRUCTIONS,
            )

        token = await self.access_token()
        video = (await self._send("GET", video_url, follow_redirects=True)).content
        logger.info("Downloaded video: %d bytes", len(video))

        metadata: dict[str, Any] = {
            "name": file_name or f"video-{int(time.time() * 1000)}.mp4",
            "mimeType": "video/mp4",
        }
        if folder_id:
            metadata["parents"] = [folder_id]
        init = await self._send(
            "POST",
            self._settings.GOOGLE_DRIVE_UPLOAD_URL,
            params={"uploadType": "resumable"},
            json=metadata,
            headers={"Authorization": f"Bearer {token}"},
        )
        upload_url = init.headers.get("location")
        if not upload_url:
            raise VendorApiError("Failed to initiate upload", vendor=DRIVE)

        uploaded = (await self._send(
            "PUT", upload_url, content=video, headers={"Content-Type": "video/mp4"},
        )).json()
        file_id = uploaded.get("id")
        logger.info("Upload complete: %s", file_id)
        return DriveExportResponse(
            success=True,
            file_id=file_id,
            file_name=uploaded.get("name"),
            drive_url=f"https://drive.google.com/file/d/{file_id}/view",
            message="Video saved to Google Drive successfully",
        )
