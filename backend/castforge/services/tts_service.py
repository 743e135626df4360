from __future__ import annotations
"""TTS service: integrates with ElevenLabs for speech synthesis.

Returns audio as Base64-encoded MP3 so the browser can play it directly.
Speech calls go straight to ElevenLabs (the body is binary audio, not JSON);
JSON endpoints such as the voice list are also reachable via the relay.
"""

import base64
import logging
import re
from typing import Any

import httpx

from castforge.config import Settings
from castforge.errors import TransportError, ValidationError, VendorApiError
from castforge.schemas.jobs import Vendor
from castforge.services.credentials import CredentialResolver
from castforge.services.relay import RelayTarget

logger = logging.getLogger(__name__)

RELAY_TARGET = RelayTarget(
    vendor=Vendor.ELEVENLABS,
    label="ElevenLabs",
    base_url_setting="ELEVENLABS_BASE_URL",
    auth_headers=lambda key: {"xi-api-key": key},
    error_body=lambda msg: {"error": msg},
)

VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0.4,
    "use_speaker_boost": True,
    "speed": 0.95,
}


def clean_script(script: str) -> str:
    """Turn pause markers into ellipses and collapse runs of blank lines."""
    cleaned = re.sub(r"\[PAUSE\]", "...", script, flags=re.IGNORECASE)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


class SpeechService:
    """ElevenLabs text-to-speech and voice catalogue."""

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialResolver | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._settings = settings
        self._credentials = credentials or CredentialResolver(settings)
        self._http_client = http_client

    def _get_http_client(self) -> httpx.AsyncClient:
        """Return the shared httpx.AsyncClient, creating it on first use."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=60.0)
        return self._http_client

    async def synthesize(self, script: str, voice_id: str | None = None, api_key: str | None = None) -> str:
        """Synthesize ``script`` and return Base64 MP3 audio.

        Args:
            script: Podcast script; ``[PAUSE]`` markers are spoken as pauses.
            voice_id: ElevenLabs voice (defaults to ELEVENLABS_DEFAULT_VOICE).
            api_key: Caller key; falls back to ELEVENLABS_API_KEY.

        Raises:
            ValidationError: empty script.
            ConfigurationError: no API key.
            VendorApiError: ElevenLabs answered with an error status.
            TransportError: ElevenLabs could not be reached.
        """
        if not script or not script.strip():
            raise ValidationError("Script is required")
        key = self._credentials.resolve(Vendor.ELEVENLABS, api_key)
        voice = voice_id or self._settings.ELEVENLABS_DEFAULT_VOICE
        text = clean_script(script)

        logger.info("Generating audio with voice ID: %s, script length: %d", voice, len(text))

        # Dynamic timeout: base 60s + 10s per 1000 chars, max 600s
        timeout = min(60.0 + len(text) // 1000 * 10.0, 600.0)
        url = f"{self._settings.ELEVENLABS_BASE_URL}/text-to-speech/{voice}"
        body: dict[str, Any] = {
            "text": text,
            "model_id": self._settings.ELEVENLABS_MODEL,
            "output_format": "mp3_44100_128",
            "voice_settings": VOICE_SETTINGS,
        }

        try:
            response = await self._get_http_client().post(
                url,
                json=body,
                headers={"xi-api-key": key, "Content-Type": "application/json"},
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"ElevenLabs request failed: {e}") from e

        if response.status_code >= 400:
            logger.error("ElevenLabs API error: %d %s", response.status_code, response.text[:500])
            raise VendorApiError(
                f"ElevenLabs API error: {response.status_code} - {response.text[:500]}",
                vendor=Vendor.ELEVENLABS.value,
                status_code=response.status_code,
            )

        audio = response.content
        logger.info("Audio generated successfully, size: %d bytes", len(audio))
        return base64.b64encode(audio).decode("ascii")

    async def list_voices(self, api_key: str | None = None) -> list[dict[str, Any]]:
        key = self._credentials.resolve(Vendor.ELEVENLABS, api_key)
        try:
            response = await self._get_http_client().get(
                f"{self._settings.ELEVENLABS_BASE_URL}/voices",
                headers={"xi-api-key": key},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"ElevenLabs request failed: {e}") from e

        if response.status_code >= 400:
            raise VendorApiError(
                f"ElevenLabs API error: {response.status_code}",
                vendor=Vendor.ELEVENLABS.value,
                status_code=response.status_code,
            )

        voices = [
            {
                "voice_id": v.get("voice_id"),
                "name": v.get("name"),
                "category": v.get("category"),
                "description": v.get("description"),
                "labels": v.get("labels"),
                "preview_url": v.get("preview_url"),
            }
            for v in response.json().get("voices", [])
        ]
        logger.info("Found %d voices", len(voices))
        return voices
