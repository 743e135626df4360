"""Credential resolution for vendor API keys.

A caller-supplied key always wins; otherwise the key configured for the
vendor in Settings (environment / .env) is used. The resolver is built from
an explicit Settings object and handed to each service at construction time.
"""

from __future__ import annotations

import logging

from castforge.config import Settings
from castforge.errors import ConfigurationError
from castforge.schemas.jobs import Vendor

logger = logging.getLogger(__name__)

_KEY_SETTINGS: dict[Vendor, str] = {
    Vendor.JOGGAI: "JOGGAI_API_KEY",
    Vendor.KLING: "KIE_API_KEY",
    Vendor.TAVUS: "TAVUS_API_KEY",
    Vendor.REPLICATE: "REPLICATE_API_KEY",
    Vendor.ELEVENLABS: "ELEVENLABS_API_KEY",
}


def mask_key(key: str) -> str:
    """Mask an API key for safe logging: show first 4 and last 4 chars."""
    if len(key) <= 12:
        return "***"
    return f"{key[:4]}...{key[-4:]}"


class CredentialResolver:
    """Resolve the API key to use for a vendor call."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def configured(self, vendor: Vendor) -> str:
        return getattr(self._settings, _KEY_SETTINGS[vendor], "") or ""

    def has_key(self, vendor: Vendor) -> bool:
        return bool(self.configured(vendor))

    def resolve(self, vendor: Vendor, supplied: str | None = None) -> str:
        """Return the supplied key, else the configured one.

        Raises:
            ConfigurationError: neither is available.
        """
        if supplied and supplied.strip():
            return supplied.strip()
        key = self.configured(vendor)
        if not key:
            raise ConfigurationError(
                f"{vendor.value} API key not configured "
                f"(pass apiKey or set {_KEY_SETTINGS[vendor]})"
            )
        logger.debug("Using configured %s key=%s", vendor.value, mask_key(key))
        return key
