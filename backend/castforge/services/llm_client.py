"""LLM client with multi-key round-robin, retry + exponential backoff,
timeout handling, and structured error messages.

Talks to any OpenAI-compatible ``/chat/completions`` endpoint (OpenRouter by
default). Script generation, optimization and prompt enhancement all go
through ``LLMClient.call()``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any

import httpx

from castforge.config import Settings
from castforge.errors import ConfigurationError, VendorApiError
from castforge.services.credentials import mask_key

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Retriable status codes
# ---------------------------------------------------------------------------

_RETRIABLE_STATUS = {408, 429, 500, 502, 503, 504}
_MAX_KEY_FAILURES = 3


def build_key_pool(settings: Settings) -> list[str]:
    """Parse LLM_API_KEYS (comma-separated) with LLM_API_KEY as fallback."""
    keys: list[str] = []
    if settings.LLM_API_KEYS:
        keys = [k.strip() for k in settings.LLM_API_KEYS.split(",") if k.strip()]
    if not keys and settings.LLM_API_KEY:
        keys = [settings.LLM_API_KEY]
    if not keys:
        logger.warning("No LLM API keys configured, LLM calls will fail")
    return keys


class LLMClient:
    """Chat-completions client shared by the script and prompt services."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        backoff_cap: float = 30.0,
    ):
        self._settings = settings
        self._http_client = http_client
        self._own_client = http_client is None
        self._backoff_cap = backoff_cap
        self._keys = build_key_pool(settings)
        self._key_cycle = itertools.cycle(self._keys) if self._keys else None
        # Per-key consecutive failure counts for smart rotation
        self._key_failures: dict[str, int] = {k: 0 for k in self._keys}
        self.url = f"{settings.LLM_BASE_URL.rstrip('/')}/chat/completions"

    @property
    def configured(self) -> bool:
        return bool(self._keys)

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=float(self._settings.LLM_TIMEOUT))
            self._own_client = True
        return self._http_client

    def _next_key(self) -> str:
        """Pick the next API key via round-robin, skipping keys with high failure counts."""
        if not self._key_cycle:
            raise ConfigurationError("LLM API key not configured (set LLM_API_KEY or LLM_API_KEYS)")

        for _ in range(len(self._keys)):
            key = next(self._key_cycle)
            if self._key_failures.get(key, 0) < _MAX_KEY_FAILURES:
                return key

        # All keys have high failures; reset and return the next one anyway
        for k in self._key_failures:
            self._key_failures[k] = 0
        return next(self._key_cycle)

    def _backoff(self, attempt: int) -> float:
        return min(2 ** attempt, self._backoff_cap)

    async def call(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        json_mode: bool = False,
        model: str | None = None,
        max_tokens: int = 8192,
        temperature: float = 0.8,
        caller: str = "unknown",
    ) -> str:
        """Chat completion with multi-key rotation and retry + exponential backoff.

        Args:
            system_prompt: System message.
            user_prompt: User message.
            json_mode: If True, request JSON-format output.
            model: Override the default SCRIPT_MODEL.
            max_tokens: Max tokens in response.
            temperature: Sampling temperature.
            caller: Identifier for logging.

        Returns:
            The content string from the LLM response.

        Raises:
            ConfigurationError: no key configured.
            LLMError: all retries exhausted, or a non-retriable HTTP error.
        """
        model = model or self._settings.SCRIPT_MODEL
        max_retries = self._settings.LLM_MAX_RETRIES
        last_error: Exception | None = None

        for attempt in range(1, max_retries + 1):
            key = self._next_key()
            masked = mask_key(key)

            headers = {
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
                "X-Title": self._settings.APP_NAME,
            }
            body: dict[str, Any] = {
                "model": model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
            if json_mode:
                body["response_format"] = {"type": "json_object"}

            logger.info(
                "[%s] LLM call attempt %d/%d model=%s key=%s json=%s",
                caller, attempt, max_retries, model, masked, json_mode,
            )

            try:
                response = await self._get_client().post(self.url, headers=headers, json=body)
            except httpx.TimeoutException:
                backoff = self._backoff(attempt)
                logger.warning(
                    "[%s] Timeout after %ds on attempt %d, backing off %ss...",
                    caller, self._settings.LLM_TIMEOUT, attempt, backoff,
                )
                last_error = LLMError(
                    f"LLM call timed out after {self._settings.LLM_TIMEOUT}s",
                    status_code=408,
                    retriable=True,
                )
                await asyncio.sleep(backoff)
                continue
            except httpx.HTTPError as e:
                backoff = self._backoff(attempt)
                logger.warning("[%s] Transport error on attempt %d: %s", caller, attempt, e)
                last_error = LLMError(f"LLM request failed: {e}", retriable=True)
                await asyncio.sleep(backoff)
                continue

            if response.status_code == 401:
                # Auth failure: mark this key as bad and rotate immediately
                self._key_failures[key] = self._key_failures.get(key, 0) + 1
                logger.warning(
                    "[%s] 401 Unauthorized for key=%s (failures=%d), rotating...",
                    caller, masked, self._key_failures[key],
                )
                last_error = LLMError(f"API key {masked} unauthorized", status_code=401, retriable=True)
                continue

            if response.status_code == 402:
                raise LLMError("Payment required. Please add credits to continue.", status_code=402)

            if response.status_code in _RETRIABLE_STATUS:
                backoff = self._backoff(attempt)
                logger.warning(
                    "[%s] HTTP %d (retriable), backing off %ss...",
                    caller, response.status_code, backoff,
                )
                message = (
                    "Rate limit exceeded. Please try again in a moment."
                    if response.status_code == 429 else f"HTTP {response.status_code}"
                )
                last_error = LLMError(message, status_code=response.status_code, retriable=True)
                await asyncio.sleep(backoff)
                continue

            if response.status_code >= 400:
                logger.error("[%s] HTTP error %d: %s", caller, response.status_code, response.text[:500])
                raise LLMError(f"LLM HTTP error: {response.status_code}", status_code=response.status_code)

            self._key_failures[key] = 0
            data = response.json()
            try:
                content = data["choices"][0]["message"]["content"]
            except (KeyError, IndexError, TypeError) as e:
                raise LLMError("LLM returned no content") from e
            if not content:
                raise LLMError("LLM returned no content")
            logger.info("[%s] LLM response OK, length=%d", caller, len(content))
            return content

        # All retries exhausted
        raise last_error or LLMError("All LLM retry attempts exhausted")

    async def aclose(self) -> None:
        if self._own_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


# ---------------------------------------------------------------------------
# Custom exception
# ---------------------------------------------------------------------------

class LLMError(VendorApiError):
    """Structured LLM error with status code and retriable flag."""

    def __init__(self, message: str, status_code: int = 502, retriable: bool = False):
        super().__init__(message, vendor="llm", status_code=status_code, retriable=retriable)
