"""Workflow webhook notifier.

Posts ``{event, timestamp, data}`` to a configured URL after pipeline stages.
``notify`` is fire-and-forget: the delivery runs as its own asyncio task and
the pipeline never waits for it. Delivery failures are logged, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from castforge.config import Settings
from castforge.schemas.webhook import WebhookConfig

logger = logging.getLogger(__name__)

SCRIPT_GENERATED = "script_generated"
AUDIO_GENERATED = "audio_generated"
VIDEO_GENERATED = "video_generated"
WORKFLOW_COMPLETE = "workflow_complete"
TEST = "test"


def config_from_settings(settings: Settings) -> WebhookConfig:
    return WebhookConfig(enabled=settings.WEBHOOK_ENABLED, webhook_url=settings.WEBHOOK_URL)


def build_payload(event: str, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "event": event,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


class WebhookNotifier:
    """Best-effort delivery of pipeline events."""

    def __init__(
        self,
        config: WebhookConfig,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.config = config
        self._http_client = http_client
        self._timeout = timeout
        self._pending: set[asyncio.Task] = set()

    def should_trigger(self, event: str, config: WebhookConfig | None = None) -> bool:
        cfg = config or self.config
        if not cfg.enabled or not cfg.webhook_url:
            return False
        return {
            SCRIPT_GENERATED: cfg.trigger_on_script_generated,
            AUDIO_GENERATED: cfg.trigger_on_audio_generated,
            VIDEO_GENERATED: cfg.trigger_on_video_generated,
            WORKFLOW_COMPLETE: cfg.trigger_on_workflow_complete,
            TEST: True,
        }.get(event, False)

    async def send(self, event: str, data: dict[str, Any], config: WebhookConfig | None = None) -> bool:
        """Deliver one event and report whether the endpoint accepted it."""
        cfg = config or self.config
        if not self.should_trigger(event, cfg):
            return False

        client = self._http_client or httpx.AsyncClient(timeout=self._timeout)
        own_client = self._http_client is None
        try:
            response = await client.post(
                cfg.webhook_url,
                json=build_payload(event, data),
                headers={"Content-Type": "application/json", **cfg.custom_headers},
            )
        except httpx.HTTPError as e:
            logger.error("Failed to trigger webhook for %s: %s", event, e)
            return False
        finally:
            if own_client:
                await client.aclose()

        if response.status_code >= 400:
            logger.warning("Webhook for %s answered with status %d", event, response.status_code)
            return False
        logger.info("Webhook delivered: %s", event)
        return True

    def notify(self, event: str, data: dict[str, Any]) -> asyncio.Task | None:
        """Schedule delivery in the background; returns the task, or None when filtered out."""
        if not self.should_trigger(event):
            return None
        task = asyncio.create_task(self.send(event, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
