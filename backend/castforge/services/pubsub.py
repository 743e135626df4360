"""Redis Pub/Sub bridge for job progress notifications.

The job driver publishes state changes to a per-job Redis channel.
FastAPI's WebSocket handler subscribes and relays to connected clients.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from castforge.config import get_settings

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "castforge:jobs:"

_async_client: aioredis.Redis | None = None


def _get_async_client() -> aioredis.Redis:
    """Lazy-init a module-level async Redis client (singleton)."""
    global _async_client
    if _async_client is None:
        _async_client = aioredis.from_url(get_settings().REDIS_URL)
    return _async_client


def channel_for(job_id: str) -> str:
    return f"{CHANNEL_PREFIX}{job_id}"


# ──────── Publisher (used by the job driver) ────────

async def publish_job_update(job_id: str, state: str, **extra: Any) -> None:
    """Publish a job state change. Best-effort: failures are logged only."""
    if not get_settings().REDIS_URL:
        return
    message = {"type": "job_update", "job_id": job_id, "state": state, **extra}
    try:
        await _get_async_client().publish(channel_for(job_id), json.dumps(message))
    except (aioredis.RedisError, OSError):
        logger.warning("Failed to publish WS notification for job %s", job_id, exc_info=True)


# ──────── Subscriber (used by FastAPI WebSocket) ────────

async def subscribe_job(job_id: str) -> aioredis.client.PubSub:
    """Create an async Redis PubSub subscription for a job channel.

    Caller should close the pubsub when done, but NOT the shared client.
    """
    pubsub = _get_async_client().pubsub()
    await pubsub.subscribe(channel_for(job_id))
    return pubsub


async def listen_pubsub(pubsub: aioredis.client.PubSub):
    """Async generator that yields parsed messages from a PubSub subscription."""
    async for raw_message in pubsub.listen():
        if raw_message["type"] == "message":
            try:
                yield json.loads(raw_message["data"])
            except (json.JSONDecodeError, TypeError):
                continue


async def close_pubsub_client() -> None:
    global _async_client
    if _async_client is not None:
        await _async_client.aclose()
        _async_client = None
