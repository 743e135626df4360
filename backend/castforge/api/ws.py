"""WebSocket endpoint for real-time job progress.

Uses Redis Pub/Sub to receive job updates published by the job registry
and relays them to connected browser clients.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from redis.exceptions import RedisError

from castforge.services.pubsub import listen_pubsub, subscribe_job

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/jobs/{job_id}")
async def ws_job(ws: WebSocket, job_id: str):
    """WebSocket endpoint for one job's updates.

    1. Accepts WebSocket connection
    2. Subscribes to the Redis Pub/Sub channel for this job
    3. Relays messages from Redis to the WebSocket client
    4. Answers client pings
    """
    await ws.accept()
    logger.info("WS connected: job=%s", job_id)

    pubsub = None
    listener_task = None
    try:
        pubsub = await subscribe_job(job_id)
        listener_task = asyncio.create_task(_relay_pubsub_to_ws(pubsub, ws, job_id))

        # Keep connection alive, read client messages (pings, etc.)
        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WS disconnected: job=%s", job_id)
    except (RedisError, OSError) as exc:
        logger.warning("WS error for job=%s: %s", job_id, exc)
        await ws.close(code=1011)
    finally:
        if listener_task:
            listener_task.cancel()
        if pubsub:
            await pubsub.unsubscribe()
            await pubsub.aclose()


async def _relay_pubsub_to_ws(pubsub, ws: WebSocket, job_id: str):
    """Background task: read from Redis Pub/Sub and forward to WebSocket client."""
    try:
        async for message in listen_pubsub(pubsub):
            try:
                await ws.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                break  # WebSocket closed
    except asyncio.CancelledError:
        pass
    except (RedisError, OSError) as exc:
        logger.warning("Pub/Sub relay error for job=%s: %s", job_id, exc)
