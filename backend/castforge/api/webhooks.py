from __future__ import annotations
"""Webhook endpoints: inspect the server config and send a test event."""

from fastapi import APIRouter, Depends, HTTPException

from castforge.api.deps import get_notifier
from castforge.schemas.webhook import WebhookConfig, WebhookTestRequest, WebhookTestResponse
from castforge.services.webhook import TEST, WebhookNotifier

router = APIRouter()


@router.get("/config", response_model=WebhookConfig)
async def get_webhook_config(notifier: WebhookNotifier = Depends(get_notifier)):
    return notifier.config


@router.post("/test", response_model=WebhookTestResponse)
async def test_webhook(req: WebhookTestRequest, notifier: WebhookNotifier = Depends(get_notifier)):
    """Send a ``test`` event and report whether the endpoint accepted it.

    An override may change headers and flags but not the target: requests go
    only to the configured WEBHOOK_URL.
    """
    configured_url = notifier.config.webhook_url
    if not configured_url:
        raise HTTPException(status_code=400, detail="Webhook URL is not configured")
    config = notifier.config
    if req.config is not None:
        if req.config.webhook_url and req.config.webhook_url != configured_url:
            raise HTTPException(status_code=400, detail="Webhook URL must match the configured WEBHOOK_URL")
        # An explicit override is a direct test, whatever its enabled flag says
        config = req.config.model_copy(update={"enabled": True, "webhook_url": configured_url})
    data = {"message": "Test from CastForge", **req.data}
    delivered = await notifier.send(TEST, data, config)
    return WebhookTestResponse(delivered=delivered)
