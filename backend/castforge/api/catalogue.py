from __future__ import annotations
"""Vendor catalogue endpoints: avatars, voices, replicas and asset uploads
for the pickers in the video configuration screens.
"""

import base64
import binascii
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from castforge.api.deps import get_relay
from castforge.services.relay import ProxyRelay
from castforge.services.vendors import JoggAiClient, TavusClient

router = APIRouter()


class AssetUploadRequest(BaseModel):
    filename: str = Field(..., min_length=1)
    content_type: str = Field("application/octet-stream", alias="contentType")
    content_base64: str = Field(..., alias="contentBase64")

    model_config = {"populate_by_name": True}


class PhotoAvatarRequest(BaseModel):
    photo_url: str = Field(..., min_length=1, alias="photoUrl")
    name: str | None = None
    description: str | None = None

    model_config = {"populate_by_name": True}


class VoiceCloneRequest(BaseModel):
    audio_url: str = Field(..., min_length=1, alias="audioUrl")
    name: str = Field(..., min_length=1)

    model_config = {"populate_by_name": True}


class ReplicaCreateRequest(BaseModel):
    train_video_url: str = Field(..., min_length=1, alias="trainVideoUrl")
    replica_name: str | None = Field(None, alias="replicaName")
    consent_video_url: str | None = Field(None, alias="consentVideoUrl")

    model_config = {"populate_by_name": True}


def _joggai(
    relay: ProxyRelay = Depends(get_relay),
    x_api_key: str | None = Header(None),
) -> JoggAiClient:
    return JoggAiClient(relay, x_api_key)


def _tavus(
    relay: ProxyRelay = Depends(get_relay),
    x_api_key: str | None = Header(None),
) -> TavusClient:
    return TavusClient(relay, x_api_key)


@router.get("/joggai/whoami")
async def joggai_whoami(client: JoggAiClient = Depends(_joggai)) -> dict[str, Any]:
    """Validate a JoggAI key."""
    account = await client.whoami()
    return {"valid": account is not None, "account": account}


@router.get("/joggai/avatars")
async def joggai_avatars(client: JoggAiClient = Depends(_joggai)) -> list[dict[str, Any]]:
    """Public avatars followed by the account's photo avatars."""
    return await client.public_avatars() + await client.photo_avatars()


@router.get("/joggai/voices")
async def joggai_voices(client: JoggAiClient = Depends(_joggai)) -> list[dict[str, Any]]:
    return await client.voices()


@router.post("/joggai/assets", status_code=201)
async def joggai_upload(req: AssetUploadRequest, client: JoggAiClient = Depends(_joggai)) -> dict[str, str]:
    """Upload a photo or voice sample and return its JoggAI asset URL."""
    try:
        content = base64.b64decode(req.content_base64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="contentBase64 is not valid Base64")
    asset_url = await client.upload_asset(req.filename, content, req.content_type)
    return {"asset_url": asset_url}


@router.post("/joggai/photo-avatars", status_code=201)
async def joggai_create_photo_avatar(
    req: PhotoAvatarRequest, client: JoggAiClient = Depends(_joggai),
) -> dict[str, Any]:
    """Turn an uploaded photo into a photo avatar; JoggAI trains it asynchronously."""
    return await client.create_photo_avatar(req.photo_url, req.name, req.description) or {}


@router.post("/joggai/voices/clone", status_code=201)
async def joggai_clone_voice(req: VoiceCloneRequest, client: JoggAiClient = Depends(_joggai)) -> dict[str, Any]:
    return await client.clone_voice(req.audio_url, req.name) or {}


@router.get("/tavus/replicas")
async def tavus_replicas(client: TavusClient = Depends(_tavus)) -> list[dict[str, Any]]:
    return await client.list_replicas()


@router.get("/tavus/videos")
async def tavus_videos(client: TavusClient = Depends(_tavus)) -> list[dict[str, Any]]:
    return await client.list_videos()


@router.post("/tavus/replicas", status_code=201)
async def tavus_create_replica(
    req: ReplicaCreateRequest, client: TavusClient = Depends(_tavus),
) -> dict[str, Any]:
    """Start training a replica from a video; poll it with GET /tavus/replicas/{id}."""
    return await client.create_replica(req.train_video_url, req.replica_name, req.consent_video_url) or {}


@router.get("/tavus/replicas/{replica_id}")
async def tavus_replica(replica_id: str, client: TavusClient = Depends(_tavus)) -> dict[str, Any]:
    return await client.get_replica(replica_id) or {}


@router.delete("/tavus/replicas/{replica_id}", status_code=204)
async def tavus_delete_replica(replica_id: str, client: TavusClient = Depends(_tavus)):
    await client.delete_replica(replica_id)
