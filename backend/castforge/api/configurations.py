from __future__ import annotations
"""Saved podcast configuration CRUD endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from castforge.database import get_db
from castforge.models.podcast_configuration import PodcastConfiguration
from castforge.schemas.configuration import (
    ConfigurationCreate,
    ConfigurationRead,
    ConfigurationUpdate,
)

router = APIRouter()


@router.get("/", response_model=list[ConfigurationRead])
async def list_configurations(db: AsyncSession = Depends(get_db)):
    """List saved configurations (newest first)."""
    result = await db.execute(
        select(PodcastConfiguration).order_by(PodcastConfiguration.created_at.desc())
    )
    return result.scalars().all()


@router.post("/", response_model=ConfigurationRead, status_code=201)
async def create_configuration(data: ConfigurationCreate, db: AsyncSession = Depends(get_db)):
    config = PodcastConfiguration(**data.model_dump())
    db.add(config)
    await db.flush()
    await db.refresh(config)
    return config


@router.get("/{config_id}", response_model=ConfigurationRead)
async def get_configuration(config_id: str, db: AsyncSession = Depends(get_db)):
    config = await db.get(PodcastConfiguration, config_id)
    if not config:
        raise HTTPException(status_code=404, detail="Configuration not found")
    return config


@router.patch("/{config_id}", response_model=ConfigurationRead)
async def update_configuration(
    config_id: str, data: ConfigurationUpdate, db: AsyncSession = Depends(get_db)
):
    """Update a configuration; fields not sent are kept."""
    config = await db.get(PodcastConfiguration, config_id)
    if not config:
        raise HTTPException(status_code=404, detail="Configuration not found")

    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(config, key, value)

    await db.flush()
    await db.refresh(config)
    return config


@router.delete("/{config_id}", status_code=204)
async def delete_configuration(config_id: str, db: AsyncSession = Depends(get_db)):
    config = await db.get(PodcastConfiguration, config_id)
    if not config:
        raise HTTPException(status_code=404, detail="Configuration not found")
    await db.delete(config)
