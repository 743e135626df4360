from __future__ import annotations
"""Master API router: mounts all sub-routers."""

from fastapi import APIRouter

from castforge.api.catalogue import router as catalogue_router
from castforge.api.configurations import router as configurations_router
from castforge.api.exports import router as exports_router
from castforge.api.jobs import router as jobs_router
from castforge.api.podcast import router as podcast_router
from castforge.api.proxy import router as proxy_router
from castforge.api.webhooks import router as webhooks_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(proxy_router, prefix="/proxy", tags=["Proxy Relay"])
api_router.include_router(jobs_router, prefix="/jobs", tags=["Jobs"])
api_router.include_router(podcast_router, prefix="/podcast", tags=["Podcast"])
api_router.include_router(catalogue_router, prefix="/vendors", tags=["Vendor Catalogue"])
api_router.include_router(configurations_router, prefix="/configurations", tags=["Configurations"])
api_router.include_router(webhooks_router, prefix="/webhooks", tags=["Webhooks"])
api_router.include_router(exports_router, prefix="/exports", tags=["Exports"])
