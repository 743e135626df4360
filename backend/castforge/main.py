from __future__ import annotations
"""CastForge: FastAPI application entry point.

Mounts all API routes, configures CORS, wires the vendor services and
initializes the database on startup.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from castforge.api.deps import build_services
from castforge.api.router import api_router
from castforge.api.ws import router as ws_router
from castforge.config import get_settings
from castforge.database import close_db, init_db
from castforge.errors import CastForgeError
from castforge.schemas.jobs import Vendor
from castforge.services.pubsub import close_pubsub_client, publish_job_update

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: wire services and DB on startup, close on shutdown."""
    logger.info("CastForge starting up...")
    logger.info("Database: %s", settings.DB_URL.split("://")[0] if settings.DB_URL
                else f"{settings.DB_USER}@{settings.DB_HOST}/{settings.DB_NAME}")

    app.state.services = build_services(settings, publish=publish_job_update)

    if settings.AUTO_CREATE_TABLES:
        await init_db()
    else:
        logger.info("Skipping init_db (schema managed by Alembic)")

    yield

    await app.state.services.aclose()
    await close_pubsub_client()
    await close_db()
    logger.info("CastForge shut down")


app = FastAPI(
    title="CastForge API",
    description="Podcast and avatar-video creation: scripts, speech and vendor video jobs",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

# CORS: the relay is called from a static browser front end
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CastForgeError)
async def castforge_error_handler(request: Request, exc: CastForgeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Mount API routes
app.include_router(api_router)
app.include_router(ws_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"service": settings.APP_NAME, "status": "running"}


@app.get("/health")
async def health():
    """Detailed health check: which vendors have a server-side key."""
    credentials = app.state.services.relay.credentials
    return {
        "status": "healthy",
        "vendors": {v.value: credentials.has_key(v) for v in Vendor},
        "llm": app.state.services.llm.configured,
        "webhook": settings.WEBHOOK_ENABLED,
    }
