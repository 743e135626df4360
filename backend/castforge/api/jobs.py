from __future__ import annotations
"""Job API: start vendor jobs in the background and follow them.

Progress is also pushed over WebSocket ``/ws/jobs/{job_id}``.
"""

from fastapi import APIRouter, Depends, HTTPException

from castforge.api.deps import get_registry
from castforge.schemas.jobs import AdVideoCreate, JobCreate, JobRead
from castforge.services.ad_video import build_ad_specs
from castforge.services.job_driver import JobRegistry

router = APIRouter()


@router.post("/", response_model=JobRead, status_code=202)
async def create_job(req: JobCreate, registry: JobRegistry = Depends(get_registry)):
    """Submit a job; the create-call is made before responding."""
    record = await registry.start(
        req.to_spec(),
        api_key=req.api_key,
        max_attempts=req.max_attempts,
        interval=req.interval_seconds,
    )
    return record.to_read()


@router.post("/ad", response_model=JobRead, status_code=202)
async def create_ad_job(req: AdVideoCreate, registry: JobRegistry = Depends(get_registry)):
    """Start an ad video: JoggAI avatar first, Replicate clip as fallback.

    The vendor that accepted the job is reported in ``vendor``.
    """
    record = await registry.start_first(
        build_ad_specs(req.prompt, req.aspect_ratio),
        max_attempts=req.max_attempts,
        interval=req.interval_seconds,
    )
    return record.to_read()


@router.get("/", response_model=list[JobRead])
async def list_jobs(registry: JobRegistry = Depends(get_registry)):
    """List jobs of this process, newest first."""
    return [r.to_read() for r in registry.list()]


@router.get("/{job_id}", response_model=JobRead)
async def get_job(job_id: str, registry: JobRegistry = Depends(get_registry)):
    record = registry.get(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return record.to_read()


@router.delete("/{job_id}", response_model=JobRead)
async def cancel_job(job_id: str, registry: JobRegistry = Depends(get_registry)):
    """Stop polling a job. The vendor may still finish it on their side."""
    record = registry.cancel(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return record.to_read()
