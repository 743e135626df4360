from __future__ import annotations
"""Export endpoints: save a finished video to Google Drive, plan caption/music edits."""

from fastapi import APIRouter, Depends

from castforge.api.deps import get_exporter
from castforge.schemas.export import DriveExportRequest, DriveExportResponse, EditPlanRequest, EditPlanResponse
from castforge.services.export_service import DriveExporter, build_edit_plan

router = APIRouter()


@router.post("/drive", response_model=DriveExportResponse, response_model_by_alias=True)
async def export_to_drive(req: DriveExportRequest, exporter: DriveExporter = Depends(get_exporter)):
    return await exporter.export(req.video_url, req.folder_id, req.file_name)


@router.post("/edit-plan", response_model=EditPlanResponse, response_model_by_alias=True)
async def edit_plan(req: EditPlanRequest):
    """Caption style and music track for a video; the video itself is unchanged."""
    return build_edit_plan(req.video_url, req.caption_text, req.caption_style, req.music_genre)
