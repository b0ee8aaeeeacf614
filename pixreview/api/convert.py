"""Transcode jobs, probing and thumbnail generation."""

import logging

from fastapi import APIRouter, Depends

from ..errors import ValidationError
from ..models.metadata import PathRequest
from ..models.transcode import PreviewTrackRequest, ThumbnailRequest
from ..models.user import User
from ..services import transcoder
from ..services.transcoder import transcode_manager
from .deps import current_user, ensure_path_allowed

logger = logging.getLogger(__name__)

router = APIRouter(tags=["convert"])


@router.post("/convert")
async def start_conversion(req: PathRequest, user: User = Depends(current_user)):
    ensure_path_allowed(user, req.path)
    info = await transcoder.probe(req.path)
    if info.video is None:
        raise ValidationError("No video stream found")

    job = transcode_manager.start(req.path, user)
    logger.info(f"{user.email} started conversion of {job.path}")
    return {
        "message": "Conversion started",
        "job": job,
        "original_info": info,
    }


@router.get("/convert")
async def conversion_status(path: str, user: User = Depends(current_user)):
    ensure_path_allowed(user, path)
    return await transcode_manager.status(path)


@router.get("/video-info")
async def video_info(path: str, user: User = Depends(current_user)):
    ensure_path_allowed(user, path)
    return await transcoder.probe(path)


@router.post("/thumbnail")
async def create_thumbnail(req: ThumbnailRequest, user: User = Depends(current_user)):
    ensure_path_allowed(user, req.path)
    thumbnail = await transcoder.generate_thumbnail(req.path, req.timestamp)
    return {"success": True, "thumbnail_path": thumbnail, "url": f"/api/files/raw/{thumbnail}"}


@router.post("/video-thumbnails")
async def create_preview_track(req: PreviewTrackRequest, user: User = Depends(current_user)):
    ensure_path_allowed(user, req.path)
    frames_dir, vtt = await transcoder.generate_preview_track(req.path, req.interval)
    return {
        "success": True,
        "thumbnails_path": frames_dir,
        "vtt_path": vtt,
        "vtt_url": f"/api/files/raw/{vtt}",
    }
