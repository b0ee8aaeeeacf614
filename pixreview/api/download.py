"""Collection download as a zip archive."""

import asyncio

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ..models.common import DownloadRequest
from ..models.user import User
from ..services.archive import archive_filename, build_archive
from .deps import current_user, ensure_path_allowed

router = APIRouter(prefix="/download", tags=["download"])


@router.post("")
async def download_collection(req: DownloadRequest, user: User = Depends(current_user)):
    for path in req.files:
        ensure_path_allowed(user, path)
    data = await asyncio.to_thread(build_archive, req.files)
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{archive_filename()}"'},
    )
