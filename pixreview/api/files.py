"""Folder listing, upload, delete and raw file serving."""

import asyncio
import logging
from pathlib import Path
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from starlette.responses import StreamingResponse

from ..errors import NotFoundError, ReviewError
from ..models.common import CreateFolderRequest
from ..models.user import Role, User
from ..services.file_tree import file_tree, mime_type_for
from ..utils.paths import normalize_path
from .deps import current_user, ensure_path_allowed, require_roles, scoped_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

_CHUNK = 1024 * 1024


class RangeNotSatisfiable(ReviewError):
    status_code = 416


def parse_range(header: str, file_size: int) -> tuple[int, int]:
    """Inclusive (start, end) for a single ``bytes=`` range."""
    try:
        unit, _, ranges = header.partition("=")
        if unit.strip().lower() != "bytes" or "," in ranges:
            raise ValueError
        start_s, _, end_s = ranges.strip().partition("-")
        if start_s:
            start = int(start_s)
            end = int(end_s) if end_s else file_size - 1
        else:
            # suffix range: last N bytes
            start = max(0, file_size - int(end_s))
            end = file_size - 1
        end = min(end, file_size - 1)
        if start < 0 or start > end:
            raise ValueError
    except ValueError:
        raise RangeNotSatisfiable("Invalid Range")
    return start, end


def _file_chunks(path: Path, start: int, end: int) -> Iterator[bytes]:
    with open(path, "rb") as f:
        f.seek(start)
        remaining = end - start + 1
        while remaining > 0:
            data = f.read(min(_CHUNK, remaining))
            if not data:
                break
            remaining -= len(data)
            yield data


@router.get("")
async def list_files(
    path: str = "",
    metadata: bool = False,
    user: User = Depends(current_user),
):
    rel = scoped_path(user, path)
    files = await file_tree.list_dir(rel, with_metadata=metadata)
    return {"files": files, "path": rel}


@router.post("")
async def create_folder(
    req: CreateFolderRequest,
    user: User = Depends(require_roles(Role.ADMIN, Role.MANAGER)),
):
    folder = normalize_path(f"{req.path}/{req.name}" if req.path else req.name)
    ensure_path_allowed(user, folder)
    file_tree.create_folder(folder)
    return {"success": True, "path": folder}


@router.delete("")
async def delete_file(
    path: str = Query(...),
    user: User = Depends(require_roles(Role.ADMIN, Role.MANAGER)),
):
    ensure_path_allowed(user, path)
    await asyncio.to_thread(file_tree.delete, path)
    return {"success": True, "message": "File deleted successfully"}


@router.post("/upload")
async def upload_file(
    file: UploadFile = File(...),
    path: str = Form(""),
    user: User = Depends(current_user),
):
    folder = scoped_path(user, path)
    stored = await asyncio.to_thread(file_tree.save_upload, folder, file.filename or "", file.file)
    return {"success": True, "file_name": Path(stored).name, "path": stored}


@router.get("/check")
async def check_file(path: str = "", user: User = Depends(current_user)):
    return file_tree.stat(scoped_path(user, path))


@router.get("/raw/{file_path:path}")
async def serve_file(
    file_path: str,
    request: Request,
    user: User = Depends(current_user),
    download: Optional[bool] = False,
):
    ensure_path_allowed(user, file_path)
    full = file_tree.resolve(file_path)
    if not full.is_file():
        raise NotFoundError("File not found")

    file_size = full.stat().st_size
    media_type = mime_type_for(full.name)
    headers = {"Accept-Ranges": "bytes", "Content-Type": media_type}
    if download:
        headers["Content-Disposition"] = f'attachment; filename="{full.name}"'

    range_header = request.headers.get("range")
    if range_header and file_size > 0:
        start, end = parse_range(range_header, file_size)
        headers["Content-Range"] = f"bytes {start}-{end}/{file_size}"
        headers["Content-Length"] = str(end - start + 1)
        return StreamingResponse(_file_chunks(full, start, end), status_code=206, headers=headers)

    headers["Content-Length"] = str(file_size)
    headers["Cache-Control"] = "public, max-age=3600"
    return StreamingResponse(_file_chunks(full, 0, file_size - 1), status_code=200, headers=headers)
