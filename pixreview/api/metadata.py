"""Ratings, comments, selection and free-form metadata edits."""

from fastapi import APIRouter, Depends

from ..errors import ValidationError
from ..models.metadata import Metadata, MetadataAction, MetadataRequest, PathRequest
from ..models.user import User
from ..services.transcoder import transcode_manager
from ..storage.sidecar import sidecar_store
from ..utils.paths import normalize_path
from .deps import current_user, ensure_path_allowed

router = APIRouter(prefix="/metadata", tags=["metadata"])


@router.get("", response_model=Metadata)
async def get_metadata(path: str = "", user: User = Depends(current_user)):
    rel = normalize_path(path)
    if not rel:
        raise ValidationError("File path is required")
    ensure_path_allowed(user, rel)
    return await sidecar_store.read(rel)


@router.post("")
async def update_metadata(req: MetadataRequest, user: User = Depends(current_user)):
    path = normalize_path(req.path)
    if not path:
        raise ValidationError("File path is required")
    ensure_path_allowed(user, path)

    if req.action == MetadataAction.COMMENT:
        if not req.comment:
            raise ValidationError("Comment text is required")
        await sidecar_store.append_comment(path, req.comment, user)

    elif req.action == MetadataAction.RATING:
        if req.rating is None:
            raise ValidationError("Rating is required")
        await sidecar_store.set_rating(path, req.rating, user)

    elif req.action == MetadataAction.TOGGLE_SELECTION:
        selected = await sidecar_store.toggle_selection(path, user)
        return {"selected": selected}

    elif req.action == MetadataAction.UPDATE:
        if req.metadata is None:
            raise ValidationError("Metadata is required")
        await sidecar_store.write(path, req.metadata, user)

    return await sidecar_store.read(path)


@router.post("/repair")
async def repair_metadata(req: PathRequest, user: User = Depends(current_user)):
    ensure_path_allowed(user, req.path)
    return await transcode_manager.repair_conversion_pointer(req.path, user)
