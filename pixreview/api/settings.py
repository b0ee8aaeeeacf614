"""Admin-only user management and folder tree."""

import asyncio

from fastapi import APIRouter, Depends

from ..errors import ValidationError
from ..models.user import Role, User, UserAdminAction, UserAdminRequest
from ..services.auth import user_directory
from ..services.file_tree import file_tree
from .deps import require_roles

router = APIRouter(prefix="/settings", tags=["settings"])

admin_only = require_roles(Role.ADMIN)


@router.get("/users")
async def list_users(user: User = Depends(admin_only)):
    return {"users": [u.dump() for u in user_directory.users()]}


@router.post("/users")
async def manage_users(req: UserAdminRequest, user: User = Depends(admin_only)):
    if req.action == UserAdminAction.CREATE:
        if req.user_data is None:
            raise ValidationError("User data is required")
        user_directory.create(req.user_data)

    elif req.action == UserAdminAction.UPDATE:
        if req.user_data is None or not req.original_email:
            raise ValidationError("User data and original email are required")
        user_directory.update(req.original_email, req.user_data)

    elif req.action == UserAdminAction.DELETE:
        if not req.email:
            raise ValidationError("Email is required")
        user_directory.delete(req.email)

    return {"success": True}


@router.get("/folders")
async def folder_tree(user: User = Depends(admin_only)):
    file_tree.ensure_root()
    return {"folders": await asyncio.to_thread(file_tree.folder_tree)}
