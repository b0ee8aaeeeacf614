"""Login, logout and session introspection."""

import logging

from fastapi import APIRouter, Depends, Response

from ..config import settings
from ..errors import UnauthorizedError
from ..models.user import LoginRequest, User
from ..services.auth import COOKIE_NAME, create_token, user_directory
from .deps import current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, token: str, max_age: int) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


@router.post("/login")
async def login(req: LoginRequest, response: Response):
    user = user_directory.find(req.email.strip())
    if not user:
        logger.info(f"Login refused for {req.email}")
        raise UnauthorizedError("User not found")

    _set_session_cookie(response, create_token(user), settings.token_ttl_days * 24 * 60 * 60)
    logger.info(f"{user.email} logged in")
    return {"user": user.dump()}


@router.post("/logout")
async def logout(response: Response):
    _set_session_cookie(response, "", 0)
    return {"success": True}


@router.get("/me")
async def me(user: User = Depends(current_user)):
    return {"user": user.dump()}
