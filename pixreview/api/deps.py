"""Request dependencies: session lookup, role checks, path confinement."""

from typing import Optional

from fastapi import Depends, Request

from ..errors import ForbiddenError, UnauthorizedError
from ..models.user import Role, User
from ..services.auth import COOKIE_NAME, authenticate, authorize, has_role
from ..utils.paths import normalize_path


def current_user(request: Request) -> User:
    user = authenticate(request.cookies.get(COOKIE_NAME))
    if not user:
        raise UnauthorizedError("Unauthorized")
    return user


def require_roles(*roles: Role):
    def dependency(user: User = Depends(current_user)) -> User:
        if not has_role(user, *roles):
            raise ForbiddenError("Insufficient permissions")
        return user

    return dependency


def ensure_path_allowed(user: User, path: Optional[str]) -> None:
    if not authorize(user, path):
        raise ForbiddenError("Access denied")
    # an empty path is the data root, above any start path
    if normalize_path(user.start_path) and not normalize_path(path):
        raise ForbiddenError("Access denied")


def scoped_path(user: User, path: Optional[str]) -> str:
    """Normalized ``path``, or the user's start path when none is given. Checked."""
    rel = normalize_path(path) or normalize_path(user.start_path)
    ensure_path_allowed(user, rel)
    return rel
