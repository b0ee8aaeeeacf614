"""Session tokens, start-path confinement and the JSON user directory."""

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from ..config import settings
from ..errors import ConflictError, ForbiddenError, NotFoundError, StorageError
from ..models.user import Role, User, UsersConfig
from ..utils.paths import normalize_path

logger = logging.getLogger(__name__)

COOKIE_NAME = "auth-token"
TOKEN_ALGORITHM = "HS256"

_USER_CLAIMS = ("email", "name", "role", "startPath")


def create_token(user: User, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(tz=timezone.utc)
    payload = user.dump()
    payload["iat"] = now
    payload["exp"] = now + timedelta(days=settings.token_ttl_days)
    return jwt.encode(payload, settings.auth_secret, algorithm=TOKEN_ALGORITHM)


def authenticate(token: Optional[str]) -> Optional[User]:
    """The user a token was issued for, or None if it is missing, forged or expired."""
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret,
            algorithms=[TOKEN_ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected session token: {e}")
        return None
    try:
        return User.model_validate({k: payload[k] for k in _USER_CLAIMS if k in payload})
    except PydanticValidationError:
        return None


def authorize(user: User, requested_path: Optional[str]) -> bool:
    """Whether ``user`` may touch ``requested_path``.

    A start path confines the user to that folder and everything below it.
    The comparison is a string prefix that must end on a segment boundary,
    so ``ProjectA`` admits ``ProjectA/Sub`` but not ``ProjectAX``. Paths with
    ``..`` segments are always refused.
    """
    try:
        requested = normalize_path(requested_path)
    except ForbiddenError:
        return False
    start = normalize_path(user.start_path)
    if not start or not requested:
        return True
    return requested == start or requested.startswith(start + "/")


def has_role(user: User, *roles: Role) -> bool:
    return user.role in roles


class UserDirectory:
    """The whole user list lives in one JSON file, rewritten on every edit."""

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path is not None else None

    @property
    def path(self) -> Path:
        return self._path if self._path is not None else Path(settings.users_file)

    def load(self) -> UsersConfig:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return UsersConfig.model_validate(raw)
        except FileNotFoundError:
            logger.warning(f"User directory {self.path} does not exist")
        except (OSError, ValueError) as e:
            logger.error(f"Error reading users config {self.path}: {e}")
        return UsersConfig()

    def save(self, config: UsersConfig) -> None:
        data = {"users": [u.dump() for u in config.users]}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            logger.error(f"Error writing users config {self.path}: {e}")
            raise StorageError("Failed to manage users") from e

    def users(self) -> list[User]:
        return self.load().users

    def find(self, email: str) -> Optional[User]:
        return next((u for u in self.users() if u.email == email), None)

    def create(self, user: User) -> User:
        config = self.load()
        if any(u.email == user.email for u in config.users):
            raise ConflictError("User already exists")
        config.users.append(user)
        self.save(config)
        logger.info(f"Created user {user.email}")
        return user

    def update(self, original_email: str, user: User) -> User:
        config = self.load()
        index = next((i for i, u in enumerate(config.users) if u.email == original_email), None)
        if index is None:
            raise NotFoundError("User not found")
        if user.email != original_email and any(u.email == user.email for u in config.users):
            raise ConflictError("User already exists")
        config.users[index] = user
        self.save(config)
        logger.info(f"Updated user {original_email}")
        return user

    def delete(self, email: str) -> None:
        config = self.load()
        config.users = [u for u in config.users if u.email != email]
        self.save(config)
        logger.info(f"Deleted user {email}")


user_directory = UserDirectory()
