"""User directory models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from .metadata import Actor


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class User(Actor):
    model_config = ConfigDict(populate_by_name=True)

    role: Role = Role.USER
    start_path: Optional[str] = Field(default=None, alias="startPath")

    def dump(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class UsersConfig(BaseModel):
    users: list[User] = Field(default_factory=list)


class LoginRequest(BaseModel):
    email: str


class UserAdminAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class UserAdminRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: UserAdminAction
    user_data: Optional[User] = Field(default=None, alias="userData")
    original_email: Optional[str] = Field(default=None, alias="originalEmail")
    email: Optional[str] = None
