"""Per-file review metadata models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class Actor(BaseModel):
    """Whoever performs a mutation. Any ``User`` satisfies this shape."""

    name: str
    email: str

    @property
    def signature(self) -> str:
        return f"{self.name} <{self.email}>"


class Metadata(BaseModel):
    selected: Optional[bool] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comments: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    last_modified: Optional[str] = None
    modified_by: Optional[str] = None
    converted_path: Optional[str] = None
    conversion_date: Optional[str] = None


class SidecarState(str, Enum):
    ABSENT = "absent"
    LOADED = "loaded"
    MALFORMED = "malformed"


class SidecarRead(BaseModel):
    state: SidecarState
    metadata: Metadata = Field(default_factory=Metadata)
    error: Optional[str] = None


class MetadataAction(str, Enum):
    COMMENT = "comment"
    RATING = "rating"
    TOGGLE_SELECTION = "toggle-selection"
    UPDATE = "update"


class MetadataRequest(BaseModel):
    path: str
    action: MetadataAction
    comment: Optional[str] = None
    rating: Optional[int] = None
    metadata: Optional[Metadata] = None


class PathRequest(BaseModel):
    path: str
