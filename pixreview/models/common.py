"""Core shared models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from .metadata import Metadata


class FileKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class ContentFile(BaseModel):
    name: str
    path: str
    kind: FileKind
    size: Optional[int] = None
    modified: datetime
    mime_type: Optional[str] = None
    metadata: Optional[Metadata] = None


class FileCheck(BaseModel):
    exists: bool
    path: str
    size: Optional[int] = None
    is_file: Optional[bool] = None
    is_directory: Optional[bool] = None


class FolderNode(BaseModel):
    name: str
    path: str
    children: list["FolderNode"] = Field(default_factory=list)


class CreateFolderRequest(BaseModel):
    path: str = ""
    name: str


class DownloadRequest(BaseModel):
    files: list[str] = Field(default_factory=list)
