"""Data models."""

from .common import ContentFile, FileCheck, FileKind, FolderNode
from .metadata import Actor, Metadata, SidecarRead, SidecarState
from .transcode import TranscodeJob, TranscodeStatus, VideoInfo
from .user import Role, User, UsersConfig

__all__ = [
    "ContentFile",
    "FileCheck",
    "FileKind",
    "FolderNode",
    "Actor",
    "Metadata",
    "SidecarRead",
    "SidecarState",
    "TranscodeJob",
    "TranscodeStatus",
    "VideoInfo",
    "Role",
    "User",
    "UsersConfig",
]
