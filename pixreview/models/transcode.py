"""Transcode and probe models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class TranscodeStatus(str, Enum):
    STARTING = "starting"
    CONVERTING = "converting"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (TranscodeStatus.COMPLETED, TranscodeStatus.ERROR)


class TranscodeJob(BaseModel):
    path: str
    status: TranscodeStatus = TranscodeStatus.STARTING
    progress: float = 0.0
    output_path: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    completed_at: Optional[datetime] = None


class TranscodeStatusReport(BaseModel):
    status: str
    progress: Optional[float] = None
    error: Optional[str] = None
    converted_path: Optional[str] = None
    conversion_date: Optional[str] = None


class VideoStream(BaseModel):
    codec: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None
    bitrate: Optional[int] = None


class AudioStream(BaseModel):
    codec: Optional[str] = None
    channels: Optional[int] = None
    sample_rate: Optional[int] = None
    bitrate: Optional[int] = None


class VideoInfo(BaseModel):
    format: Optional[str] = None
    duration: Optional[float] = None
    size: Optional[int] = None
    bitrate: Optional[int] = None
    video: Optional[VideoStream] = None
    audio: Optional[AudioStream] = None


class ThumbnailRequest(BaseModel):
    path: str
    timestamp: str = "00:00:01"


class PreviewTrackRequest(BaseModel):
    path: str
    interval: Optional[int] = Field(default=None, ge=1)
