"""Video transcoding, thumbnails and the in-memory job ledger."""

import asyncio
import logging
import shutil
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Callable, Optional

from ..config import settings
from ..errors import ConflictError, NotFoundError, TranscodeError
from ..models.metadata import Actor
from ..models.transcode import (
    AudioStream,
    TranscodeJob,
    TranscodeStatus,
    TranscodeStatusReport,
    VideoInfo,
    VideoStream,
)
from ..storage.sidecar import SidecarStore, sidecar_store
from ..utils import media_commands
from ..utils.paths import normalize_path
from .file_tree import (
    CONVERTED_MARKER,
    PREVIEW_DIR_SUFFIX,
    PREVIEW_TRACK_SUFFIX,
    THUMB_SUFFIX,
    file_tree,
)

logger = logging.getLogger(__name__)

CONVERT_OPTIONS = [
    "-c:v", "libx264",
    "-profile:v", "baseline",
    "-level", "3.1",
    "-pix_fmt", "yuv420p",
    "-preset", "fast",
    "-crf", "23",
    "-maxrate", "10M",
    "-bufsize", "10M",
    "-vf", (
        "scale=w=1920:h=1080:force_original_aspect_ratio=decrease,"
        "pad=1920:1080:(ow-iw)/2:(oh-ih)/2,format=yuv420p"
    ),
    "-c:a", "aac",
    "-ar", "48000",
    "-ac", "2",
    "-b:a", "192k",
    "-movflags", "+faststart",
    "-f", "mp4",
]

THUMBNAIL_FILTER = "scale=320:320:force_original_aspect_ratio=decrease,pad=320:320:(ow-iw)/2:(oh-ih)/2:black"
PREVIEW_FRAME_SIZE = "160:90"


def _sibling(path: str, name: str) -> str:
    parent = str(PurePosixPath(path).parent)
    return name if parent in ("", ".") else f"{parent}/{name}"


def converted_path_for(path: str) -> str:
    path = normalize_path(path)
    return _sibling(path, f"{PurePosixPath(path).stem}{CONVERTED_MARKER}.mp4")


def is_converted(path: str) -> bool:
    return CONVERTED_MARKER in PurePosixPath(normalize_path(path)).stem


def _source(path: str):
    full = file_tree.resolve(path)
    if not full.is_file():
        raise NotFoundError(f"File not found: {normalize_path(path)}")
    return full


def _to_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _frame_rate(value: Optional[str]) -> Optional[float]:
    if not value or "/" not in value:
        return _to_float(value)
    num, _, den = value.partition("/")
    num_f, den_f = _to_float(num), _to_float(den)
    if not num_f or not den_f:
        return None
    return round(num_f / den_f, 3)


def summarize_probe(data: dict) -> VideoInfo:
    fmt = data.get("format") or {}
    streams = data.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)

    info = VideoInfo(
        format=fmt.get("format_name"),
        duration=_to_float(fmt.get("duration")),
        size=_to_int(fmt.get("size")),
        bitrate=_to_int(fmt.get("bit_rate")),
    )
    if video:
        info.video = VideoStream(
            codec=video.get("codec_name"),
            width=_to_int(video.get("width")),
            height=_to_int(video.get("height")),
            fps=_frame_rate(video.get("r_frame_rate")),
            bitrate=_to_int(video.get("bit_rate")),
        )
    if audio:
        info.audio = AudioStream(
            codec=audio.get("codec_name"),
            channels=_to_int(audio.get("channels")),
            sample_rate=_to_int(audio.get("sample_rate")),
            bitrate=_to_int(audio.get("bit_rate")),
        )
    return info


async def probe(path: str) -> VideoInfo:
    full = _source(path)
    data = await media_commands.ffprobe_json(str(full))
    if data is None:
        raise TranscodeError(f"Could not read media info for {normalize_path(path)}")
    return summarize_probe(data)


async def convert_video(
    path: str,
    progress_callback: Optional[Callable[[float], None]] = None,
) -> str:
    """Transcode ``path`` to a web-friendly MP4 beside it and return the output path.

    Already-converted inputs and existing outputs are returned as-is.
    """
    path = normalize_path(path)
    if is_converted(path):
        logger.info(f"{path} is already a converted file")
        return path

    output = converted_path_for(path)
    full_output = file_tree.resolve(output)
    if full_output.exists():
        return output

    full_input = _source(path)
    duration = None
    if progress_callback is not None:
        data = await media_commands.ffprobe_json(str(full_input))
        if data:
            duration = _to_float((data.get("format") or {}).get("duration"))

    full_output.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Starting conversion: {full_input} -> {full_output}")
    rc, err = await media_commands.run_ffmpeg(
        ["-i", str(full_input)] + CONVERT_OPTIONS + [str(full_output)],
        duration=duration,
        progress_callback=progress_callback,
    )
    if rc != 0 or not full_output.exists():
        full_output.unlink(missing_ok=True)
        logger.error(f"ffmpeg failed for {path} (exit {rc}): {err}")
        raise TranscodeError(f"Conversion failed: {err.splitlines()[-1] if err else f'exit code {rc}'}")

    logger.info(f"Conversion completed: {output}")
    return output


async def generate_thumbnail(path: str, timestamp: str = "00:00:01") -> str:
    path = normalize_path(path)
    output = _sibling(path, f"{PurePosixPath(path).stem}{THUMB_SUFFIX}")
    full_output = file_tree.resolve(output)
    if full_output.exists():
        return output

    full_input = _source(path)
    rc, err = await media_commands.run_ffmpeg([
        "-ss", timestamp,
        "-i", str(full_input),
        "-vframes", "1",
        "-vf", THUMBNAIL_FILTER,
        str(full_output),
    ])
    if rc != 0 or not full_output.exists():
        full_output.unlink(missing_ok=True)
        raise TranscodeError(f"Thumbnail generation failed for {path}")
    logger.info(f"Thumbnail generated: {output}")
    return output


def build_preview_track(duration: float, interval: float, frames_url: str) -> str:
    """WebVTT text with one cue per frame, each pointing at ``thumb_N.jpg``."""
    timestamps = []
    t = 0.0
    while t < duration:
        timestamps.append(t)
        t += interval

    lines = ["WEBVTT", ""]
    for i, start in enumerate(timestamps):
        end = timestamps[i + 1] if i + 1 < len(timestamps) else duration
        lines.append(f"{media_commands.format_vtt_time(start)} --> {media_commands.format_vtt_time(end)}")
        lines.append(f"{frames_url}/thumb_{i + 1}.jpg")
        lines.append("")
    return "\n".join(lines)


async def generate_preview_track(path: str, interval: Optional[int] = None) -> tuple[str, str]:
    """Scrubbing thumbnails plus a VTT track. Returns (frames dir, vtt path)."""
    path = normalize_path(path)
    interval = interval or settings.preview_interval
    stem = PurePosixPath(path).stem
    frames_dir = _sibling(path, f"{stem}{PREVIEW_DIR_SUFFIX}")
    vtt = _sibling(path, f"{stem}{PREVIEW_TRACK_SUFFIX}")
    full_vtt = file_tree.resolve(vtt)
    if full_vtt.exists():
        logger.info(f"Preview track already exists: {vtt}")
        return frames_dir, vtt

    info = await probe(path)
    if not info.duration:
        raise TranscodeError("Could not determine video duration")

    full_frames = file_tree.resolve(frames_dir)
    full_frames.mkdir(parents=True, exist_ok=True)
    rc, err = await media_commands.run_ffmpeg([
        "-i", str(_source(path)),
        "-vf", f"fps=1/{interval},scale={PREVIEW_FRAME_SIZE}",
        "-q:v", "5",
        str(full_frames / "thumb_%d.jpg"),
    ])
    if rc != 0:
        shutil.rmtree(full_frames, ignore_errors=True)
        raise TranscodeError(f"Preview thumbnails failed for {path}")

    full_vtt.write_text(
        build_preview_track(info.duration, interval, f"/api/files/raw/{frames_dir}"),
        encoding="utf-8",
    )
    logger.info(f"Preview track created: {vtt}")
    return frames_dir, vtt


class TranscodeManager:
    """One recorded job per source path, kept only in this process."""

    def __init__(self, store: Optional[SidecarStore] = None):
        self.store = store or sidecar_store
        self._jobs: dict[str, TranscodeJob] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._progress_listeners: dict[str, list[Callable]] = {}
        self._pending: set[asyncio.Task] = set()

    def get_job(self, path: str) -> Optional[TranscodeJob]:
        return self._jobs.get(normalize_path(path))

    def add_progress_listener(self, path: str, callback: Callable) -> None:
        self._progress_listeners.setdefault(normalize_path(path), []).append(callback)

    def remove_progress_listener(self, path: str, callback: Callable) -> None:
        listeners = self._progress_listeners.get(normalize_path(path), [])
        if callback in listeners:
            listeners.remove(callback)

    def start(self, path: str, actor: Actor) -> TranscodeJob:
        """Record a job and run it in the background. Must be called on the event loop."""
        path = normalize_path(path)
        existing = self._jobs.get(path)
        if existing and not existing.status.terminal:
            raise ConflictError("Conversion already in progress")

        job = TranscodeJob(path=path)
        self._jobs[path] = job
        self._tasks[path] = asyncio.create_task(self._run(job, actor))
        return job

    async def wait(self, path: str) -> None:
        task = self._tasks.get(normalize_path(path))
        if task:
            await asyncio.shield(task)

    async def _run(self, job: TranscodeJob, actor: Actor) -> None:
        def on_progress(percent: float) -> None:
            if percent <= job.progress:
                return
            previous = int(job.progress)
            job.status = TranscodeStatus.CONVERTING
            job.progress = percent
            if int(percent) != previous:
                task = asyncio.create_task(self._notify_progress(job))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

        await self._notify_progress(job)
        try:
            output = await convert_video(job.path, on_progress)
            await self.store.record_conversion(job.path, output, actor)
        except Exception as e:
            job.status = TranscodeStatus.ERROR
            job.error = str(e)
            job.completed_at = datetime.now(tz=timezone.utc)
            logger.error(f"Conversion error for {job.path}: {e}")
            self._schedule_prune(job, settings.failed_job_ttl)
        else:
            job.status = TranscodeStatus.COMPLETED
            job.progress = 100.0
            job.output_path = output
            job.completed_at = datetime.now(tz=timezone.utc)
            self._schedule_prune(job, settings.completed_job_ttl)
        await self._notify_progress(job)

    def _schedule_prune(self, job: TranscodeJob, delay: float) -> None:
        asyncio.get_running_loop().call_later(delay, self._prune, job)

    def _prune(self, job: TranscodeJob) -> None:
        if self._jobs.get(job.path) is not job:
            return
        del self._jobs[job.path]
        self._tasks.pop(job.path, None)
        self._progress_listeners.pop(job.path, None)

    async def _notify_progress(self, job: TranscodeJob) -> None:
        for cb in list(self._progress_listeners.get(job.path, [])):
            try:
                await cb(job)
            except Exception as e:
                logger.debug(f"Progress listener failed for {job.path}: {e}")

    async def status(self, path: str) -> TranscodeStatusReport:
        path = normalize_path(path)
        job = self._jobs.get(path)
        if job:
            return TranscodeStatusReport(
                status=job.status.value,
                progress=job.progress,
                error=job.error,
                converted_path=job.output_path,
            )
        metadata = await self.store.read(path)
        if metadata.converted_path:
            return TranscodeStatusReport(
                status=TranscodeStatus.COMPLETED.value,
                progress=100.0,
                converted_path=metadata.converted_path,
                conversion_date=metadata.conversion_date,
            )
        return TranscodeStatusReport(status="not_started")

    async def repair_conversion_pointer(self, path: str, actor: Actor) -> dict:
        """Fix a ``_converted_converted`` pointer, or drop it if nothing is there."""
        path = normalize_path(path)
        metadata = await self.store.read(path)
        doubled = CONVERTED_MARKER * 2
        if not metadata.converted_path or doubled not in metadata.converted_path:
            return {"success": False, "message": "No fix needed"}

        old = metadata.converted_path
        fixed = old.replace(doubled, CONVERTED_MARKER)
        if file_tree.resolve(fixed).exists():
            metadata.converted_path = fixed
            await self.store.write(path, metadata, actor)
            return {"success": True, "old_path": old, "new_path": fixed}

        await self.store.clear_conversion(path, actor)
        return {"success": True, "message": "Removed invalid converted path"}


# Singleton
transcode_manager = TranscodeManager()
