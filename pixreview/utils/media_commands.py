"""Wrappers for the ffmpeg and ffprobe command-line tools."""

import asyncio
import json
import logging
from typing import Callable, Optional

from ..config import settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


async def run_cmd(
    *args: str,
    timeout: Optional[float] = 30.0,
) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr)."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        return -1, "", f"Executable not found: {args[0]}"

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return -1, "", "Command timed out"

    return (
        proc.returncode or 0,
        stdout.decode("utf-8", errors="replace").strip(),
        stderr.decode("utf-8", errors="replace").strip(),
    )


async def ffprobe_json(path: str) -> Optional[dict]:
    """Container and stream info as ffprobe reports it, or None on failure."""
    rc, out, err = await run_cmd(
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        path,
    )
    if rc != 0:
        logger.warning(f"ffprobe failed for {path}: {err or rc}")
        return None
    try:
        return json.loads(out)
    except json.JSONDecodeError:
        logger.warning(f"ffprobe returned invalid JSON for {path}")
        return None


async def run_ffmpeg(
    args: list[str],
    duration: Optional[float] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> tuple[int, str]:
    """Run ffmpeg with ``args`` and no timeout. Returns (returncode, stderr tail).

    When a callback and the input duration are given, ``-progress pipe:1``
    is added and each ``out_time_ms`` report is turned into a percentage.
    """
    cmd = [settings.ffmpeg_path, "-hide_banner", "-y"]
    track = progress_callback is not None and bool(duration)
    if track:
        cmd += ["-progress", "pipe:1", "-nostats"]
    cmd += args
    logger.info(f"Spawned ffmpeg: {' '.join(cmd)}")

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        return -1, f"Executable not found: {settings.ffmpeg_path}"

    stderr_task = asyncio.create_task(proc.stderr.read())

    if track:
        async for raw in proc.stdout:
            line = raw.decode("utf-8", errors="replace").strip()
            if not line.startswith("out_time_ms="):
                continue
            try:
                micros = int(line.split("=", 1)[1])
            except ValueError:
                continue
            percent = max(0.0, min(100.0, micros / 1_000_000.0 / duration * 100))
            progress_callback(percent)
    else:
        await proc.stdout.read()

    stderr = await stderr_task
    await proc.wait()
    tail = stderr.decode("utf-8", errors="replace").strip().splitlines()[-20:]
    return proc.returncode or 0, "\n".join(tail)


def format_vtt_time(seconds: float) -> str:
    """WebVTT cue timestamp, ``HH:MM:SS.mmm``."""
    total_ms = int(round(seconds * 1000))
    secs, millis = divmod(total_ms, 1000)
    minutes, secs = divmod(secs, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"
