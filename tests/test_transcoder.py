import asyncio

import pytest

from pixreview.errors import ConflictError, TranscodeError
from pixreview.models.metadata import Metadata
from pixreview.models.transcode import TranscodeStatus
from pixreview.services import transcoder
from pixreview.services.transcoder import (
    build_preview_track,
    convert_video,
    converted_path_for,
    summarize_probe,
)
from pixreview.storage.sidecar import sidecar_store
from pixreview.utils import media_commands

from helpers import ANA, PROBE


def test_converted_path_naming():
    assert converted_path_for("clips/clip.mov") == "clips/clip_converted.mp4"
    assert converted_path_for("clip.mov") == "clip_converted.mp4"


def test_convert_twice_invokes_encoder_once(encoder, data_root):
    first = asyncio.run(convert_video("clips/clip.mov"))
    second = asyncio.run(convert_video("clips/clip.mov"))

    assert first == second == "clips/clip_converted.mp4"
    assert len(encoder.calls) == 1
    assert (data_root / "clips" / "clip_converted.mp4").read_bytes() == b"mp4"
    args = encoder.calls[0]
    assert args[args.index("-c:v") + 1] == "libx264"
    assert args[args.index("-movflags") + 1] == "+faststart"


def test_converted_input_is_returned_without_encoding(encoder):
    assert asyncio.run(convert_video("clips/clip_converted.mp4")) == "clips/clip_converted.mp4"
    assert encoder.calls == []


def test_failed_encode_removes_partial_output(encoder, data_root):
    encoder.returncode = 1

    with pytest.raises(TranscodeError, match="Invalid data found"):
        asyncio.run(convert_video("clips/clip.mov"))

    assert not (data_root / "clips" / "clip_converted.mp4").exists()


def test_job_completes_and_records_conversion(encoder, job_state, monkeypatch):
    encoder.progress = [10.0, 40.0, 25.0, 90.0]
    seen = []
    monkeypatch.setattr(transcoder.settings, "completed_job_ttl", 60.0)

    async def scenario():
        async def listener(job):
            seen.append(job.progress)

        job_state.add_progress_listener("clips/clip.mov", listener)
        job = job_state.start("clips/clip.mov", ANA)
        await job_state.wait("clips/clip.mov")
        return job, await sidecar_store.read("clips/clip.mov")

    job, metadata = asyncio.run(scenario())

    assert job.status == TranscodeStatus.COMPLETED
    assert job.progress == 100.0
    assert job.output_path == "clips/clip_converted.mp4"
    assert metadata.converted_path == "clips/clip_converted.mp4"
    assert metadata.conversion_date
    assert metadata.modified_by == "Ana <a@x.com>"
    assert seen == sorted(seen)
    assert seen[-1] == 100.0


def test_second_start_while_running_is_rejected(encoder, job_state):
    async def scenario():
        encoder.gate = asyncio.Event()
        job_state.start("clips/clip.mov", ANA)
        with pytest.raises(ConflictError):
            job_state.start("/clips/clip.mov/", ANA)
        encoder.gate.set()
        await job_state.wait("clips/clip.mov")

    asyncio.run(scenario())
    assert len(encoder.calls) == 1


def test_failed_job_is_kept_for_polling_then_pruned(encoder, job_state, monkeypatch):
    encoder.returncode = 1
    monkeypatch.setattr(transcoder.settings, "failed_job_ttl", 0.05)

    async def scenario():
        job_state.start("clips/clip.mov", ANA)
        await job_state.wait("clips/clip.mov")
        report = await job_state.status("clips/clip.mov")
        await asyncio.sleep(0.1)
        return report, job_state.get_job("clips/clip.mov")

    report, pruned = asyncio.run(scenario())

    assert report.status == TranscodeStatus.ERROR.value
    assert "Invalid data found" in report.error
    assert pruned is None


def test_finished_job_can_be_restarted(encoder, job_state, monkeypatch):
    encoder.returncode = 1
    monkeypatch.setattr(transcoder.settings, "failed_job_ttl", 60.0)

    async def scenario():
        job_state.start("clips/clip.mov", ANA)
        await job_state.wait("clips/clip.mov")
        encoder.returncode = 0
        retry = job_state.start("clips/clip.mov", ANA)
        await job_state.wait("clips/clip.mov")
        return retry

    retry = asyncio.run(scenario())
    assert retry.status == TranscodeStatus.COMPLETED
    assert len(encoder.calls) == 2


def test_status_falls_back_to_sidecar(data_root, job_state):
    async def scenario():
        before = await job_state.status("clip.mov")
        await sidecar_store.write("clip.mov", Metadata(converted_path="clip_converted.mp4"), ANA)
        return before, await job_state.status("clip.mov")

    before, after = asyncio.run(scenario())

    assert before.status == "not_started"
    assert after.status == "completed"
    assert after.converted_path == "clip_converted.mp4"


def test_repair_fixes_doubled_converted_suffix(encoder, data_root, job_state):
    (data_root / "clips" / "clip_converted.mp4").write_bytes(b"mp4")

    async def scenario():
        await sidecar_store.write(
            "clips/clip.mov",
            Metadata(converted_path="clips/clip_converted_converted.mp4"),
            ANA,
        )
        result = await job_state.repair_conversion_pointer("clips/clip.mov", ANA)
        return result, await sidecar_store.read("clips/clip.mov")

    result, metadata = asyncio.run(scenario())

    assert result["success"] is True
    assert metadata.converted_path == "clips/clip_converted.mp4"


def test_repair_drops_pointer_without_file(data_root, job_state):
    async def scenario():
        await sidecar_store.write("a.mov", Metadata(converted_path="a_converted_converted.mp4"), ANA)
        result = await job_state.repair_conversion_pointer("a.mov", ANA)
        return result, await sidecar_store.read("a.mov")

    result, metadata = asyncio.run(scenario())

    assert result["message"] == "Removed invalid converted path"
    assert metadata.converted_path is None


def test_thumbnail_is_memoized(encoder, data_root):
    first = asyncio.run(transcoder.generate_thumbnail("clips/clip.mov"))
    second = asyncio.run(transcoder.generate_thumbnail("clips/clip.mov"))

    assert first == second == "clips/clip_thumb.jpg"
    assert len(encoder.calls) == 1


def test_preview_track_writes_vtt(encoder, data_root):
    frames_dir, vtt = asyncio.run(transcoder.generate_preview_track("clips/clip.mov", 10))

    assert frames_dir == "clips/clip_thumbnails"
    assert vtt == "clips/clip_thumbnails.vtt"
    text = (data_root / "clips" / "clip_thumbnails.vtt").read_text()
    assert text.startswith("WEBVTT")
    assert "00:00:10.000 --> 00:00:20.000" in text
    assert "/api/files/raw/clips/clip_thumbnails/thumb_2.jpg" in text


def test_build_preview_track_last_cue_ends_at_duration():
    text = build_preview_track(25.5, 10, "/api/files/raw/x_thumbnails")

    cues = [line for line in text.splitlines() if "-->" in line]
    assert cues == [
        "00:00:00.000 --> 00:00:10.000",
        "00:00:10.000 --> 00:00:20.000",
        "00:00:20.000 --> 00:00:25.500",
    ]


def test_format_vtt_time_rolls_over():
    assert media_commands.format_vtt_time(3725.9996) == "01:02:06.000"


def test_summarize_probe():
    info = summarize_probe(PROBE)

    assert info.duration == 20.0
    assert info.video.codec == "prores"
    assert info.video.fps == 25.0
    assert info.audio.sample_rate == 48000
