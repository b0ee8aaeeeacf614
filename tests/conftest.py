import json

import pytest
from fastapi.testclient import TestClient

from pixreview.app import create_app
from pixreview.config import settings
from pixreview.services.transcoder import transcode_manager
from pixreview.utils import media_commands

from helpers import ADMIN, ANA, MANAGER, PROBE, FakeEncoder


@pytest.fixture()
def data_root(tmp_path, monkeypatch):
    """Point settings at a throwaway data dir and user directory."""
    root = tmp_path / "data"
    root.mkdir()
    users_file = tmp_path / "config" / "users.json"
    users_file.parent.mkdir()
    users_file.write_text(json.dumps({"users": [u.dump() for u in (ADMIN, MANAGER, ANA)]}))

    monkeypatch.setattr(settings, "data_dir", root)
    monkeypatch.setattr(settings, "users_file", users_file)
    monkeypatch.setattr(settings, "auth_secret", "test-secret")
    monkeypatch.setattr(settings, "completed_job_ttl", 0.0)
    monkeypatch.setattr(settings, "failed_job_ttl", 0.0)
    yield root


@pytest.fixture()
def job_state():
    transcode_manager._jobs.clear()
    transcode_manager._tasks.clear()
    transcode_manager._progress_listeners.clear()
    try:
        yield transcode_manager
    finally:
        transcode_manager._jobs.clear()
        transcode_manager._tasks.clear()
        transcode_manager._progress_listeners.clear()


@pytest.fixture()
def client(data_root, job_state):
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture()
def encoder(monkeypatch, data_root):
    """Replace ffmpeg and ffprobe and seed ``clips/clip.mov``."""
    fake = FakeEncoder()

    async def fake_probe(path):
        return PROBE

    monkeypatch.setattr(media_commands, "run_ffmpeg", fake)
    monkeypatch.setattr(media_commands, "ffprobe_json", fake_probe)
    (data_root / "clips").mkdir()
    (data_root / "clips" / "clip.mov").write_bytes(b"mov")
    return fake
