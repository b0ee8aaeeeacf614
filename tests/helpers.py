import asyncio

from fastapi.testclient import TestClient

from pixreview.models.user import Role, User
from pixreview.services.auth import COOKIE_NAME, create_token

ADMIN = User(email="admin@x.com", name="Admin", role=Role.ADMIN)
MANAGER = User(email="mia@x.com", name="Mia", role=Role.MANAGER)
ANA = User(email="a@x.com", name="Ana", role=Role.USER, start_path="ProjectA")


def login_as(client: TestClient, user: User) -> TestClient:
    client.cookies.set(COOKIE_NAME, create_token(user))
    return client


PROBE = {
    "format": {"format_name": "mov,mp4", "duration": "20.0", "size": "2048", "bit_rate": "800000"},
    "streams": [
        {"codec_type": "video", "codec_name": "prores", "width": 3840, "height": 2160, "r_frame_rate": "25/1"},
        {"codec_type": "audio", "codec_name": "pcm_s16le", "channels": 2, "sample_rate": "48000"},
    ],
}


class FakeEncoder:
    """Stands in for ffmpeg: records calls and writes the output file."""

    def __init__(self, returncode=0, progress=(), gate=None):
        self.calls = []
        self.returncode = returncode
        self.progress = list(progress)
        self.gate = gate

    async def __call__(self, args, duration=None, progress_callback=None):
        self.calls.append(args)
        if self.gate is not None:
            await self.gate.wait()
        for percent in self.progress:
            if progress_callback:
                progress_callback(percent)
            await asyncio.sleep(0)
        output = args[-1]
        with open(output, "wb") as f:
            f.write(b"partial" if self.returncode else b"mp4")
        return self.returncode, "" if self.returncode == 0 else "Invalid data found"
