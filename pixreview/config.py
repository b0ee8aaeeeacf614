"""Application settings."""

from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    host: str = "127.0.0.1"
    port: int = 8788
    debug: bool = False
    frontend_dir: Path = Path(__file__).resolve().parent.parent / "frontend"
    data_dir: Path = Path("data")
    users_file: Path = Path("config") / "users.json"

    auth_secret: str = "change-me"
    token_ttl_days: int = 7
    cookie_secure: bool = False

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    max_upload_size_mb: int = 500
    preview_interval: int = 10
    completed_job_ttl: float = 5.0
    failed_job_ttl: float = 30.0

    model_config = {"env_prefix": "PIXREVIEW_"}


settings = Settings()
