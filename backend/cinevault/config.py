from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # App
    app_name: str = "CineVault"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./cinevault.db"

    # JWT
    secret_key: str = "CHANGE-THIS-IN-PRODUCTION"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 24 hours

    # Storage
    videos_dir: str = "videos"
    default_video_extension: str = ".mp4"
    stream_url_prefix: str = "/static/videos"
    max_upload_size_mb: int = 4096

    # ffprobe
    ffprobe_path: str = "ffprobe"
    probe_timeout_seconds: float = 60.0
    probe_max_output_mb: int = 10
    probe_max_concurrency: int = 4

    # Reverse geocoding (Nominatim)
    geocoder_url: str = "https://nominatim.openstreetmap.org"
    geocoder_user_agent: str = "CineVault/1.0"
    geocoder_zoom: int = 14
    geocoder_timeout_seconds: float = 10.0

    # Upload progress reported by the client is persisted at most this often
    progress_checkpoint_seconds: float = 5.0

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
