from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="HLS_SERVICE_", env_file=".env", env_file_encoding="utf-8")

    app_name: str = "hls-service"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Filesystem layout
    videos_dir: str = "videos"
    transcoded_dir: str = "transcoded"
    state_file: str = "transcode_mappings.json"

    # Encoder
    ffmpeg_binary: str = "ffmpeg"
    hls_segment_seconds: int = 5

    # None spawns one worker thread per accepted job
    max_workers: int | None = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
