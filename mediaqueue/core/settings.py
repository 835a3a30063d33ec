# mediaqueue/core/settings.py
from functools import lru_cache
from typing import Optional, Set

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _csv(value: str) -> Set[str]:
    return {v.strip().lower() for v in (value or "").split(",") if v.strip()}


class UploadSettings(BaseSettings):
    # === Algemeen ===
    app_env: str = "local"  # local | development | production
    log_level: str = "INFO"

    # === Validatie ===
    max_upload_mb: int = Field(10, description="Max file size per item in MB")
    allowed_upload_mime: str = (
        "image/jpeg,image/png,image/gif,image/webp,image/svg+xml,"
        "video/mp4,video/webm,audio/mpeg,audio/wav,application/pdf,"
        "application/msword,"
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document,"
        "application/vnd.ms-excel,"
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet,"
        "application/zip"
    )
    allowed_extensions: str = "jpg,jpeg,png,gif,webp,svg,mp4,webm,mp3,wav,pdf,doc,docx,xls,xlsx,zip"

    # === Queue ===
    max_files: int = 20
    max_concurrent_uploads: int = Field(1, ge=1, description="In-flight transfers per run")

    # === Previews ===
    preview_dir: Optional[str] = None  # None = system temp dir
    preview_max_px: int = 320

    # === Upload backend ===
    upload_backend: str = "http"  # http | s3
    media_api_base_url: str = "http://localhost:8000/api"
    media_api_token: Optional[str] = None
    upload_timeout_seconds: float = 120.0
    destination_folder: Optional[str] = None

    # === S3 ===
    s3_bucket: Optional[str] = None
    s3_region: str = "eu-west-1"
    s3_prefix: str = "media"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def allowed_mime_set(self) -> Set[str]:
        return _csv(self.allowed_upload_mime)

    @property
    def allowed_extension_set(self) -> Set[str]:
        return {e.lstrip(".") for e in _csv(self.allowed_extensions)}


@lru_cache(maxsize=1)
def get_settings() -> UploadSettings:
    """Singleton settings, met log-level per omgeving."""
    s = UploadSettings()
    env = s.app_env.lower()
    if env == "production":
        s.log_level = "WARNING"
    elif env == "development":
        s.log_level = "DEBUG"
    return s

