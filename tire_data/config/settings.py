"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get type validation at startup and
a single place that documents what's required vs optional.

Mock modes enable local development without external services.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Tire Data API"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. A list allows key rotation without downtime."
    )

    # R2/S3 Media Store Configuration
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account ID for R2"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 secret access key"
    )
    r2_bucket_name: str = Field(
        default="tire-data-media",
        description="R2 bucket name for video/frame storage"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="R2 endpoint URL. Auto-constructed from account_id if not provided."
    )
    r2_public_base_url: Optional[str] = Field(
        default=None,
        description="Public base URL of the bucket (custom domain or r2.dev). Used to build permanent media URLs."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real R2. Enables local dev without object storage."
    )

    # Media Layout
    video_folder: str = Field(
        default="tire-data/videos",
        description="Logical folder for uploaded source videos"
    )
    frame_folder: str = Field(
        default="tire-data/frames",
        description="Logical folder for sampled frames"
    )
    allowed_video_formats: str = Field(
        default="mp4,mov,avi",
        description="Comma-separated list of accepted video container extensions"
    )
    max_video_size_mb: int = Field(
        default=100,
        description="Maximum video size in MB. Checked before anything is sent to the media store."
    )
    frame_upload_batch_size: int = Field(
        default=5,
        description="Frames per group when uploading in batched mode"
    )

    # Frame Sampling Defaults
    sample_max_frames: int = Field(default=5, description="Default number of frames sampled per video")
    sample_frames_per_second: float = Field(default=1.0, description="Default candidate rate")
    sample_quality: float = Field(default=0.8, description="Default JPEG quality in (0, 1]")
    sample_scale_factor: float = Field(default=0.5, description="Default frame scale in (0, 1]")
    sample_randomize: bool = Field(default=False, description="Pick a random subset of candidates")
    max_frames_per_request: int = Field(
        default=60,
        description="Upper bound for max_frames accepted from clients."
    )
    max_frames_per_second: float = Field(
        default=30.0,
        description="Upper bound for frames_per_second accepted from clients."
    )

    # Video Processing
    ffmpeg_path: str = Field(default="ffmpeg", description="Path to ffmpeg binary")
    ffprobe_path: str = Field(default="ffprobe", description="Path to ffprobe binary")
    video_processor_mock_mode: bool = Field(
        default=False,
        description="Use a mock processor that needs no FFmpeg install."
    )

    # Timeouts
    probe_timeout_seconds: float = Field(default=30.0, description="FFprobe metadata timeout")
    frame_timeout_seconds: float = Field(default=10.0, description="Per-frame capture timeout")
    upload_timeout_seconds: float = Field(default=60.0, description="Per-object upload timeout")

    # Database Configuration
    database_path: str = Field(
        default="tire-data.db",
        description="SQLite database file for tire measurements"
    )
    database_busy_timeout_ms: int = Field(
        default=5000,
        description="SQLite busy timeout in milliseconds"
    )
    database_mock_mode: bool = Field(
        default=False,
        description="Use a shared in-memory database. Data is lost on restart."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def allowed_video_formats_list(self) -> list[str]:
        """Lower-cased container extensions, without dots."""
        return [
            fmt.strip().lower().lstrip(".")
            for fmt in self.allowed_video_formats.split(",")
            if fmt.strip()
        ]

    @property
    def max_video_size_bytes(self) -> int:
        return self.max_video_size_mb * 1024 * 1024

    @property
    def r2_endpoint(self) -> str:
        """
        Construct R2 endpoint URL from account ID.

        R2 endpoints follow the pattern: https://{account_id}.r2.cloudflarestorage.com
        """
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.api_keys_list:
            missing.append("API_KEYS")

        # R2 only required if not in mock mode
        if not self.r2_mock_mode:
            if not self.r2_account_id and not self.r2_endpoint_url:
                missing.append("R2_ACCOUNT_ID or R2_ENDPOINT_URL")
            if not self.r2_access_key_id:
                missing.append("R2_ACCESS_KEY_ID")
            if not self.r2_secret_access_key:
                missing.append("R2_SECRET_ACCESS_KEY")

        if not self.database_mock_mode and not self.database_path:
            missing.append("DATABASE_PATH")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
