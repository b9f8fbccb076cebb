"""Application settings loaded from environment variables.

Environment Configuration:
    VAULT_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    JWT_SECRET: Shared secret for bearer token verification (required in staging/prod)

Credential Vault:
    ENCRYPTION_KEY: Base64-encoded 32-byte AES-256-GCM key

Transcription provider:
    TRANSCRIPTION_API_URL, TRANSCRIPTION_API_KEY,
    TRANSCRIPTION_ACCESS_KEY_ID, TRANSCRIPTION_ACCESS_KEY_SECRET,
    TRANSCRIPTION_APP_KEY: provider endpoint and credentials
    TRANSCRIPTION_POLL_INTERVAL_S / TRANSCRIPTION_MAX_POLLS: polling budget
    TRANSCRIPTION_FALLBACK_ENABLED: substitute placeholder results when the
        provider is unconfigured or errors (demo / offline operation)

Downloader:
    DOWNLOAD_DIR, YT_DLP_PATH, DOWNLOAD_TIMEOUT_S, VIDEO_URL_TEMPLATE

Settings are read once per process. The lifespan converts them into the
frozen config objects below, which are passed explicitly to the vault,
the downloader, the transcription adapter and the job manager.
"""

import tempfile
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

DEFAULT_TRANSCRIPTION_API_URL = "https://tingwu.cn-beijing.aliyuncs.com"
DEFAULT_VIDEO_URL_TEMPLATE = "https://www.bilibili.com/video/{video_id}"


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


@dataclass(frozen=True)
class VaultConfig:
    """Key material for the credential vault.

    The key stays in its encoded form; decoding and length validation happen
    in the vault so that a bad key fails the operation that needs it.
    """

    encryption_key: str | None


@dataclass(frozen=True)
class TranscriptionConfig:
    """Endpoint, credentials and polling budget for the transcription provider."""

    api_url: str
    api_key: str | None
    access_key_id: str | None
    access_key_secret: str | None
    app_key: str | None
    source_language: str = "cn"
    audio_format: str = "mp3"
    poll_interval_s: float = 5.0
    max_polls: int = 20
    timeout_s: float = 30.0
    fallback_enabled: bool = True
    file_base_url: str = "http://localhost:8000/temp"

    @property
    def is_configured(self) -> bool:
        """Whether every value needed for a live provider call is present."""
        return all(
            (self.api_url, self.api_key, self.access_key_id, self.access_key_secret)
        )

    @property
    def missing_fields(self) -> list[str]:
        """Names of the settings that are missing (for logging, never values)."""
        fields = {
            "TRANSCRIPTION_API_URL": self.api_url,
            "TRANSCRIPTION_API_KEY": self.api_key,
            "TRANSCRIPTION_ACCESS_KEY_ID": self.access_key_id,
            "TRANSCRIPTION_ACCESS_KEY_SECRET": self.access_key_secret,
        }
        return [name for name, value in fields.items() if not value]


@dataclass(frozen=True)
class DownloaderConfig:
    """Where and how the external downloader runs."""

    download_dir: Path
    yt_dlp_path: str = "yt-dlp"
    timeout_s: float = 600.0
    video_url_template: str = DEFAULT_VIDEO_URL_TEMPLATE


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - JWT_SECRET is required in staging and prod
    - Polling budget values must be >= 1
    """

    vault_env: Environment = Field(default=Environment.LOCAL, alias="VAULT_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]

    # Auth
    jwt_secret: str | None = Field(default=None, alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Credential vault: base64-encoded 32-byte key
    encryption_key: str | None = Field(default=None, alias="ENCRYPTION_KEY")

    # Transcription provider
    transcription_api_url: str = Field(
        default=DEFAULT_TRANSCRIPTION_API_URL, alias="TRANSCRIPTION_API_URL"
    )
    transcription_api_key: str | None = Field(default=None, alias="TRANSCRIPTION_API_KEY")
    transcription_access_key_id: str | None = Field(
        default=None, alias="TRANSCRIPTION_ACCESS_KEY_ID"
    )
    transcription_access_key_secret: str | None = Field(
        default=None, alias="TRANSCRIPTION_ACCESS_KEY_SECRET"
    )
    transcription_app_key: str | None = Field(default=None, alias="TRANSCRIPTION_APP_KEY")
    transcription_source_language: str = Field(
        default="cn", alias="TRANSCRIPTION_SOURCE_LANGUAGE"
    )
    transcription_audio_format: str = Field(default="mp3", alias="TRANSCRIPTION_AUDIO_FORMAT")
    transcription_poll_interval_s: float = Field(
        default=5.0, alias="TRANSCRIPTION_POLL_INTERVAL_S"
    )
    transcription_max_polls: int = Field(default=20, alias="TRANSCRIPTION_MAX_POLLS")
    transcription_timeout_s: float = Field(default=30.0, alias="TRANSCRIPTION_TIMEOUT_S")
    transcription_fallback_enabled: bool = Field(
        default=True, alias="TRANSCRIPTION_FALLBACK_ENABLED"
    )
    transcription_file_base_url: str = Field(
        default="http://localhost:8000/temp", alias="TRANSCRIPTION_FILE_BASE_URL"
    )

    # Downloader
    download_dir: Path = Field(
        default=Path(tempfile.gettempdir()) / "course-vault", alias="DOWNLOAD_DIR"
    )
    yt_dlp_path: str = Field(default="yt-dlp", alias="YT_DLP_PATH")
    download_timeout_s: float = Field(default=600.0, alias="DOWNLOAD_TIMEOUT_S")
    video_url_template: str = Field(
        default=DEFAULT_VIDEO_URL_TEMPLATE, alias="VIDEO_URL_TEMPLATE"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure environment-dependent settings and polling bounds are sane."""
        if self.vault_env in (Environment.STAGING, Environment.PROD):
            if not self.jwt_secret:
                raise ValueError(f"JWT_SECRET is required for VAULT_ENV={self.vault_env.value}")

        if self.transcription_poll_interval_s < 1:
            raise ValueError("TRANSCRIPTION_POLL_INTERVAL_S must be >= 1")
        if self.transcription_max_polls < 1:
            raise ValueError("TRANSCRIPTION_MAX_POLLS must be >= 1")

        return self

    def vault_config(self) -> VaultConfig:
        return VaultConfig(encryption_key=self.encryption_key)

    def transcription_config(self) -> TranscriptionConfig:
        return TranscriptionConfig(
            api_url=self.transcription_api_url.rstrip("/"),
            api_key=self.transcription_api_key,
            access_key_id=self.transcription_access_key_id,
            access_key_secret=self.transcription_access_key_secret,
            app_key=self.transcription_app_key,
            source_language=self.transcription_source_language,
            audio_format=self.transcription_audio_format,
            poll_interval_s=self.transcription_poll_interval_s,
            max_polls=self.transcription_max_polls,
            timeout_s=self.transcription_timeout_s,
            fallback_enabled=self.transcription_fallback_enabled,
            file_base_url=self.transcription_file_base_url.rstrip("/"),
        )

    def downloader_config(self) -> DownloaderConfig:
        return DownloaderConfig(
            download_dir=self.download_dir,
            yt_dlp_path=self.yt_dlp_path,
            timeout_s=self.download_timeout_s,
            video_url_template=self.video_url_template,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
