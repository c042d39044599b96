"""Runtime configuration read from the environment and an optional .env file.

Each concern gets a frozen group; ``Settings`` nests them so that
``DOWNLOADS__TIMEOUT_SECONDS`` reaches ``settings.downloads.timeout_seconds``.

Voice join, backoff and reconciliation timings are constants in
``domain.shared.constants.VoiceTimings``, not settings.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.shared.constants import ExtractorConfig
from ..domain.shared.messages import ErrorMessages


class DatabaseSettings(BaseModel):
    """SQLite location and lock timeouts."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(
        default="sqlite:///data/lyre.db",
        validation_alias=AliasChoices("url", "database_url", "db_url"),
    )
    busy_timeout_ms: int = Field(
        default=5000,
        ge=1000,
        le=30000,
        validation_alias=AliasChoices("busy_timeout_ms", "busy_timeout"),
    )
    connection_timeout_s: int = Field(
        default=10,
        ge=1,
        le=60,
        validation_alias=AliasChoices("connection_timeout_s", "connection_timeout"),
    )

    @field_validator("url")
    @classmethod
    def require_sqlite(cls, v: str) -> str:
        if not v.startswith("sqlite://"):
            raise ValueError(ErrorMessages.INVALID_DATABASE_URL)
        return v


class DiscordSettings(BaseModel):
    """Bot credentials and command registration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("token", "bot_token", "discord_token")
    )
    command_prefix: str = Field(
        default="!",
        min_length=1,
        max_length=5,
        validation_alias=AliasChoices("command_prefix", "prefix"),
    )
    sync_on_startup: bool = True


class DownloadSettings(BaseModel):
    """yt-dlp acquisition and download cache configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    download_folder: str | None = Field(
        default=None,
        validation_alias=AliasChoices("download_folder", "folder"),
    )
    timeout_seconds: float | None = Field(default=None, gt=0)
    release_api_url: str = ExtractorConfig.RELEASES_API
    http_timeout_s: float = Field(default=30.0, gt=0, le=600)


class AudioSettings(BaseModel):
    """FFmpeg options and playback volume."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    default_volume: float = Field(default=0.5, ge=0.0, le=2.0)
    ffmpeg_options: dict[str, str] = Field(
        default_factory=lambda: {
            "before_options": "-nostdin",
            "options": "-vn",
        }
    )


class CleanupSettings(BaseModel):
    """Maintenance cleanup and metrics scan configuration."""

    model_config = ConfigDict(frozen=True)

    retention_days: int = Field(default=30, ge=1)
    cleanup_interval_minutes: int = Field(default=60, ge=1)
    scan_interval_seconds: int = Field(default=30, ge=1)


class Settings(BaseSettings):
    """Top-level settings.

    Recognised variables:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - DISCORD__TOKEN, DATABASE__URL, DOWNLOADS__TIMEOUT_SECONDS, etc. (nested)
    - DISCORD_TOKEN, DISCORD_BOT_TOKEN, BOT_TOKEN, DOCKER_TOKEN (legacy token names)
    - DOWNLOAD_FOLDER, DOWNLOAD_TIMEOUT_SECONDS (legacy download names)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    downloads: DownloadSettings = Field(default_factory=DownloadSettings)
    audio: AudioSettings = Field(default_factory=AudioSettings)
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)

    legacy_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "discord_token", "discord_bot_token", "bot_token", "docker_token"
        ),
        exclude=True,
        repr=False,
    )
    legacy_download_folder: str | None = Field(
        default=None,
        validation_alias=AliasChoices("download_folder"),
        exclude=True,
    )
    legacy_download_timeout: str | None = Field(
        default=None,
        validation_alias=AliasChoices("download_timeout_seconds"),
        exclude=True,
    )

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, v: str) -> str:
        levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        level = v.strip().upper()
        if level not in levels:
            raise ValueError(ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=levels))
        return level

    @model_validator(mode="after")
    def apply_legacy_names(self) -> Settings:
        """Fold the flat legacy variables into their nested groups when those are unset."""
        if self.legacy_token and not self.discord.token.get_secret_value():
            self.discord = self.discord.model_copy(update={"token": SecretStr(self.legacy_token)})

        updates: dict[str, object] = {}
        if self.legacy_download_folder and self.downloads.download_folder is None:
            updates["download_folder"] = self.legacy_download_folder
        if self.legacy_download_timeout and self.downloads.timeout_seconds is None:
            timeout = float(self.legacy_download_timeout)
            if timeout <= 0:
                raise ValueError(ErrorMessages.INVALID_DOWNLOAD_TIMEOUT)
            updates["timeout_seconds"] = timeout
        if updates:
            self.downloads = self.downloads.model_copy(update=updates)
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings for this process; environment beats .env, .env beats defaults."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
