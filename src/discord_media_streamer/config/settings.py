"""Application Settings and Configuration

Pydantic-based settings management using environment variables.
Settings are loaded from environment variables with support for .env files,
type validation, and sensible defaults. All settings are frozen and immutable
after initialization.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.playback.value_objects import PublishMode
from ..domain.shared.constants import PlaybackDefaults, StreamDefaults
from ..domain.shared.messages import ErrorMessages


class DatabaseSettings(BaseModel):
    """Database configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(
        default="sqlite:///data/streamer.db",
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
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith("sqlite://"):
            raise ValueError(ErrorMessages.INVALID_DATABASE_URL)
        return v


class DiscordSettings(BaseModel):
    """Discord bot configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    token: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("token", "bot_token", "discord_token")
    )
    command_prefix: str = Field(
        default="!",
        min_length=1,
        max_length=5,
        validation_alias=AliasChoices("command_prefix", "prefix"),
    )
    voice_connect_timeout_s: float = Field(default=10.0, gt=0, le=60)


class PlexSettings(BaseModel):
    """Plex media server configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(
        default="http://127.0.0.1:32400",
        validation_alias=AliasChoices("url", "plex_url", "base_url"),
    )
    token: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("token", "plex_token")
    )
    client_identifier: str = Field(default="discord-media-streamer", min_length=1)
    request_timeout_s: float = Field(default=10.0, gt=0, le=120)

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class StreamSettings(BaseModel):
    """Transcode pipeline configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    mode: PublishMode = PublishMode.AUDIO
    default_height: int = Field(default=StreamDefaults.HEIGHT, ge=144, le=2160)
    default_width: int = Field(default=StreamDefaults.WIDTH, ge=256, le=3840)
    frame_rate: int = Field(default=StreamDefaults.FRAME_RATE, ge=1, le=60)
    max_bitrate_kbps: int = Field(default=StreamDefaults.MAX_BITRATE_KBPS, ge=100, le=50_000)
    audio_bitrate_kbps: int = Field(default=StreamDefaults.AUDIO_BITRATE_KBPS, ge=32, le=512)
    ffmpeg_path: str = Field(
        default="ffmpeg", validation_alias=AliasChoices("ffmpeg_path", "ffmpeg")
    )
    ytdlp_format: str = "bestvideo[height<=720]+bestaudio/best"


class PlaybackSettings(BaseModel):
    """Session behaviour configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    default_volume_percent: int = Field(
        default=PlaybackDefaults.VOLUME_PERCENT,
        ge=PlaybackDefaults.MIN_VOLUME_PERCENT,
        le=PlaybackDefaults.MAX_VOLUME_PERCENT,
    )
    resume_min_position_ms: int = Field(default=PlaybackDefaults.RESUME_MIN_POSITION_MS, ge=0)
    resume_ttl_days: int = Field(default=PlaybackDefaults.RESUME_TTL_DAYS, ge=1, le=365)
    kill_grace_seconds: float = Field(default=PlaybackDefaults.KILL_GRACE_SECONDS, ge=0.0, le=10.0)
    default_skip_ms: int = Field(default=PlaybackDefaults.SKIP_MS, gt=0)


class Settings(BaseSettings):
    """Application settings container.

    Automatically loads configuration from environment variables.

    Environment variable naming:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - DISCORD__TOKEN, PLEX__URL, PLEX__TOKEN, STREAM__MODE, PLAYBACK__RESUME_TTL_DAYS
      (nested with the ``__`` delimiter)
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
    plex: PlexSettings = Field(default_factory=PlexSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    playback: PlaybackSettings = Field(default_factory=PlaybackSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=valid_levels))
        return v_upper


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are automatically loaded from:
    1. .env file (if present)
    2. Environment variables
    3. Default values
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
