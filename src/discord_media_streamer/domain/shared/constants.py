"""Centralized constants for database schema, media defaults and process tuning."""

from __future__ import annotations


class ConfigKeys:
    """Configuration and environment variable key names."""

    ENVIRONMENT = "ENVIRONMENT"
    DEBUG = "DEBUG"
    LOG_LEVEL = "LOG_LEVEL"

    DISCORD_TOKEN = "DISCORD_TOKEN"
    DISCORD_BOT_TOKEN = "DISCORD__BOT_TOKEN"  # Nested delimiter format
    PLEX_URL = "PLEX_URL"
    PLEX_TOKEN = "PLEX_TOKEN"


class DatabaseTables:
    """Database table names."""

    RESUME_POSITIONS = "resume_positions"
    BACKEND_SESSIONS = "backend_sessions"


class SQLPragmas:
    """SQLite PRAGMA statements applied to each connection."""

    JOURNAL_MODE_WAL = "PRAGMA journal_mode=WAL"
    SYNCHRONOUS_FULL = "PRAGMA synchronous=FULL"
    BUSY_TIMEOUT = "PRAGMA busy_timeout={timeout}"
    INTEGRITY_CHECK = "PRAGMA quick_check"


class PlaybackDefaults:
    """Defaults for session behaviour."""

    VOLUME_PERCENT = 100
    MIN_VOLUME_PERCENT = 0
    MAX_VOLUME_PERCENT = 200
    RESUME_MIN_POSITION_MS = 30_000
    RESUME_TTL_DAYS = 7
    KILL_GRACE_SECONDS = 0.5
    SKIP_MS = 30_000


class StreamDefaults:
    """Defaults for the transcode pipeline."""

    HEIGHT = 720
    WIDTH = 1280
    FRAME_RATE = 30
    MAX_BITRATE_KBPS = 3000
    AUDIO_BITRATE_KBPS = 128
    SAMPLE_RATE = 48_000
    CHANNELS = 2
    MAXRATE_FACTOR = 1.5
    BUFSIZE_FACTOR = 2
    STDERR_TAIL_LINES = 20
    REAP_TIMEOUT_SECONDS = 5.0
    PCM_FRAME_BYTES = 3840


class PlexDefaults:
    """Plex API constants."""

    PRODUCT = "discord-media-streamer"
    DEFAULT_CONTAINER = "mkv"
    METADATA_PATH = "/library/metadata/{media_id}"
    ALL_LEAVES_PATH = "/library/metadata/{media_id}/allLeaves"
    TRANSCODE_STOP_PATH = "/video/:/transcode/universal/stop"
