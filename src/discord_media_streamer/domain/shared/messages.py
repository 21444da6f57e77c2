"""Centralized message constants for error messages and log output."""

from __future__ import annotations


class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    # Time/Date Validation Errors
    TIMEZONE_REQUIRED_UTC_DATETIME = "UtcDateTime requires a timezone-aware datetime"

    # Settings Validation Errors
    INVALID_DATABASE_URL = "Database URL must start with sqlite://"
    INVALID_LOG_LEVEL = "Invalid log level: {level}. Must be one of {valid_levels}"
    DISCORD_TOKEN_REQUIRED = "DISCORD_TOKEN environment variable is required"
    CONTAINER_NOT_FOUND = "Container not found on bot instance"

    # Media Errors
    NO_PLAYABLE_PART = "Media '{media_id}' has no playable part"
    MEDIA_NOT_FOUND = "Media '{media_id}' was not found"
    NO_URL_IN_INFO_DICT = "No URL found in info dict"
    SOURCE_URL_REQUIRED = "Media '{media_id}' has no source URL"

    # Transport Errors
    VIDEO_MODE_UNSUPPORTED = "Video publishing is not supported by the Discord voice transport"
    VOICE_CONNECT_FAILED = "Could not connect to voice channel {channel_id}: {error}"
    NOT_CONNECTED = "Not connected to a voice channel in guild {guild_id}"


class LogTemplates:
    """Log message templates for structured logging.

    Use these with logger.info(), logger.error(), etc. and pass values as parameters
    for proper log formatting and structured logging support.
    """

    # Database Lifecycle
    DATABASE_INITIALIZED = "Database initialized at %s"
    DATABASE_CLOSED = "Database manager closed"
    DATABASE_INTEGRITY_FAILED = "Database integrity check failed for %s: %s"

    # Resume Store
    RESUME_LOADED = "Loaded %d resume positions (%d expired entries pruned)"
    RESUME_LOAD_FAILED = "Could not load resume positions, starting empty: %s"
    RESUME_SAVED = "Saved resume position for %s at %s"
    RESUME_CLEARED = "Cleared resume position for %s"
    RESUME_WRITE_FAILED = "Could not persist resume position for %s: %s"
    RESUME_BELOW_MINIMUM = "Not saving resume position for %s: %dms is below the minimum"

    # Backend Sessions
    BACKEND_SESSION_ACQUIRED = "Acquired backend session %s for media %s"
    BACKEND_SESSION_RELEASED = "Released backend session %s"
    BACKEND_SESSION_RELEASE_FAILED = "Could not release backend session %s: %s"
    LEDGER_WRITE_FAILED = "Could not update backend session ledger for %s: %s"
    ORPHANS_FOUND = "Found %d orphaned backend sessions from a previous run"
    ORPHAN_TERMINATE_FAILED = "Could not terminate orphaned backend session %s: %s"
    ORPHANS_RECOVERED = "Orphan recovery finished: %d terminated, %d failed"

    # Transcoder
    FFMPEG_SPAWNED = "Spawned ffmpeg pid=%s (mode=%s, offset=%dms, volume=%d%%)"
    FFMPEG_SPAWN_FAILED = "Failed to spawn ffmpeg: %s"
    FFMPEG_KILLED = "Killed ffmpeg pid=%s"
    FFMPEG_REAP_TIMEOUT = "ffmpeg pid=%s did not exit within %.1fs of SIGKILL"
    FFMPEG_STDERR = "ffmpeg[%s]: %s"
    FFMPEG_ABNORMAL_EXIT = "ffmpeg exited abnormally (code=%s) for guild %s; stderr tail:\n%s"
    FFMPEG_KILL_ALL = "Killing %d remaining ffmpeg processes"

    # Sessions
    SESSION_STARTING = "Starting %s in guild %s at %s"
    SESSION_STARTED = "Now playing %s in guild %s"
    SESSION_REPLACED = "Replacing active session in guild %s"
    SESSION_START_FAILED = "Failed to start playback in guild %s: %s"
    SESSION_PAUSED = "Paused guild %s at %s"
    SESSION_RESUMED = "Resuming guild %s from %s"
    SESSION_SEEKING = "Seeking guild %s to %s"
    SESSION_VOLUME = "Volume for guild %s set to %d%%"
    SESSION_SKIPPING = "Skipping guild %s from %s to %s"
    SESSION_STOPPED = "Stopped playback in guild %s"
    SESSION_SUPERSEDED = "Operation %s in guild %s was superseded"
    SESSION_FINISHED = "Playback of %s finished in guild %s (%s)"
    SESSION_STALE_FINISH = "Ignoring stale finish notification for guild %s (generation %d)"
    SESSION_RESTART_FAILED = "Pipeline restart failed in guild %s: %s"
    TRANSPORT_STOP_FAILED = "Transport stop failed in guild %s: %s"
    TRANSPORT_LEAVE_FAILED = "Transport leave failed in guild %s: %s"
    TRANSPORT_FINISH_HANDLER_FAILED = "Publish-finished handler failed in guild %s"

    # Transport
    VOICE_CONNECTED = "Connected to voice channel %s in guild %s"
    VOICE_MOVED = "Moved to voice channel %s in guild %s"
    VOICE_DISCONNECTED = "Disconnected from voice in guild %s"
    VOICE_PUBLISH_ERROR = "Voice playback error in guild %s: %s"

    # Resolvers
    PLEX_REQUEST_FAILED = "Plex request %s failed: %s"
    PLEX_SESSION_ALREADY_GONE = "Plex session %s was already gone (HTTP %d)"
    YTDLP_EXTRACT_FAILED = "yt-dlp extraction failed for %s: %s"
    YTDLP_CACHE_HIT = "yt-dlp cache hit for %s"

    # Bot Lifecycle
    BOT_STARTING = "Starting media streamer (environment=%s)"
    BOT_STARTING_RUN = "Connecting to Discord"
    BOT_STOPPED = "Bot stopped"
    BOT_KEYBOARD_INTERRUPT = "Interrupted, exiting"
    BOT_FATAL_ERROR = "Fatal error: %s"
    BOT_SETUP = "Running setup hook"
    BOT_SETUP_COMPLETE = "Setup complete"
    BOT_CONTAINER_INIT_FAILED = "Container initialization failed: %s"
    BOT_READY = "Logged in as %s (id=%s)"
    BOT_CONNECTED_GUILDS = "Connected to %d guilds"
    BOT_VOICE_LOST = "Lost voice connection in guild %s, stopping playback"
    BOT_SHUTTING_DOWN = "Shutting down"
    BOT_SHUTDOWN_TIMEOUT = "Graceful shutdown did not finish within %.0fs"
    BOT_CONTAINER_SHUTDOWN_ERROR = "Container shutdown failed: %s"
    BOT_SHUTDOWN_COMPLETE = "Shutdown complete"
    CONTAINER_INITIALIZED = "Container initialized"
    CONTAINER_SHUTDOWN = "Container shut down"
