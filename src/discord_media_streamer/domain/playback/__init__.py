"""Playback bounded context: media handles, sessions and the position clock."""

from discord_media_streamer.domain.playback.clock import (
    Clock,
    MonotonicClock,
    current_position_ms,
    progress_fraction,
)
from discord_media_streamer.domain.playback.entities import (
    ExternalMediaInfo,
    MediaHandle,
    PlayableSource,
    PlaybackProgress,
    PlaybackSession,
    ResumeEntry,
    TranscodeOptions,
)
from discord_media_streamer.domain.playback.value_objects import (
    AdjacentDirection,
    ExitKind,
    MediaKind,
    MediaType,
    PublishMode,
    SessionState,
)

__all__ = [
    "Clock",
    "MonotonicClock",
    "current_position_ms",
    "progress_fraction",
    "ExternalMediaInfo",
    "MediaHandle",
    "PlayableSource",
    "PlaybackProgress",
    "PlaybackSession",
    "ResumeEntry",
    "TranscodeOptions",
    "AdjacentDirection",
    "ExitKind",
    "MediaKind",
    "MediaType",
    "PublishMode",
    "SessionState",
]
