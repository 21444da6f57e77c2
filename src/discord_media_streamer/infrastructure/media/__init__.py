"""Media infrastructure - yt-dlp resolver and ffmpeg supervisor."""

from discord_media_streamer.infrastructure.media.ffmpeg_supervisor import (
    FFmpegSupervisor,
    build_ffmpeg_args,
)
from discord_media_streamer.infrastructure.media.models import (
    CacheEntry,
    FormatInfo,
    YtDlpMediaInfo,
    YtDlpOpts,
)
from discord_media_streamer.infrastructure.media.ytdlp_resolver import YtDlpMediaResolver

__all__ = [
    "CacheEntry",
    "FFmpegSupervisor",
    "FormatInfo",
    "YtDlpMediaInfo",
    "YtDlpMediaResolver",
    "YtDlpOpts",
    "build_ffmpeg_args",
]
