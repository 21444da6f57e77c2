"""Infrastructure layer - external systems integration.

This layer contains implementations for:
- Persistence (SQLite resume positions and backend session ledger)
- Discord (bot, voice transport)
- Media (yt-dlp resolver, ffmpeg supervisor)
- Plex (library media backend)
"""

from discord_media_streamer.infrastructure.discord.adapters.stream_transport import (
    DiscordStreamTransport,
)
from discord_media_streamer.infrastructure.discord.bot import create_bot
from discord_media_streamer.infrastructure.persistence.database import Database

__all__ = [
    "create_bot",
    "Database",
    "DiscordStreamTransport",
]
