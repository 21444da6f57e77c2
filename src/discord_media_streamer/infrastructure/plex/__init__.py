"""Plex infrastructure - library media backend."""

from discord_media_streamer.infrastructure.plex.client import PlexMediaBackend
from discord_media_streamer.infrastructure.plex.models import (
    PlexMediaContainer,
    PlexMetadata,
)

__all__ = [
    "PlexMediaBackend",
    "PlexMediaContainer",
    "PlexMetadata",
]
