"""
Application Interfaces (Ports)

Abstract interfaces that define contracts between the application
layer and infrastructure adapters. These are the "ports" in
hexagonal architecture.
"""

from discord_media_streamer.application.interfaces.media_backend import MediaBackend
from discord_media_streamer.application.interfaces.media_resolver import MediaResolver
from discord_media_streamer.application.interfaces.source_coordinator import (
    CoordinatorFactory,
    SourceCoordinator,
)
from discord_media_streamer.application.interfaces.stream_transport import StreamTransport
from discord_media_streamer.application.interfaces.transcoder import (
    ProcessHandle,
    PublishStream,
    Transcoder,
)

__all__ = [
    "CoordinatorFactory",
    "MediaBackend",
    "MediaResolver",
    "ProcessHandle",
    "PublishStream",
    "SourceCoordinator",
    "StreamTransport",
    "Transcoder",
]
