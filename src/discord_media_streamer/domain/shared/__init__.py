"""
Shared Domain Kernel

Contains types and exceptions shared across the package.
"""

from discord_media_streamer.domain.shared.exceptions import (
    DomainError,
    InvalidOperationError,
    NotPlayableError,
    ProcessAbnormalExitError,
    ProcessSpawnError,
    TransportError,
    UpstreamUnavailableError,
)

__all__ = [
    "DomainError",
    "UpstreamUnavailableError",
    "NotPlayableError",
    "ProcessSpawnError",
    "ProcessAbnormalExitError",
    "TransportError",
    "InvalidOperationError",
]
