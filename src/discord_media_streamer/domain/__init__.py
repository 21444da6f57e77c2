# ruff: noqa: N999
"""
Domain Layer

Contains pure playback logic:
- shared/: Cross-cutting types, messages and exceptions
- playback/: Media handles, sessions, the position clock and repository ports
"""

from discord_media_streamer.domain.shared.exceptions import DomainError

__all__ = [
    "DomainError",
]
