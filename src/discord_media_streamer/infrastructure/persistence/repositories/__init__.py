"""SQLite repository implementations."""

from discord_media_streamer.infrastructure.persistence.repositories.backend_session_repository import (
    SQLiteBackendSessionRepository,
)
from discord_media_streamer.infrastructure.persistence.repositories.resume_repository import (
    SQLiteResumeRepository,
)

__all__ = [
    "SQLiteBackendSessionRepository",
    "SQLiteResumeRepository",
]
