"""
Playback Domain Repository Interfaces

Abstract base classes defining the contracts for data persistence.
Implementations live in the infrastructure layer.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from discord_media_streamer.domain.playback.entities import ResumeEntry


class ResumePositionRepository(ABC):
    """Durable storage for saved resume positions."""

    @abstractmethod
    async def load_all(self) -> list[ResumeEntry]:
        """Return every stored entry."""
        ...

    @abstractmethod
    async def upsert(self, entry: ResumeEntry) -> None:
        """Insert or replace the entry for ``entry.resume_key``.

        The write must be committed before this returns.
        """
        ...

    @abstractmethod
    async def delete(self, resume_key: str) -> bool:
        """Delete an entry.

        Returns:
            True if an entry was deleted.
        """
        ...

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete entries last updated before ``cutoff``.

        Returns:
            Number of entries deleted.
        """
        ...


class BackendSessionRepository(ABC):
    """Durable ledger of media-backend session ids that may still be open."""

    @abstractmethod
    async def add(self, session_id: str, media_id: str | None = None) -> None:
        ...

    @abstractmethod
    async def remove(self, session_id: str) -> bool:
        ...

    @abstractmethod
    async def list_ids(self) -> list[str]:
        ...
