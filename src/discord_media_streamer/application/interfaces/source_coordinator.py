"""Port interface for per-session source acquisition."""

from __future__ import annotations

from abc import ABC, abstractmethod

from discord_media_streamer.domain.playback.entities import MediaHandle, PlayableSource


class SourceCoordinator(ABC):
    """Owns whatever upstream resource backs one session's playable URL.

    One instance per session. ``acquire`` may be called repeatedly (every
    pause/resume, seek or volume change restarts the pipeline) and must
    release whatever the previous call acquired.
    """

    @abstractmethod
    async def acquire(self, media: MediaHandle) -> PlayableSource:
        ...

    @abstractmethod
    async def release(self) -> None:
        """Release the current upstream resource. Idempotent, never raises."""
        ...

    @property
    def session_id(self) -> str | None:
        return None


class CoordinatorFactory(ABC):
    """Creates the coordinator that serves a given kind of media."""

    @abstractmethod
    def create(self, media: MediaHandle) -> SourceCoordinator:
        ...
