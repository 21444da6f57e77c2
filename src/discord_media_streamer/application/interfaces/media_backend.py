"""Port interface for the media library backend."""

from __future__ import annotations

from abc import ABC, abstractmethod

from discord_media_streamer.domain.playback.entities import MediaHandle, PlayableSource
from discord_media_streamer.domain.playback.value_objects import AdjacentDirection


class MediaBackend(ABC):
    """Interface for a media server that hands out per-session stream URLs."""

    @abstractmethod
    async def resolve_playable(self, media_id: str, session_id: str) -> PlayableSource:
        """Resolve a playable URL for ``media_id`` under backend session ``session_id``.

        Raises:
            UpstreamUnavailableError: The backend could not be reached or answered non-2xx.
            NotPlayableError: The metadata has no playable part.
        """
        ...

    @abstractmethod
    async def terminate_session(self, session_id: str) -> None:
        """Terminate a backend session.

        A session the backend no longer knows about counts as terminated.

        Raises:
            UpstreamUnavailableError: The backend could not confirm termination.
        """
        ...

    @abstractmethod
    async def get_adjacent_item(
        self, media_id: str, direction: AdjacentDirection
    ) -> MediaHandle | None:
        """Return the episode before or after ``media_id``, or None at either end."""
        ...

    @abstractmethod
    async def get_media(self, media_id: str) -> MediaHandle | None:
        """Look up a media item by id."""
        ...

    async def aclose(self) -> None:
        """Release client resources."""
        return None
