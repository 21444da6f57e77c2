"""Port interface for external media-URL resolution."""

from __future__ import annotations

from abc import ABC, abstractmethod

from discord_media_streamer.domain.playback.entities import ExternalMediaInfo


class MediaResolver(ABC):
    """Turns a page URL (YouTube and friends) into a directly readable media URL."""

    @abstractmethod
    async def resolve_info(self, url: str, *, use_cache: bool = True) -> ExternalMediaInfo:
        """Resolve a page URL.

        Direct media URLs expire; pass ``use_cache=False`` when the result will
        be handed to the transcoder.

        Raises:
            UpstreamUnavailableError: Extraction failed.
            NotPlayableError: Extraction succeeded but found no media URL.
        """
        ...
