"""MediaBackend implementation for a Plex Media Server over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from discord_media_streamer.application.interfaces.media_backend import MediaBackend
from discord_media_streamer.config.settings import PlexSettings
from discord_media_streamer.domain.playback.entities import MediaHandle, PlayableSource
from discord_media_streamer.domain.playback.value_objects import AdjacentDirection, MediaType
from discord_media_streamer.domain.shared.constants import PlexDefaults
from discord_media_streamer.domain.shared.exceptions import (
    NotPlayableError,
    UpstreamUnavailableError,
)
from discord_media_streamer.domain.shared.messages import ErrorMessages, LogTemplates

from .models import PlexMediaContainer, PlexMetadata

logger = logging.getLogger(__name__)

SERVICE_NAME = "Plex"
ALREADY_GONE_STATUSES = frozenset({400, 404})


class PlexMediaBackend(MediaBackend):
    def __init__(
        self,
        settings: PlexSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or PlexSettings()
        self._client = httpx.AsyncClient(
            base_url=self._settings.url,
            headers=self._base_headers(),
            timeout=self._settings.request_timeout_s,
            transport=transport,
        )

    def _base_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "X-Plex-Token": self._settings.token.get_secret_value(),
            "X-Plex-Client-Identifier": self._settings.client_identifier,
            "X-Plex-Product": PlexDefaults.PRODUCT,
        }

    async def _request(
        self, path: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        try:
            return await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            logger.warning(LogTemplates.PLEX_REQUEST_FAILED, path, exc)
            raise UpstreamUnavailableError(SERVICE_NAME, str(exc)) from exc

    async def _get_container(
        self, path: str, params: dict[str, Any] | None = None, *, missing_ok: bool = False
    ) -> PlexMediaContainer | None:
        response = await self._request(path, params)
        if missing_ok and response.status_code == 404:
            return None
        if not response.is_success:
            logger.warning(LogTemplates.PLEX_REQUEST_FAILED, path, response.status_code)
            raise UpstreamUnavailableError(SERVICE_NAME, f"HTTP {response.status_code} for {path}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamUnavailableError(SERVICE_NAME, f"invalid JSON from {path}") from exc
        return PlexMediaContainer.from_response(payload)

    async def _get_metadata(self, media_id: str) -> PlexMetadata | None:
        container = await self._get_container(
            PlexDefaults.METADATA_PATH.format(media_id=media_id), missing_ok=True
        )
        if container is None or not container.metadata:
            return None
        return container.metadata[0]

    async def get_media(self, media_id: str) -> MediaHandle | None:
        metadata = await self._get_metadata(media_id)
        return metadata.to_media_handle() if metadata else None

    async def resolve_playable(self, media_id: str, session_id: str) -> PlayableSource:
        metadata = await self._get_metadata(media_id)
        if metadata is None:
            raise NotPlayableError(media_id, ErrorMessages.MEDIA_NOT_FOUND.format(media_id=media_id))

        found = metadata.first_part
        if found is None:
            raise NotPlayableError(media_id, ErrorMessages.NO_PLAYABLE_PART.format(media_id=media_id))
        media, part = found

        url = httpx.URL(f"{self._settings.url}{part.key}").copy_merge_params(
            {"X-Plex-Session-Identifier": session_id}
        )
        headers = {
            "X-Plex-Token": self._settings.token.get_secret_value(),
            "X-Plex-Client-Identifier": self._settings.client_identifier,
            "X-Plex-Session-Identifier": session_id,
        }
        return PlayableSource(
            url=str(url),
            container=metadata.container_name(),
            video_codec=media.video_codec,
            audio_codec=media.audio_codec,
            bitrate_kbps=media.bitrate,
            headers=headers,
            session_id=session_id,
        )

    async def terminate_session(self, session_id: str) -> None:
        response = await self._request(
            PlexDefaults.TRANSCODE_STOP_PATH, params={"session": session_id}
        )
        if response.status_code in ALREADY_GONE_STATUSES:
            logger.debug(LogTemplates.PLEX_SESSION_ALREADY_GONE, session_id, response.status_code)
            return
        if not response.is_success:
            raise UpstreamUnavailableError(
                SERVICE_NAME, f"HTTP {response.status_code} terminating session {session_id}"
            )

    async def get_adjacent_item(
        self, media_id: str, direction: AdjacentDirection
    ) -> MediaHandle | None:
        metadata = await self._get_metadata(media_id)
        if metadata is None or MediaType.parse(metadata.type) is not MediaType.EPISODE:
            return None
        if not metadata.grandparent_rating_key:
            return None

        container = await self._get_container(
            PlexDefaults.ALL_LEAVES_PATH.format(media_id=metadata.grandparent_rating_key),
            missing_ok=True,
        )
        if container is None:
            return None

        episodes = sorted(container.metadata, key=lambda m: m.episode_sort_key)
        keys = [e.rating_key for e in episodes]
        if media_id not in keys:
            return None

        neighbour = keys.index(media_id) + direction.step
        if 0 <= neighbour < len(episodes):
            return episodes[neighbour].to_media_handle()
        return None

    async def search(self, query: str) -> list[MediaHandle]:
        """Search movies, shows and episodes across all libraries."""
        container = await self._get_container("/search", params={"query": query})
        if container is None:
            return []
        return [
            item.to_media_handle()
            for item in container.metadata
            if item.type in {"movie", "show", "episode"}
        ]

    async def test_connection(self) -> bool:
        try:
            response = await self._request("/identity")
        except UpstreamUnavailableError:
            return False
        return response.is_success

    async def aclose(self) -> None:
        await self._client.aclose()
