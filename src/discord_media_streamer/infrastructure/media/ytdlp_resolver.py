"""MediaResolver implementation using yt-dlp for URL resolution and search."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import time
from typing import Any, Final, cast

from yt_dlp import YoutubeDL
from yt_dlp.utils import YoutubeDLError

from discord_media_streamer.application.interfaces.media_resolver import MediaResolver
from discord_media_streamer.config.settings import StreamSettings
from discord_media_streamer.domain.playback.entities import ExternalMediaInfo, MediaHandle
from discord_media_streamer.domain.playback.value_objects import MediaKind, MediaType
from discord_media_streamer.domain.shared.exceptions import (
    NotPlayableError,
    UpstreamUnavailableError,
)
from discord_media_streamer.domain.shared.messages import ErrorMessages, LogTemplates

from .models import CacheEntry, FormatInfo, YtDlpMediaInfo, YtDlpOpts

logger = logging.getLogger(__name__)

CACHE_TTL: Final[int] = 3600
CACHE_MAX_SIZE: Final[int] = 500
DEFAULT_SEARCH_LIMIT: Final[int] = 10
HASH_ID_LENGTH: Final[int] = 16
LOG_URL_TRUNCATE: Final[int] = 60

YOUTUBE_ID_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/shorts/)([a-zA-Z0-9_-]{11})"
)


def media_id_for_url(url: str) -> str:
    """Stable id for a page URL: the YouTube video id, or a hash of the URL."""
    match = YOUTUBE_ID_PATTERN.search(url)
    if match:
        return match.group(1)
    return hashlib.sha256(url.encode()).hexdigest()[:HASH_ID_LENGTH]


def select_stream_urls(info: YtDlpMediaInfo) -> tuple[str | None, str | None]:
    """Pick ``(media_url, separate_audio_url)`` from an extraction result.

    Merged formats (``bestvideo+bestaudio``) come back as two requested
    formats; the video one is the primary input and the audio one is read as
    a second input.
    """
    if info.requested_formats:
        video = next((f for f in info.requested_formats if f.has_video and f.url), None)
        audio = next(
            (f for f in info.requested_formats if f.has_audio and not f.has_video and f.url),
            None,
        )
        if video is not None:
            return video.url, audio.url if audio is not None else None
        if audio is not None:
            return audio.url, None

    if info.url:
        return info.url, None
    return _best_from_formats(info.formats), None


def _best_from_formats(formats: list[FormatInfo]) -> str | None:
    # yt-dlp orders formats worst to best
    playable = [f for f in formats if f.url and (f.has_audio or f.has_video)]
    return playable[-1].url if playable else None


class YtDlpMediaResolver(MediaResolver):
    def __init__(self, settings: StreamSettings | None = None) -> None:
        self._settings = settings or StreamSettings()
        self._base_opts = YtDlpOpts(format=self._settings.ytdlp_format)
        self._cache: dict[str, CacheEntry] = {}

    def _get_opts(self, **overrides: Any) -> YtDlpOpts:
        if overrides:
            return self._base_opts.model_copy(update=overrides)
        return self._base_opts

    @staticmethod
    def _parse_info(data: dict[str, Any]) -> YtDlpMediaInfo:
        return YtDlpMediaInfo.model_validate(data)

    def _extract_info_sync(self, url: str, use_cache: bool) -> YtDlpMediaInfo:
        now = time.time()
        if use_cache:
            cached = self._cache.get(url)
            if cached is not None and now - cached.cached_at < CACHE_TTL:
                logger.debug(LogTemplates.YTDLP_CACHE_HIT, url[:LOG_URL_TRUNCATE])
                return cached.info

        try:
            with YoutubeDL(params=cast(Any, self._get_opts().model_dump())) as ydl:
                data = ydl.extract_info(url, download=False)
        except YoutubeDLError as exc:
            logger.warning(LogTemplates.YTDLP_EXTRACT_FAILED, url[:LOG_URL_TRUNCATE], exc)
            raise UpstreamUnavailableError("yt-dlp", str(exc)) from exc

        if not isinstance(data, dict):
            raise NotPlayableError(media_id_for_url(url), ErrorMessages.NO_URL_IN_INFO_DICT)

        info = self._parse_info(dict(data))
        self._store(url, info, now)
        return info

    def _store(self, url: str, info: YtDlpMediaInfo, now: float) -> None:
        self._cache[url] = CacheEntry(info=info, cached_at=now)
        if len(self._cache) > CACHE_MAX_SIZE:
            expired = [k for k, e in self._cache.items() if now - e.cached_at >= CACHE_TTL]
            for key in expired:
                self._cache.pop(key, None)

    def _search_sync(self, query: str, limit: int) -> list[YtDlpMediaInfo]:
        opts = self._get_opts(extract_flat="in_playlist", noplaylist=False)
        try:
            with YoutubeDL(params=cast(Any, opts.model_dump())) as ydl:
                data = ydl.extract_info(f"ytsearch{limit}:{query}", download=False)
        except YoutubeDLError as exc:
            logger.warning(LogTemplates.YTDLP_EXTRACT_FAILED, query, exc)
            raise UpstreamUnavailableError("yt-dlp", str(exc)) from exc

        if not isinstance(data, dict):
            return []
        entries = data.get("entries") or []
        return [self._parse_info(dict(e)) for e in entries if isinstance(e, dict)]

    async def resolve_info(self, url: str, *, use_cache: bool = True) -> ExternalMediaInfo:
        info = await asyncio.to_thread(self._extract_info_sync, url, use_cache)
        media_url, audio_url = select_stream_urls(info)
        if not media_url:
            raise NotPlayableError(media_id_for_url(url), ErrorMessages.NO_URL_IN_INFO_DICT)
        return ExternalMediaInfo(
            title=info.title,
            webpage_url=info.webpage_url or url,
            direct_media_url=media_url,
            audio_url=audio_url,
            duration_sec=info.duration,
            is_live=info.is_live,
        )

    async def describe(self, url: str) -> MediaHandle:
        """Build a media handle for a page URL, ready to hand to the session manager."""
        info = await self.resolve_info(url)
        return MediaHandle(
            media_id=media_id_for_url(info.webpage_url),
            kind=MediaKind.EXTERNAL,
            media_type=MediaType.CLIP,
            title=info.title,
            duration_ms=info.duration_ms,
            source_url=info.webpage_url,
        )

    async def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[MediaHandle]:
        results = await asyncio.to_thread(self._search_sync, query, limit)
        handles: list[MediaHandle] = []
        for info in results:
            page_url = info.webpage_url or info.url
            if not page_url and info.id:
                page_url = f"https://www.youtube.com/watch?v={info.id}"
            if not page_url:
                continue
            handles.append(
                MediaHandle(
                    media_id=media_id_for_url(page_url),
                    kind=MediaKind.EXTERNAL,
                    media_type=MediaType.CLIP,
                    title=info.title,
                    duration_ms=(info.duration or 0) * 1000,
                    source_url=page_url,
                )
            )
        return handles
