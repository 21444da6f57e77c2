"""
Tests for YtDlpMediaResolver

Covers:
- Stream URL selection from merged and single formats
- Tolerant parsing of yt-dlp info dicts
- Extraction caching and the cache bypass used for restarts
- Error mapping
"""

from unittest.mock import MagicMock, patch

import pytest
from yt_dlp.utils import DownloadError

from discord_media_streamer.domain.playback.value_objects import MediaKind, MediaType
from discord_media_streamer.domain.shared.exceptions import (
    NotPlayableError,
    UpstreamUnavailableError,
)
from discord_media_streamer.infrastructure.media.models import YtDlpMediaInfo
from discord_media_streamer.infrastructure.media.ytdlp_resolver import (
    YtDlpMediaResolver,
    media_id_for_url,
    select_stream_urls,
)

PAGE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

MERGED_INFO = {
    "id": "dQw4w9WgXcQ",
    "title": "Never Gonna Give You Up",
    "webpage_url": PAGE_URL,
    "duration": 212.0,
    "requested_formats": [
        {"url": "https://cdn/video.mp4", "vcodec": "avc1", "acodec": "none"},
        {"url": "https://cdn/audio.m4a", "vcodec": "none", "acodec": "mp4a"},
    ],
}


def _patched_ytdl(return_value=None, side_effect=None):
    ydl = MagicMock()
    ydl.__enter__.return_value = ydl
    ydl.extract_info.return_value = return_value
    ydl.extract_info.side_effect = side_effect
    return patch(
        "discord_media_streamer.infrastructure.media.ytdlp_resolver.YoutubeDL",
        return_value=ydl,
    ), ydl


class TestSelectStreamUrls:
    def test_merged_formats(self):
        info = YtDlpMediaInfo.model_validate(MERGED_INFO)

        assert select_stream_urls(info) == ("https://cdn/video.mp4", "https://cdn/audio.m4a")

    def test_single_url(self):
        info = YtDlpMediaInfo.model_validate({"url": "https://cdn/both.mp4"})

        assert select_stream_urls(info) == ("https://cdn/both.mp4", None)

    def test_audio_only_request(self):
        info = YtDlpMediaInfo.model_validate(
            {"requested_formats": [{"url": "https://cdn/a.m4a", "vcodec": "none", "acodec": "opus"}]}
        )

        assert select_stream_urls(info) == ("https://cdn/a.m4a", None)

    def test_falls_back_to_best_listed_format(self):
        info = YtDlpMediaInfo.model_validate(
            {
                "formats": [
                    {"url": "https://cdn/low.mp4", "vcodec": "avc1", "acodec": "mp4a"},
                    {"url": "https://cdn/storyboard", "vcodec": "none", "acodec": "none"},
                    {"url": "https://cdn/high.mp4", "vcodec": "avc1", "acodec": "mp4a"},
                ]
            }
        )

        assert select_stream_urls(info) == ("https://cdn/high.mp4", None)

    def test_nothing_playable(self):
        assert select_stream_urls(YtDlpMediaInfo()) == (None, None)


class TestParsing:
    def test_garbage_is_coerced(self):
        info = YtDlpMediaInfo.model_validate(
            {"title": "", "duration": "n/a", "webpage_url": "", "formats": "nope", "is_live": 1}
        )

        assert info.title == "Unknown Title"
        assert info.duration is None
        assert info.webpage_url is None
        assert info.formats == []
        assert info.is_live is True

    def test_media_id_for_youtube_url(self):
        assert media_id_for_url("https://youtu.be/dQw4w9WgXcQ") == "dQw4w9WgXcQ"

    def test_media_id_for_other_url_is_stable_hash(self):
        first = media_id_for_url("https://vimeo.com/12345")

        assert first == media_id_for_url("https://vimeo.com/12345")
        assert len(first) == 16


class TestResolver:
    @pytest.mark.asyncio
    async def test_resolve_info(self):
        patcher, _ = _patched_ytdl(MERGED_INFO)
        with patcher:
            info = await YtDlpMediaResolver().resolve_info(PAGE_URL)

        assert info.title == "Never Gonna Give You Up"
        assert info.direct_media_url == "https://cdn/video.mp4"
        assert info.audio_url == "https://cdn/audio.m4a"
        assert info.duration_sec == 212
        assert info.duration_ms == 212_000

    @pytest.mark.asyncio
    async def test_cache_hit(self):
        patcher, ydl = _patched_ytdl(MERGED_INFO)
        resolver = YtDlpMediaResolver()
        with patcher:
            await resolver.resolve_info(PAGE_URL)
            await resolver.resolve_info(PAGE_URL)

        assert ydl.extract_info.call_count == 1

    @pytest.mark.asyncio
    async def test_cache_bypass(self):
        patcher, ydl = _patched_ytdl(MERGED_INFO)
        resolver = YtDlpMediaResolver()
        with patcher:
            await resolver.resolve_info(PAGE_URL)
            await resolver.resolve_info(PAGE_URL, use_cache=False)

        assert ydl.extract_info.call_count == 2

    @pytest.mark.asyncio
    async def test_extraction_error(self):
        patcher, _ = _patched_ytdl(side_effect=DownloadError("Video unavailable"))
        with patcher, pytest.raises(UpstreamUnavailableError):
            await YtDlpMediaResolver().resolve_info(PAGE_URL)

    @pytest.mark.asyncio
    async def test_no_stream_url(self):
        patcher, _ = _patched_ytdl({"title": "Nothing here", "webpage_url": PAGE_URL})
        with patcher, pytest.raises(NotPlayableError):
            await YtDlpMediaResolver().resolve_info(PAGE_URL)

    @pytest.mark.asyncio
    async def test_describe(self):
        patcher, _ = _patched_ytdl(MERGED_INFO)
        with patcher:
            media = await YtDlpMediaResolver().describe(PAGE_URL)

        assert media.media_id == "dQw4w9WgXcQ"
        assert media.kind is MediaKind.EXTERNAL
        assert media.media_type is MediaType.CLIP
        assert media.duration_ms == 212_000
        assert media.source_url == PAGE_URL

    @pytest.mark.asyncio
    async def test_search(self):
        patcher, ydl = _patched_ytdl(
            {
                "entries": [
                    {"id": "aaaaaaaaaaa", "title": "First", "duration": 60},
                    {"id": "bbbbbbbbbbb", "title": "Second", "url": "https://www.youtube.com/watch?v=bbbbbbbbbbb"},
                    "not a dict",
                ]
            }
        )
        with patcher:
            results = await YtDlpMediaResolver().search("query", limit=3)

        assert [m.media_id for m in results] == ["aaaaaaaaaaa", "bbbbbbbbbbb"]
        assert results[0].source_url == "https://www.youtube.com/watch?v=aaaaaaaaaaa"
        assert ydl.extract_info.call_args.args[0] == "ytsearch3:query"
