"""Pydantic models for the subset of the Plex JSON API we read."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from discord_media_streamer.domain.playback.entities import MediaHandle
from discord_media_streamer.domain.playback.value_objects import MediaKind, MediaType
from discord_media_streamer.domain.shared.constants import PlexDefaults


def _as_list(v: Any) -> list[Any]:
    # Plex returns a bare object instead of a one-element list in places
    if v is None:
        return []
    if isinstance(v, dict):
        return [v]
    if isinstance(v, list):
        return [item for item in v if isinstance(item, dict)]
    return []


def _as_int(v: Any) -> int | None:
    if v is None or v == "":
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


class PlexPart(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    key: str | None = None
    container: str | None = None


class PlexMedia(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    bitrate: int | None = None
    container: str | None = None
    video_codec: str | None = Field(default=None, alias="videoCodec")
    audio_codec: str | None = Field(default=None, alias="audioCodec")
    width: int | None = None
    height: int | None = None
    parts: list[PlexPart] = Field(default_factory=list, alias="Part")

    @field_validator("bitrate", "width", "height", mode="before")
    @classmethod
    def _coerce_int(cls, v: Any) -> int | None:
        return _as_int(v)

    @field_validator("parts", mode="before")
    @classmethod
    def _coerce_parts(cls, v: Any) -> list[Any]:
        return _as_list(v)


class PlexMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    rating_key: str = Field(alias="ratingKey")
    type: str | None = None
    title: str | None = None
    grandparent_title: str | None = Field(default=None, alias="grandparentTitle")
    grandparent_rating_key: str | None = Field(default=None, alias="grandparentRatingKey")
    parent_index: int | None = Field(default=None, alias="parentIndex")
    index: int | None = None
    duration: int | None = None
    media: list[PlexMedia] = Field(default_factory=list, alias="Media")

    @field_validator("rating_key", "grandparent_rating_key", mode="before")
    @classmethod
    def _coerce_key(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("parent_index", "index", "duration", mode="before")
    @classmethod
    def _coerce_int(cls, v: Any) -> int | None:
        return _as_int(v)

    @field_validator("media", mode="before")
    @classmethod
    def _coerce_media(cls, v: Any) -> list[Any]:
        return _as_list(v)

    @property
    def first_part(self) -> tuple[PlexMedia, PlexPart] | None:
        for media in self.media:
            for part in media.parts:
                if part.key:
                    return media, part
        return None

    @property
    def episode_sort_key(self) -> tuple[int, int]:
        return (self.parent_index or 0, self.index or 0)

    def to_media_handle(self) -> MediaHandle:
        media_type = MediaType.parse(self.type)
        is_episode = media_type is MediaType.EPISODE
        return MediaHandle(
            media_id=self.rating_key,
            kind=MediaKind.LIBRARY,
            media_type=media_type,
            title=self.title or "Untitled",
            duration_ms=max(0, self.duration or 0),
            series_title=(self.grandparent_title or None) if is_episode else None,
            season_number=self.parent_index if is_episode else None,
            episode_number=self.index if is_episode else None,
        )

    def container_name(self) -> str:
        found = self.first_part
        if found is None:
            return PlexDefaults.DEFAULT_CONTAINER
        media, part = found
        return part.container or media.container or PlexDefaults.DEFAULT_CONTAINER


class PlexMediaContainer(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    metadata: list[PlexMetadata] = Field(default_factory=list, alias="Metadata")

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, v: Any) -> list[Any]:
        return [item for item in _as_list(v) if item.get("ratingKey") is not None]

    @classmethod
    def from_response(cls, payload: Any) -> PlexMediaContainer:
        if not isinstance(payload, dict):
            return cls()
        return cls.model_validate(payload.get("MediaContainer") or {})
