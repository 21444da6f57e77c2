"""Core domain entities for the playback bounded context."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from discord_media_streamer.domain.playback.clock import (
    clamp_position,
    current_position_ms,
    progress_fraction,
)
from discord_media_streamer.domain.playback.value_objects import (
    MediaKind,
    MediaType,
    PublishMode,
    SessionState,
)
from discord_media_streamer.domain.shared.constants import PlaybackDefaults, StreamDefaults
from discord_media_streamer.domain.shared.datetime_utils import utcnow
from discord_media_streamer.domain.shared.exceptions import InvalidOperationError
from discord_media_streamer.domain.shared.types import (
    BitrateKbps,
    ChannelIdField,
    DestinationIdField,
    DurationMs,
    FrameRate,
    NonEmptyStr,
    NonNegativeInt,
    PositionMs,
    PositiveInt,
    UtcDatetimeField,
    VolumePercent,
)


class MediaHandle(BaseModel):
    """Immutable reference to something that can be played."""

    model_config = ConfigDict(frozen=True, strict=True)

    media_id: NonEmptyStr
    kind: MediaKind = MediaKind.LIBRARY
    media_type: MediaType = MediaType.UNKNOWN
    title: NonEmptyStr
    duration_ms: DurationMs = 0

    # Episode metadata (library media only)
    series_title: NonEmptyStr | None = None
    season_number: NonNegativeInt | None = None
    episode_number: NonNegativeInt | None = None

    # Set for external and direct media
    source_url: NonEmptyStr | None = None

    @property
    def resume_key(self) -> str:
        """Identity used to key saved resume positions."""
        return f"{self.kind.value}:{self.media_id}"

    @property
    def is_episodic(self) -> bool:
        return self.kind is MediaKind.LIBRARY and self.media_type is MediaType.EPISODE

    @property
    def display_title(self) -> str:
        if self.is_episodic and self.series_title:
            season = self.season_number or 0
            episode = self.episode_number or 0
            return f"{self.series_title} - S{season:02d}E{episode:02d} - {self.title}"
        return self.title


class PlayableSource(BaseModel):
    """A URL the transcoder can read, plus what is known about the stream."""

    model_config = ConfigDict(frozen=True, strict=True)

    url: NonEmptyStr
    container: str | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    bitrate_kbps: NonNegativeInt | None = None
    headers: dict[str, str] = Field(default_factory=dict)

    # Separate audio stream for external sources that split video and audio
    audio_url: NonEmptyStr | None = None
    session_id: str | None = None


class ExternalMediaInfo(BaseModel):
    """What the external URL resolver learned about a page URL."""

    model_config = ConfigDict(frozen=True)

    title: NonEmptyStr
    webpage_url: NonEmptyStr
    direct_media_url: NonEmptyStr
    audio_url: NonEmptyStr | None = None
    duration_sec: NonNegativeInt | None = None
    is_live: bool = False

    @property
    def duration_ms(self) -> int:
        return (self.duration_sec or 0) * 1000


class TranscodeOptions(BaseModel):
    """Everything that shapes one transcoder invocation."""

    model_config = ConfigDict(frozen=True, strict=True)

    mode: PublishMode = PublishMode.AUDIO
    target_height: PositiveInt = StreamDefaults.HEIGHT
    target_width: PositiveInt = StreamDefaults.WIDTH
    frame_rate: FrameRate = StreamDefaults.FRAME_RATE
    video_bitrate_kbps: BitrateKbps = StreamDefaults.MAX_BITRATE_KBPS
    audio_bitrate_kbps: BitrateKbps = StreamDefaults.AUDIO_BITRATE_KBPS
    volume_percent: VolumePercent = PlaybackDefaults.VOLUME_PERCENT
    start_offset_ms: PositionMs = 0

    @property
    def gain(self) -> float:
        return self.volume_percent / 100


class ResumeEntry(BaseModel):
    """A saved position for a media item."""

    model_config = ConfigDict(frozen=True, strict=True)

    resume_key: NonEmptyStr
    position_ms: PositionMs
    label: str = ""
    updated_at: UtcDatetimeField = Field(default_factory=utcnow)

    def is_expired(self, ttl: timedelta, now: datetime | None = None) -> bool:
        return (now or utcnow()) - self.updated_at > ttl


class PlaybackProgress(BaseModel):
    """Read-only snapshot of a session's position."""

    model_config = ConfigDict(frozen=True)

    position_ms: PositionMs = 0
    duration_ms: DurationMs = 0
    fraction: float | None = 0.0
    state: SessionState | None = None

    @classmethod
    def empty(cls) -> PlaybackProgress:
        return cls()


class PlaybackSession(BaseModel):
    """Playback state for a single Discord guild.

    ``base_position_ms`` and ``base_timestamp_ms`` anchor the position clock;
    the clock only advances while the session is PLAYING. ``generation`` is
    bumped every time the current pipeline is superseded so late
    notifications from earlier pipelines can be recognised and dropped.
    """

    model_config = ConfigDict(strict=True, arbitrary_types_allowed=True)

    destination_id: DestinationIdField
    channel_id: ChannelIdField
    media: MediaHandle
    state: SessionState = SessionState.IDLE
    base_position_ms: PositionMs = 0
    base_timestamp_ms: NonNegativeInt = 0
    volume_percent: VolumePercent = PlaybackDefaults.VOLUME_PERCENT
    has_started_publishing: bool = False
    generation: NonNegativeInt = 0
    source: PlayableSource | None = None
    created_at: UtcDatetimeField = Field(default_factory=utcnow)

    # Runtime handles, owned by the session manager
    process: Any = Field(default=None, exclude=True)
    coordinator: Any = Field(default=None, exclude=True)

    @property
    def duration_ms(self) -> int:
        return self.media.duration_ms

    @property
    def is_paused(self) -> bool:
        return self.state == SessionState.PAUSED

    @property
    def is_playing(self) -> bool:
        return self.state == SessionState.PLAYING

    @property
    def is_transitioning(self) -> bool:
        return self.state.is_transitioning

    @property
    def clock_running(self) -> bool:
        return self.state == SessionState.PLAYING

    def position_at(self, now_ms: int) -> int:
        return current_position_ms(
            self.base_position_ms,
            self.base_timestamp_ms,
            not self.clock_running,
            now_ms,
            self.duration_ms,
        )

    def progress_at(self, now_ms: int) -> PlaybackProgress:
        position = self.position_at(now_ms)
        return PlaybackProgress(
            position_ms=position,
            duration_ms=self.duration_ms,
            fraction=progress_fraction(position, self.duration_ms),
            state=self.state,
        )

    def clamp(self, position_ms: int) -> int:
        return clamp_position(position_ms, self.duration_ms)

    def anchor(self, position_ms: int, now_ms: int) -> None:
        """Restart the clock at ``position_ms`` as of ``now_ms``."""
        self.base_position_ms = self.clamp(position_ms)
        self.base_timestamp_ms = now_ms

    def freeze(self, now_ms: int) -> int:
        """Fold elapsed time into the base position and return it."""
        position = self.position_at(now_ms)
        self.anchor(position, now_ms)
        return position

    def supersede(self) -> int:
        """Invalidate the current pipeline's generation and return the new one."""
        self.generation += 1
        return self.generation

    def transition_to(self, target: SessionState) -> None:
        if not self.state.can_transition_to(target):
            raise InvalidOperationError(target.value, self.state.value)
        self.state = target

    def load_media(self, media: MediaHandle) -> None:
        """Swap in a new item, e.g. the next episode."""
        self.media = media
        self.source = None
        self.has_started_publishing = False
        self.base_position_ms = 0
