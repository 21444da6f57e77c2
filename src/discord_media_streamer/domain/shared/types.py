"""Pydantic Annotated types shared by the playback models.

Positions and durations are integer milliseconds throughout::

    class Marker(BaseModel):
        destination_id: DestinationIdField
        position_ms: PositionMs
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from pydantic import BeforeValidator, Field

# ── Numeric constraints ─────────────────────────────────────────────

DiscordSnowflake = Annotated[int, Field(gt=0, lt=2**64)]
"""Positive integer that fits a Discord snowflake (1 … 2^64-1)."""

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer >= 0."""

PositiveInt = Annotated[int, Field(gt=0)]
"""Integer > 0."""

PositionMs = Annotated[int, Field(ge=0)]
"""Media position in milliseconds."""

DurationMs = Annotated[int, Field(ge=0)]
"""Media duration in milliseconds; 0 means unknown."""

VolumePercent = Annotated[int, Field(ge=0, le=200)]
"""Output gain in percent: 0 … 200, 100 is unity."""


# ── String constraints ──────────────────────────────────────────────

NonEmptyStr = Annotated[str, Field(min_length=1)]
"""String with at least one character."""

HttpUrlStr = Annotated[str, Field(pattern=r"^https?://")]
"""String that starts with http:// or https://."""


# ── Stream constraints ─────────────────────────────────────────────

FrameRate = Annotated[int, Field(ge=1, le=60)]
"""Output frame rate: 1 … 60 fps."""

BitrateKbps = Annotated[int, Field(gt=0, le=50_000)]
"""Bitrate in kilobits per second."""


# ── Datetime constraints ────────────────────────────────────────────

def _ensure_utc(v: datetime) -> datetime:
    """Validate that a datetime is timezone-aware and normalise to UTC."""
    if v.tzinfo is None:
        raise ValueError("datetime must be timezone-aware (UTC)")
    return v.astimezone(UTC)


UtcDatetimeField = Annotated[datetime, BeforeValidator(_ensure_utc)]
"""Timezone-aware datetime, normalised to UTC on input."""


# ── Pydantic-compatible ID aliases ──────────────────────────────────

DestinationIdField = DiscordSnowflake
"""Alias: a destination is a guild, with one session per guild."""

ChannelIdField = DiscordSnowflake
"""Alias: voice channel ID used as a plain Pydantic field."""
