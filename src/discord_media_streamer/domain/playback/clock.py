"""Position clock.

A session's position is never read from the transcoder. It is derived from
the position the current pipeline was started at and the monotonic time at
which it was started::

    position = base_position                      (paused)
    position = base_position + (now - base_ts)    (playing)

clamped to ``[0, duration]`` when the duration is known.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic millisecond time source."""

    def now_ms(self) -> int: ...


class MonotonicClock:
    """Production clock backed by :func:`time.monotonic`."""

    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)


def clamp_position(position_ms: int, duration_ms: int = 0) -> int:
    """Clamp a position to ``[0, duration_ms]``, or to ``>= 0`` when duration is unknown."""
    position_ms = max(0, position_ms)
    if duration_ms > 0:
        return min(position_ms, duration_ms)
    return position_ms


def current_position_ms(
    base_position_ms: int,
    base_timestamp_ms: int,
    is_paused: bool,
    now_ms: int,
    duration_ms: int = 0,
) -> int:
    if is_paused:
        return clamp_position(base_position_ms, duration_ms)
    elapsed = max(0, now_ms - base_timestamp_ms)
    return clamp_position(base_position_ms + elapsed, duration_ms)


def progress_fraction(position_ms: int, duration_ms: int) -> float | None:
    """Fraction of the item played, or None when the duration is unknown."""
    if duration_ms <= 0:
        return None
    return min(1.0, max(0.0, position_ms / duration_ms))
