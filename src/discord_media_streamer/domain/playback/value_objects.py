"""Immutable value objects for the playback bounded context."""

from __future__ import annotations

from enum import Enum


class SessionState(Enum):
    """Session state with enforced transitions.

    State transitions:
    - IDLE -> STARTING (start)
    - STARTING -> PLAYING (pipeline publishing)
    - PLAYING -> TRANSITIONING -> PAUSED (pause)
    - PAUSED -> TRANSITIONING -> PLAYING (resume, volume, skip)
    - PLAYING | PAUSED -> SEEKING -> PLAYING (seek)
    - Any -> STOPPED (stop, natural end, failure)
    """

    IDLE = "idle"
    STARTING = "starting"
    PLAYING = "playing"
    PAUSED = "paused"
    SEEKING = "seeking"
    TRANSITIONING = "transitioning"
    STOPPED = "stopped"

    def can_transition_to(self, target: SessionState) -> bool:
        """Check if transition to target state is valid."""
        valid_transitions = {
            SessionState.IDLE: {SessionState.STARTING, SessionState.STOPPED},
            SessionState.STARTING: {SessionState.PLAYING, SessionState.STOPPED},
            SessionState.PLAYING: {
                SessionState.SEEKING,
                SessionState.TRANSITIONING,
                SessionState.STOPPED,
            },
            SessionState.PAUSED: {
                SessionState.SEEKING,
                SessionState.TRANSITIONING,
                SessionState.STOPPED,
            },
            SessionState.SEEKING: {SessionState.PLAYING, SessionState.STOPPED},
            SessionState.TRANSITIONING: {
                SessionState.PLAYING,
                SessionState.PAUSED,
                SessionState.STOPPED,
            },
            SessionState.STOPPED: set(),
        }
        return target in valid_transitions.get(self, set())

    @property
    def is_transitioning(self) -> bool:
        return self in {SessionState.STARTING, SessionState.SEEKING, SessionState.TRANSITIONING}

    @property
    def is_active(self) -> bool:
        return self not in {SessionState.IDLE, SessionState.STOPPED}


class MediaKind(Enum):
    """Where a media handle is served from."""

    LIBRARY = "library"
    EXTERNAL = "external"
    DIRECT = "direct"


class MediaType(Enum):
    MOVIE = "movie"
    EPISODE = "episode"
    TRACK = "track"
    CLIP = "clip"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> MediaType:
        try:
            return cls(value or "unknown")
        except ValueError:
            return cls.UNKNOWN


class AdjacentDirection(Enum):
    NEXT = "next"
    PREVIOUS = "previous"

    @property
    def step(self) -> int:
        return 1 if self is AdjacentDirection.NEXT else -1


class PublishMode(Enum):
    """Output format of the transcode pipeline."""

    AUDIO = "audio"
    VIDEO = "video"


class ExitKind(Enum):
    """How a transcode process ended."""

    RUNNING = "running"
    CLEAN = "clean"
    KILLED = "killed"
    ABNORMAL = "abnormal"
