"""In-memory map of destination -> active playback session."""

from __future__ import annotations

from collections.abc import Iterator

from ...domain.playback.entities import PlaybackSession
from ...domain.shared.types import DestinationIdField


class SessionRegistry:
    """At most one session per destination."""

    def __init__(self) -> None:
        self._sessions: dict[DestinationIdField, PlaybackSession] = {}

    def get(self, destination_id: DestinationIdField) -> PlaybackSession | None:
        return self._sessions.get(destination_id)

    def put(self, session: PlaybackSession) -> PlaybackSession | None:
        """Register ``session``, returning whatever it replaced."""
        previous = self._sessions.get(session.destination_id)
        self._sessions[session.destination_id] = session
        return previous

    def remove(self, session: PlaybackSession) -> bool:
        """Remove ``session`` only if it is still the registered one."""
        if self._sessions.get(session.destination_id) is not session:
            return False
        del self._sessions[session.destination_id]
        return True

    def is_current(self, session: PlaybackSession) -> bool:
        return self._sessions.get(session.destination_id) is session

    def destinations(self) -> list[DestinationIdField]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[PlaybackSession]:
        return iter(list(self._sessions.values()))
