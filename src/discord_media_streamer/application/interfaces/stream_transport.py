"""Port interface for the real-time stream transport."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from discord_media_streamer.domain.playback.value_objects import PublishMode
from discord_media_streamer.domain.shared.types import ChannelIdField, DestinationIdField

from .transcoder import PublishStream

PublishFinishedCallback = Callable[[Exception | None], Awaitable[None]]


class StreamTransport(ABC):
    """Pushes a transcoder's output to a destination."""

    @abstractmethod
    async def join(self, destination_id: DestinationIdField, channel_id: ChannelIdField) -> None:
        """Join (or move to) ``channel_id``.

        Raises:
            TransportError: The channel could not be joined.
        """
        ...

    @abstractmethod
    async def publish(
        self,
        destination_id: DestinationIdField,
        stream: PublishStream,
        mode: PublishMode,
        on_finished: PublishFinishedCallback,
    ) -> None:
        """Start publishing ``stream``.

        ``on_finished`` is awaited on the event loop exactly once when the
        stream ends, errors, or is stopped.
        """
        ...

    @abstractmethod
    async def stop(self, destination_id: DestinationIdField) -> None:
        """Stop publishing without leaving the channel."""
        ...

    @abstractmethod
    async def leave(self, destination_id: DestinationIdField) -> None:
        """Leave the channel."""
        ...
