"""Discord voice transport implementing StreamTransport."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging

import discord

from discord_media_streamer.application.interfaces.stream_transport import (
    PublishFinishedCallback,
    StreamTransport,
)
from discord_media_streamer.application.interfaces.transcoder import PublishStream
from discord_media_streamer.config.settings import DiscordSettings
from discord_media_streamer.domain.playback.value_objects import PublishMode
from discord_media_streamer.domain.shared.exceptions import TransportError
from discord_media_streamer.domain.shared.messages import ErrorMessages, LogTemplates

logger = logging.getLogger(__name__)


class DiscordStreamTransport(StreamTransport):
    """Publishes raw 48 kHz stereo PCM into a guild's voice connection."""

    def __init__(self, bot: discord.Client, settings: DiscordSettings | None = None) -> None:
        self._bot = bot
        self._settings = settings or DiscordSettings()

    def _get_voice_client(self, guild_id: int) -> discord.VoiceClient | None:
        guild = self._bot.get_guild(guild_id)
        if not guild:
            return None
        vc = guild.voice_client
        return vc if isinstance(vc, discord.VoiceClient) else None

    async def join(self, destination_id: int, channel_id: int) -> None:
        guild = self._bot.get_guild(destination_id)
        if guild is None:
            raise TransportError(ErrorMessages.NOT_CONNECTED.format(guild_id=destination_id))

        channel = guild.get_channel(channel_id)
        if not isinstance(channel, discord.VoiceChannel | discord.StageChannel):
            raise TransportError(
                ErrorMessages.VOICE_CONNECT_FAILED.format(
                    channel_id=channel_id, error="not a voice channel"
                )
            )

        vc = self._get_voice_client(destination_id)
        if vc is not None and not vc.is_connected():
            await vc.disconnect(force=True)
            vc = None

        try:
            async with asyncio.timeout(self._settings.voice_connect_timeout_s):
                if vc is None:
                    await channel.connect(self_deaf=True)
                    logger.info(LogTemplates.VOICE_CONNECTED, channel.name, guild.name)
                elif vc.channel is None or vc.channel.id != channel_id:
                    await vc.move_to(channel)
                    logger.info(LogTemplates.VOICE_MOVED, channel.name, guild.name)
        except TimeoutError as exc:
            raise TransportError(
                ErrorMessages.VOICE_CONNECT_FAILED.format(channel_id=channel_id, error="timed out")
            ) from exc
        except (discord.ClientException, discord.Forbidden) as exc:
            raise TransportError(
                ErrorMessages.VOICE_CONNECT_FAILED.format(channel_id=channel_id, error=exc)
            ) from exc

    async def publish(
        self,
        destination_id: int,
        stream: PublishStream,
        mode: PublishMode,
        on_finished: PublishFinishedCallback,
    ) -> None:
        if mode is not PublishMode.AUDIO:
            raise TransportError(ErrorMessages.VIDEO_MODE_UNSUPPORTED)

        vc = self._get_voice_client(destination_id)
        if vc is None:
            raise TransportError(ErrorMessages.NOT_CONNECTED.format(guild_id=destination_id))

        if vc.is_playing() or vc.is_paused():
            vc.stop()

        loop = self._bot.loop

        def report(future: concurrent.futures.Future[None]) -> None:
            if future.cancelled():
                return
            exc = future.exception()
            if exc is not None:
                logger.error(
                    LogTemplates.TRANSPORT_FINISH_HANDLER_FAILED, destination_id, exc_info=exc
                )

        def after_callback(error: Exception | None = None) -> None:
            # Runs on discord.py's audio thread.
            future = asyncio.run_coroutine_threadsafe(on_finished(error), loop)
            future.add_done_callback(report)

        try:
            vc.play(discord.PCMAudio(stream), after=after_callback)
        except discord.ClientException as exc:
            raise TransportError(str(exc)) from exc

    async def stop(self, destination_id: int) -> None:
        vc = self._get_voice_client(destination_id)
        if vc is not None and (vc.is_playing() or vc.is_paused()):
            vc.stop()

    async def leave(self, destination_id: int) -> None:
        vc = self._get_voice_client(destination_id)
        if vc is None:
            return
        await vc.disconnect(force=True)
        logger.info(LogTemplates.VOICE_DISCONNECTED, destination_id)
