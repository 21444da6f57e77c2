"""
Unit Tests for Bot Lifecycle

Tests for src/discord_media_streamer/infrastructure/discord/bot.py:
- Intents, prefix and container wiring on construction
- Container initialization in setup_hook
- Stopping playback when the bot is disconnected from voice by someone else
- Orderly shutdown in close()
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import discord
import pytest

from discord_media_streamer.infrastructure.discord.bot import StreamerBot, create_bot

BOT_USER_ID = 987654321


@pytest.fixture
def mock_settings():
    settings = MagicMock()
    settings.discord.command_prefix = "!"
    return settings


@pytest.fixture
def mock_container():
    container = MagicMock()
    container.initialize = AsyncMock()
    container.shutdown = AsyncMock()
    container.set_bot = MagicMock()
    manager = MagicMock()
    manager.has_session.return_value = True
    manager.stop = AsyncMock()
    container.session_manager = manager
    return container


def _voice_state(channel):
    return SimpleNamespace(channel=channel)


def _member(user_id, guild_id=111):
    return SimpleNamespace(id=user_id, guild=SimpleNamespace(id=guild_id))


# =============================================================================
# Construction
# =============================================================================


class TestBotInitialization:
    @pytest.mark.asyncio
    async def test_intents(self, mock_container, mock_settings):
        bot = StreamerBot(container=mock_container, settings=mock_settings)

        assert bot.intents.voice_states is True
        assert bot.intents.guilds is True
        assert bot.intents.message_content is True

    @pytest.mark.asyncio
    async def test_prefix_and_help(self, mock_container, mock_settings):
        bot = StreamerBot(container=mock_container, settings=mock_settings)

        assert bot.command_prefix == "!"
        assert bot.help_command is None

    @pytest.mark.asyncio
    async def test_registers_with_container(self, mock_container, mock_settings):
        bot = StreamerBot(container=mock_container, settings=mock_settings)

        mock_container.set_bot.assert_called_once_with(bot)
        assert bot.container is mock_container
        assert not bot._shutdown_event.is_set()


# =============================================================================
# Setup
# =============================================================================


class TestSetupHook:
    @pytest.mark.asyncio
    async def test_initializes_container(self, mock_container, mock_settings):
        bot = StreamerBot(container=mock_container, settings=mock_settings)

        await bot.setup_hook()

        mock_container.initialize.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_container_init_failure_propagates(self, mock_container, mock_settings):
        mock_container.initialize.side_effect = OSError("database locked")
        bot = StreamerBot(container=mock_container, settings=mock_settings)

        with pytest.raises(OSError, match="database locked"):
            await bot.setup_hook()


# =============================================================================
# Voice State
# =============================================================================


class TestVoiceStateUpdate:
    @pytest.fixture
    def bot(self, mock_container, mock_settings):
        bot = StreamerBot(container=mock_container, settings=mock_settings)
        with patch.object(
            type(bot), "user", PropertyMock(return_value=SimpleNamespace(id=BOT_USER_ID))
        ):
            yield bot

    @pytest.mark.asyncio
    async def test_external_disconnect_stops_session(self, bot, mock_container):
        await bot.on_voice_state_update(
            _member(BOT_USER_ID), _voice_state(object()), _voice_state(None)
        )

        mock_container.session_manager.stop.assert_awaited_once_with(111)

    @pytest.mark.asyncio
    async def test_other_members_ignored(self, bot, mock_container):
        await bot.on_voice_state_update(_member(42), _voice_state(object()), _voice_state(None))

        mock_container.session_manager.stop.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_channel_move_ignored(self, bot, mock_container):
        await bot.on_voice_state_update(
            _member(BOT_USER_ID), _voice_state(object()), _voice_state(object())
        )

        mock_container.session_manager.stop.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_session_ignored(self, bot, mock_container):
        mock_container.session_manager.has_session.return_value = False

        await bot.on_voice_state_update(
            _member(BOT_USER_ID), _voice_state(object()), _voice_state(None)
        )

        mock_container.session_manager.stop.assert_not_awaited()


# =============================================================================
# Close
# =============================================================================


class TestBotClose:
    @pytest.mark.asyncio
    async def test_close_shuts_down_container(self, mock_container, mock_settings):
        bot = StreamerBot(container=mock_container, settings=mock_settings)

        with patch.object(type(bot), "voice_clients", PropertyMock(return_value=[])):
            await bot.close()

        mock_container.shutdown.assert_awaited_once()
        assert bot._shutdown_event.is_set()

    @pytest.mark.asyncio
    async def test_close_disconnects_voice_clients(self, mock_container, mock_settings):
        bot = StreamerBot(container=mock_container, settings=mock_settings)
        vc1 = AsyncMock()
        vc2 = AsyncMock()

        with patch.object(type(bot), "voice_clients", PropertyMock(return_value=[vc1, vc2])):
            await bot.close()

        vc1.disconnect.assert_awaited_once_with(force=True)
        vc2.disconnect.assert_awaited_once_with(force=True)

    @pytest.mark.asyncio
    async def test_close_survives_voice_disconnect_error(self, mock_container, mock_settings):
        bot = StreamerBot(container=mock_container, settings=mock_settings)
        vc = AsyncMock()
        vc.disconnect.side_effect = discord.ClientException("Not connected")

        with patch.object(type(bot), "voice_clients", PropertyMock(return_value=[vc])):
            await bot.close()

        assert bot._shutdown_event.is_set()

    @pytest.mark.asyncio
    async def test_close_survives_container_shutdown_error(self, mock_container, mock_settings):
        mock_container.shutdown.side_effect = RuntimeError("Shutdown failed")
        bot = StreamerBot(container=mock_container, settings=mock_settings)

        with patch.object(type(bot), "voice_clients", PropertyMock(return_value=[])):
            await bot.close()

        assert bot._shutdown_event.is_set()


class TestCreateBot:
    def test_create_bot(self, mock_container, mock_settings):
        bot = create_bot(mock_container, mock_settings)

        assert isinstance(bot, StreamerBot)
        assert bot.settings is mock_settings
