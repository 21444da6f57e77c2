"""
Tests for PlaybackSessionManager

Covers:
- Start, pre-emption and failed starts
- Pause / resume, with the backend session held while paused
- Kill, grace delay and re-acquire ordering on every restart path
- Seek, fast-forward, rewind and volume restarts
- Stop idempotence and stop_all
- Natural end, abnormal transcoder exit and stale finish notifications
- Skip to the next episode
"""

import asyncio
import logging

import pytest
from conftest import CHANNEL_ID, GUILD_ID, make_episode

from discord_media_streamer.application.services.playback_models import ControlStatus
from discord_media_streamer.domain.playback.value_objects import SessionState
from discord_media_streamer.domain.shared.exceptions import (
    ProcessSpawnError,
    UpstreamUnavailableError,
)

OTHER_GUILD_ID = 333333333333

# =============================================================================
# Start
# =============================================================================


class TestStart:
    @pytest.mark.asyncio
    async def test_start_publishes_and_plays(
        self, session_manager, episode, fake_transport, fake_transcoder, fake_backend, clock
    ):
        session = await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        assert session.state is SessionState.PLAYING
        assert session.has_started_publishing is True
        assert fake_transport.joined == [(GUILD_ID, CHANNEL_ID)]
        assert len(fake_transport.published) == 1
        assert len(fake_transcoder.handles) == 1
        assert fake_transcoder.last_options.start_offset_ms == 0
        assert [m for m, _ in fake_backend.resolved] == ["101"]

        clock.advance(5_000)
        progress = session_manager.get_progress(GUILD_ID)
        assert progress.position_ms == 5_000
        assert progress.state is SessionState.PLAYING
        assert progress.fraction == pytest.approx(5_000 / episode.duration_ms)

    @pytest.mark.asyncio
    async def test_start_records_backend_session_in_ledger(self, session_manager, episode, ledger):
        session = await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        assert await ledger.list_ids() == [session.coordinator.session_id]

    @pytest.mark.asyncio
    async def test_start_resumes_from_saved_position(
        self, session_manager, episode, resume_store, fake_transcoder, clock
    ):
        await resume_store.put(episode.resume_key, 90_000, episode.display_title)

        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        assert fake_transcoder.last_options.start_offset_ms == 90_000
        assert session_manager.get_progress(GUILD_ID).position_ms == 90_000

    @pytest.mark.asyncio
    async def test_explicit_offset_overrides_saved_position(
        self, session_manager, episode, resume_store, fake_transcoder
    ):
        await resume_store.put(episode.resume_key, 90_000)

        await session_manager.start(GUILD_ID, CHANNEL_ID, episode, start_offset_ms=0)

        assert fake_transcoder.last_options.start_offset_ms == 0

    @pytest.mark.asyncio
    async def test_start_replaces_existing_session_without_leaving(
        self, session_manager, episode, movie, fake_transport, fake_transcoder, resume_store, clock
    ):
        first = await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(40_000)

        second = await session_manager.start(GUILD_ID, CHANNEL_ID, movie)

        assert first.state is SessionState.STOPPED
        assert second.state is SessionState.PLAYING
        assert session_manager.get_session(GUILD_ID) is second
        assert fake_transport.leaves == 0
        assert len(fake_transcoder.alive) == 1
        assert fake_transcoder.max_alive == 1
        assert await resume_store.get(episode.resume_key) == 40_000

    @pytest.mark.asyncio
    async def test_concurrent_starts_last_one_wins(
        self, session_manager, episode, movie, fake_transcoder
    ):
        first, second = await asyncio.gather(
            session_manager.start(GUILD_ID, CHANNEL_ID, episode),
            session_manager.start(GUILD_ID, CHANNEL_ID, movie),
        )

        assert first.state is SessionState.STOPPED
        assert second.state is SessionState.PLAYING
        assert session_manager.get_session(GUILD_ID).media == movie
        assert len(fake_transcoder.alive) == 1
        assert fake_transcoder.max_alive == 1

    @pytest.mark.asyncio
    async def test_upstream_failure_leaves_nothing_registered(
        self, session_manager, episode, fake_backend, fake_transport, ledger
    ):
        fake_backend.resolve_error = UpstreamUnavailableError("Plex", "connection refused")

        with pytest.raises(UpstreamUnavailableError):
            await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        assert session_manager.has_session(GUILD_ID) is False
        assert fake_transport.leaves == 1
        assert await ledger.list_ids() == []

    @pytest.mark.asyncio
    async def test_spawn_failure_releases_backend_session(
        self, session_manager, episode, fake_transcoder, fake_backend, ledger, spawn_failure
    ):
        fake_transcoder.spawn_error = spawn_failure

        with pytest.raises(ProcessSpawnError):
            await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        assert session_manager.has_session(GUILD_ID) is False
        assert len(fake_backend.terminated) == 1
        assert await ledger.list_ids() == []


# =============================================================================
# Pause / Resume
# =============================================================================


class TestPauseResume:
    @pytest.mark.asyncio
    async def test_pause_resume_end_to_end(
        self,
        session_manager,
        episode,
        fake_transcoder,
        fake_backend,
        resume_store,
        ledger,
        clock,
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(65_000)

        paused = await session_manager.pause(GUILD_ID)

        assert paused.status is ControlStatus.OK
        assert paused.position_ms == 65_000
        assert session_manager.get_session(GUILD_ID).state is SessionState.PAUSED
        assert fake_transcoder.alive == []
        assert fake_backend.terminated == []
        assert len(await ledger.list_ids()) == 1
        assert await resume_store.get(episode.resume_key) == 65_000

        clock.advance(10_000)
        assert session_manager.get_progress(GUILD_ID).position_ms == 65_000

        resumed = await session_manager.resume(GUILD_ID)

        assert resumed.status is ControlStatus.OK
        assert fake_transcoder.last_options.start_offset_ms == 65_000
        assert session_manager.get_session(GUILD_ID).state is SessionState.PLAYING
        assert len(fake_backend.resolved) == 2
        assert fake_backend.resolved[0][1] != fake_backend.resolved[1][1]
        assert fake_backend.terminated == [fake_backend.resolved[0][1]]
        assert await ledger.list_ids() == [fake_backend.resolved[1][1]]

        clock.advance(1_000)
        assert session_manager.get_progress(GUILD_ID).position_ms == 66_000

    @pytest.mark.asyncio
    async def test_pause_twice_is_no_op(self, session_manager, episode, clock):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(5_000)
        await session_manager.pause(GUILD_ID)

        result = await session_manager.pause(GUILD_ID)

        assert result.status is ControlStatus.NO_OP
        assert result.position_ms == 5_000

    @pytest.mark.asyncio
    async def test_resume_while_playing_is_no_op(
        self, session_manager, episode, fake_transcoder
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        result = await session_manager.resume(GUILD_ID)

        assert result.status is ControlStatus.NO_OP
        assert len(fake_transcoder.handles) == 1

    @pytest.mark.asyncio
    async def test_toggle_pause(self, session_manager, episode):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        await session_manager.toggle_pause(GUILD_ID)
        assert session_manager.get_session(GUILD_ID).is_paused

        await session_manager.toggle_pause(GUILD_ID)
        assert session_manager.get_session(GUILD_ID).is_playing

    @pytest.mark.asyncio
    async def test_short_pause_does_not_save_position(
        self, session_manager, episode, resume_store, clock
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(10_000)

        await session_manager.pause(GUILD_ID)

        assert await resume_store.get(episode.resume_key) is None


# =============================================================================
# Seek / Volume
# =============================================================================


class TestSeek:
    @pytest.mark.asyncio
    async def test_seek_restarts_at_target(self, session_manager, episode, fake_transcoder, clock):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(3_000)

        result = await session_manager.seek(GUILD_ID, 600_000)

        assert result.status is ControlStatus.OK
        assert fake_transcoder.last_options.start_offset_ms == 600_000
        assert abs(session_manager.get_progress(GUILD_ID).position_ms - 600_000) <= 1_000
        assert fake_transcoder.max_alive == 1

    @pytest.mark.asyncio
    async def test_old_process_is_killed_before_new_one_spawns(
        self, session_manager, episode, fake_transcoder, events
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        old_pid = fake_transcoder.handles[0].pid

        await session_manager.seek(GUILD_ID, 120_000)

        new_pid = fake_transcoder.handles[1].pid
        assert events.index(f"kill:{old_pid}") < events.index(f"spawn:{new_pid}:120000")

    @pytest.mark.asyncio
    async def test_seek_is_clamped_to_duration(self, session_manager, episode, fake_transcoder):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        await session_manager.seek(GUILD_ID, episode.duration_ms + 60_000)

        assert fake_transcoder.last_options.start_offset_ms == episode.duration_ms

    @pytest.mark.asyncio
    async def test_double_seek_last_target_wins(self, session_manager, episode, fake_transcoder):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        results = await asyncio.gather(
            session_manager.seek(GUILD_ID, 100_000),
            session_manager.seek(GUILD_ID, 200_000),
        )

        assert all(r.success for r in results)
        assert session_manager.get_progress(GUILD_ID).position_ms == 200_000
        assert len(fake_transcoder.alive) == 1
        assert fake_transcoder.max_alive == 1

    @pytest.mark.asyncio
    async def test_seek_while_paused_resumes(self, session_manager, episode, clock):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(40_000)
        await session_manager.pause(GUILD_ID)

        await session_manager.seek(GUILD_ID, 10_000)

        session = session_manager.get_session(GUILD_ID)
        assert session.state is SessionState.PLAYING
        assert session_manager.get_progress(GUILD_ID).position_ms == 10_000

    @pytest.mark.asyncio
    async def test_fast_forward_uses_default_step(
        self, session_manager, episode, fake_transcoder, clock
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(10_000)

        await session_manager.fast_forward(GUILD_ID)

        assert fake_transcoder.last_options.start_offset_ms == 40_000

    @pytest.mark.asyncio
    async def test_rewind_clamps_at_zero(self, session_manager, episode, fake_transcoder, clock):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(10_000)

        await session_manager.rewind(GUILD_ID)

        assert fake_transcoder.last_options.start_offset_ms == 0


class TestVolume:
    @pytest.mark.asyncio
    async def test_volume_change_restarts_at_current_position(
        self, session_manager, episode, fake_transcoder, clock
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(40_000)

        result = await session_manager.set_volume(GUILD_ID, 150)

        assert result.status is ControlStatus.OK
        assert fake_transcoder.last_options.volume_percent == 150
        assert fake_transcoder.last_options.start_offset_ms == 40_000
        assert abs(session_manager.get_progress(GUILD_ID).position_ms - 40_000) <= 1_000

    @pytest.mark.asyncio
    async def test_same_volume_is_no_op(self, session_manager, episode, fake_transcoder):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        result = await session_manager.set_volume(GUILD_ID, 100)

        assert result.status is ControlStatus.NO_OP
        assert len(fake_transcoder.handles) == 1

    @pytest.mark.asyncio
    async def test_volume_is_clamped(self, session_manager, episode, fake_transcoder):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        await session_manager.set_volume(GUILD_ID, 500)

        assert fake_transcoder.last_options.volume_percent == 200

    @pytest.mark.asyncio
    async def test_volume_while_paused_applies_on_resume(
        self, session_manager, episode, fake_transcoder
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        await session_manager.pause(GUILD_ID)

        result = await session_manager.set_volume(GUILD_ID, 50)

        assert result.status is ControlStatus.OK
        assert len(fake_transcoder.handles) == 1

        await session_manager.resume(GUILD_ID)
        assert fake_transcoder.last_options.volume_percent == 50

    @pytest.mark.asyncio
    async def test_position_never_decreases_without_seek(self, session_manager, episode, clock):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        positions = []

        for step in range(5):
            clock.advance(7_000)
            positions.append(session_manager.get_progress(GUILD_ID).position_ms)
            if step == 1:
                await session_manager.pause(GUILD_ID)
            elif step == 2:
                await session_manager.resume(GUILD_ID)
            elif step == 3:
                await session_manager.set_volume(GUILD_ID, 80)
            positions.append(session_manager.get_progress(GUILD_ID).position_ms)

        assert positions == sorted(positions)

    @pytest.mark.asyncio
    async def test_progress_is_clamped_to_duration(self, session_manager, episode, clock):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(episode.duration_ms + 60_000)

        progress = session_manager.get_progress(GUILD_ID)

        assert progress.position_ms == episode.duration_ms
        assert progress.fraction == 1.0


# =============================================================================
# Stop
# =============================================================================


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_is_idempotent(
        self, session_manager, episode, fake_transport, fake_transcoder, resume_store, ledger, clock
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(45_000)

        first = await session_manager.stop(GUILD_ID)
        second = await session_manager.stop(GUILD_ID)

        assert first.status is ControlStatus.OK
        assert first.position_ms == 45_000
        assert second.status is ControlStatus.NO_ACTIVE_SESSION
        assert fake_transport.leaves == 1
        assert fake_transcoder.alive == []
        assert await ledger.list_ids() == []
        assert await resume_store.get(episode.resume_key) == 45_000

    @pytest.mark.asyncio
    async def test_stop_before_first_byte_saves_nothing(
        self, session_manager, episode, fake_transport, resume_store, clock
    ):
        await resume_store.put(episode.resume_key, 300_000)
        fake_transport.consume = False
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(45_000)

        await session_manager.stop(GUILD_ID)

        assert await resume_store.get(episode.resume_key) == 300_000

    @pytest.mark.asyncio
    async def test_stop_all(self, session_manager, episode, movie):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        await session_manager.start(OTHER_GUILD_ID, CHANNEL_ID, movie)

        assert await session_manager.stop_all() == 2
        assert not session_manager.has_session(GUILD_ID)
        assert not session_manager.has_session(OTHER_GUILD_ID)

    @pytest.mark.asyncio
    async def test_controls_without_session(self, session_manager):
        for result in (
            await session_manager.pause(GUILD_ID),
            await session_manager.resume(GUILD_ID),
            await session_manager.seek(GUILD_ID, 1_000),
            await session_manager.set_volume(GUILD_ID, 50),
            await session_manager.skip(GUILD_ID),
        ):
            assert result.status is ControlStatus.NO_ACTIVE_SESSION

        assert session_manager.get_progress(GUILD_ID).position_ms == 0
        assert session_manager.get_progress(GUILD_ID).state is None


# =============================================================================
# Pipeline Exit
# =============================================================================


class TestPipelineExit:
    @pytest.mark.asyncio
    async def test_natural_end_clears_resume_entry(
        self, session_manager, movie, resume_store, fake_transcoder, fake_transport, clock
    ):
        await resume_store.put(movie.resume_key, 60_000)
        await session_manager.start(GUILD_ID, CHANNEL_ID, movie)
        assert fake_transcoder.last_options.start_offset_ms == 60_000

        clock.advance(movie.duration_ms)
        fake_transcoder.handles[-1].process.returncode = 0
        await fake_transport.last_on_finished(None)

        assert session_manager.has_session(GUILD_ID) is False
        assert fake_transport.leaves == 1
        assert await resume_store.get(movie.resume_key) is None

    @pytest.mark.asyncio
    async def test_early_clean_exit_saves_position(
        self, session_manager, movie, resume_store, fake_transcoder, fake_transport, clock
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, movie)
        clock.advance(600_000)

        fake_transcoder.handles[-1].process.returncode = 0
        await fake_transport.last_on_finished(None)

        assert session_manager.has_session(GUILD_ID) is False
        assert await resume_store.get(movie.resume_key) == 600_000

    @pytest.mark.asyncio
    async def test_abnormal_exit_tears_down_and_logs(
        self, session_manager, movie, resume_store, fake_transcoder, fake_transport, clock, caplog
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, movie)
        clock.advance(120_000)
        handle = fake_transcoder.handles[-1]
        handle.process.returncode = 1
        handle.stderr_tail.append("Connection reset by peer")

        with caplog.at_level(logging.ERROR):
            await fake_transport.last_on_finished(None)

        assert session_manager.has_session(GUILD_ID) is False
        assert "exited abnormally" in caplog.text
        assert "Connection reset by peer" in caplog.text
        assert await resume_store.get(movie.resume_key) == 120_000

    @pytest.mark.asyncio
    async def test_transport_error_is_not_a_natural_end(
        self, session_manager, movie, resume_store, fake_transcoder, fake_transport, clock
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, movie)
        clock.advance(movie.duration_ms)
        fake_transcoder.handles[-1].process.returncode = 0

        await fake_transport.last_on_finished(RuntimeError("voice websocket closed"))

        assert session_manager.has_session(GUILD_ID) is False
        assert await resume_store.get(movie.resume_key) == movie.duration_ms

    @pytest.mark.asyncio
    async def test_stale_finish_is_ignored(self, session_manager, episode, fake_transport):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        stale_on_finished = fake_transport.last_on_finished

        await session_manager.seek(GUILD_ID, 100_000)
        await stale_on_finished(None)

        session = session_manager.get_session(GUILD_ID)
        assert session is not None
        assert session.state is SessionState.PLAYING
        assert fake_transport.leaves == 0

    @pytest.mark.asyncio
    async def test_restart_failure_tears_down(
        self, session_manager, episode, fake_transcoder, spawn_failure
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        fake_transcoder.spawn_error = spawn_failure

        with pytest.raises(ProcessSpawnError):
            await session_manager.seek(GUILD_ID, 50_000)

        assert session_manager.has_session(GUILD_ID) is False
        assert fake_transcoder.alive == []


# =============================================================================
# Skip
# =============================================================================


class TestSkip:
    @pytest.mark.asyncio
    async def test_skip_to_next_episode(
        self, session_manager, episode, resume_store, fake_transcoder, clock
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        clock.advance(50_000)

        result = await session_manager.skip(GUILD_ID)

        assert result.status is ControlStatus.OK
        assert result.media.media_id == "102"
        assert session_manager.get_session(GUILD_ID).media.media_id == "102"
        assert fake_transcoder.last_options.start_offset_ms == 0
        assert await resume_store.get(episode.resume_key) == 50_000
        assert fake_transcoder.max_alive == 1

    @pytest.mark.asyncio
    async def test_skip_resumes_next_episode_from_saved_position(
        self, session_manager, episode, resume_store, fake_transcoder
    ):
        await resume_store.put(make_episode("102", 2).resume_key, 90_000)
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        await session_manager.skip(GUILD_ID)

        assert fake_transcoder.last_options.start_offset_ms == 90_000

    @pytest.mark.asyncio
    async def test_skip_on_last_episode(self, session_manager):
        await session_manager.start(GUILD_ID, CHANNEL_ID, make_episode("103", 3))

        result = await session_manager.skip(GUILD_ID)

        assert result.status is ControlStatus.NO_NEXT_ITEM
        assert session_manager.get_session(GUILD_ID).media.media_id == "103"

    @pytest.mark.asyncio
    async def test_movie_is_not_skippable(self, session_manager, movie):
        await session_manager.start(GUILD_ID, CHANNEL_ID, movie)

        result = await session_manager.skip(GUILD_ID)

        assert result.status is ControlStatus.NOT_SKIPPABLE


# =============================================================================
# Kill Grace Delay
# =============================================================================


class TestKillGrace:
    GRACE = 0.5

    @pytest.fixture
    def playback_settings(self):
        from discord_media_streamer.config.settings import PlaybackSettings

        return PlaybackSettings(kill_grace_seconds=self.GRACE)

    @pytest.fixture(autouse=True)
    def recorded_sleeps(self, monkeypatch, events):
        real_sleep = asyncio.sleep

        async def recording_sleep(delay, result=None):
            if delay:
                events.append(f"sleep:{delay}")
            return await real_sleep(0, result)

        monkeypatch.setattr(asyncio, "sleep", recording_sleep)

    @pytest.mark.asyncio
    async def test_first_start_does_not_wait(self, session_manager, episode, events):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        assert events[0] == "acquire:101"
        assert f"sleep:{self.GRACE}" not in events

    @pytest.mark.asyncio
    async def test_replacing_start_waits_between_kill_and_acquire(
        self, session_manager, episode, movie, fake_transcoder, events
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        old_pid = fake_transcoder.handles[0].pid
        events.clear()

        await session_manager.start(GUILD_ID, CHANNEL_ID, movie)

        assert events[:3] == [f"kill:{old_pid}", f"sleep:{self.GRACE}", "acquire:501"]

    @pytest.mark.asyncio
    async def test_stop_during_grace_wins(self, session_manager, episode, movie, fake_transcoder):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)

        replacing = asyncio.create_task(session_manager.start(GUILD_ID, CHANNEL_ID, movie))
        await asyncio.sleep(0)
        stopped = await session_manager.stop(GUILD_ID)
        await replacing

        assert stopped.status is ControlStatus.OK
        assert not session_manager.has_session(GUILD_ID)
        assert fake_transcoder.alive == []

    @pytest.mark.asyncio
    async def test_resume_waits_after_pause_kill(
        self, session_manager, episode, fake_transcoder, events, clock
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        pid = fake_transcoder.handles[0].pid
        clock.advance(45_000)
        events.clear()

        await session_manager.pause(GUILD_ID)
        await session_manager.resume(GUILD_ID)

        assert events[:3] == [f"kill:{pid}", f"sleep:{self.GRACE}", "acquire:101"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("operation", "acquired"),
        [
            (lambda manager: manager.seek(GUILD_ID, 120_000), "acquire:101"),
            (lambda manager: manager.set_volume(GUILD_ID, 150), "acquire:101"),
            (lambda manager: manager.skip(GUILD_ID), "acquire:102"),
        ],
        ids=["seek", "volume", "skip"],
    )
    async def test_restart_waits_between_kill_and_acquire(
        self, session_manager, episode, fake_transcoder, events, operation, acquired
    ):
        await session_manager.start(GUILD_ID, CHANNEL_ID, episode)
        pid = fake_transcoder.handles[0].pid
        events.clear()

        result = await operation(session_manager)

        assert result.status is ControlStatus.OK
        assert events[:3] == [f"kill:{pid}", f"sleep:{self.GRACE}", acquired]
        assert fake_transcoder.max_alive == 1
