"""Playback Session Manager - one state machine per destination.

Every control operation that changes what is being published (resume, seek,
volume, skip) restarts the pipeline: the current transcoder is killed and
confirmed dead, the source is re-acquired, and a new transcoder is spawned at
the target position. Operations on a destination are serialized by a
per-destination lock. ``stop`` and a pre-empting ``start`` bump the session's
generation *before* waiting for that lock so any in-flight restart notices it
has been superseded and backs off; whoever superseded it tears it down.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ...config.settings import PlaybackSettings, StreamSettings
from ...domain.playback.clock import Clock, MonotonicClock
from ...domain.playback.entities import (
    MediaHandle,
    PlaybackProgress,
    PlaybackSession,
    TranscodeOptions,
)
from ...domain.playback.value_objects import AdjacentDirection, ExitKind, SessionState
from ...domain.shared.constants import PlaybackDefaults, StreamDefaults
from ...domain.shared.datetime_utils import format_position
from ...domain.shared.exceptions import ProcessAbnormalExitError
from ...domain.shared.messages import LogTemplates
from ...domain.shared.types import ChannelIdField, DestinationIdField
from .playback_models import ControlResult, ControlStatus

if TYPE_CHECKING:
    from ..interfaces.media_backend import MediaBackend
    from ..interfaces.source_coordinator import CoordinatorFactory
    from ..interfaces.stream_transport import StreamTransport
    from ..interfaces.transcoder import Transcoder
    from .resume_store import ResumeStore
    from .session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class _SupersededError(Exception):
    """The pipeline generation an operation was working on is no longer current."""


class PlaybackSessionManager:
    def __init__(
        self,
        *,
        registry: SessionRegistry,
        resume_store: ResumeStore,
        transcoder: Transcoder,
        transport: StreamTransport,
        coordinator_factory: CoordinatorFactory,
        media_backend: MediaBackend,
        playback_settings: PlaybackSettings | None = None,
        stream_settings: StreamSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._resume = resume_store
        self._transcoder = transcoder
        self._transport = transport
        self._coordinators = coordinator_factory
        self._media_backend = media_backend
        self._playback = playback_settings or PlaybackSettings()
        self._stream = stream_settings or StreamSettings()
        self._clock: Clock = clock or MonotonicClock()
        self._locks: dict[DestinationIdField, asyncio.Lock] = {}

    def _lock_for(self, destination_id: DestinationIdField) -> asyncio.Lock:
        lock = self._locks.get(destination_id)
        if lock is None:
            lock = self._locks[destination_id] = asyncio.Lock()
        return lock

    # ── Queries ─────────────────────────────────────────────────────

    def get_session(self, destination_id: DestinationIdField) -> PlaybackSession | None:
        return self._registry.get(destination_id)

    def get_progress(self, destination_id: DestinationIdField) -> PlaybackProgress:
        session = self._registry.get(destination_id)
        if session is None:
            return PlaybackProgress.empty()
        return session.progress_at(self._clock.now_ms())

    def has_session(self, destination_id: DestinationIdField) -> bool:
        return self._registry.get(destination_id) is not None

    # ── Start / stop ────────────────────────────────────────────────

    async def start(
        self,
        destination_id: DestinationIdField,
        channel_id: ChannelIdField,
        media: MediaHandle,
        *,
        start_offset_ms: int | None = None,
    ) -> PlaybackSession:
        """Start ``media`` in ``channel_id``, replacing any existing session.

        Without an explicit ``start_offset_ms`` playback resumes from the
        saved position, if any.

        If a later ``stop`` or ``start`` supersedes this call before the
        pipeline is up, the returned session is the abandoned one and is torn
        down by the superseding call.

        Raises:
            UpstreamUnavailableError, NotPlayableError, ProcessSpawnError,
            TransportError: The session could not be started; nothing is left
            registered.
        """
        previous = self._registry.get(destination_id)
        if previous is not None:
            previous.supersede()

        async with self._lock_for(destination_id):
            previous = self._registry.get(destination_id)
            replaced = previous is not None
            if previous is not None:
                logger.info(LogTemplates.SESSION_REPLACED, destination_id)
                await self._teardown(previous, leave=False)

            if start_offset_ms is None:
                offset = await self._saved_position(media)
            else:
                offset = start_offset_ms

            session = PlaybackSession(
                destination_id=destination_id,
                channel_id=channel_id,
                media=media,
                volume_percent=self._playback.default_volume_percent,
            )
            session.coordinator = self._coordinators.create(media)
            session.transition_to(SessionState.STARTING)
            session.anchor(offset, self._clock.now_ms())
            self._registry.put(session)
            token = session.generation

            logger.info(
                LogTemplates.SESSION_STARTING,
                media.display_title,
                destination_id,
                format_position(session.base_position_ms),
            )
            try:
                if replaced:
                    await self._kill_grace()
                    self._check_current(session, token)
                await self._transport.join(destination_id, channel_id)
                self._check_current(session, token)
                await self._launch(session, token, session.base_position_ms)
            except _SupersededError:
                logger.info(LogTemplates.SESSION_SUPERSEDED, "start", destination_id)
                return session
            except Exception as exc:
                logger.warning(LogTemplates.SESSION_START_FAILED, destination_id, exc)
                await self._teardown(session)
                raise

            logger.info(LogTemplates.SESSION_STARTED, media.display_title, destination_id)
            return session

    async def stop(self, destination_id: DestinationIdField) -> ControlResult:
        """Stop playback and leave the channel. Stopping twice is harmless."""
        session = self._registry.get(destination_id)
        if session is None:
            return ControlResult.no_active_session()
        session.supersede()

        async with self._lock_for(destination_id):
            session = self._registry.get(destination_id)
            if session is None:
                return ControlResult.no_active_session()
            position = await self._teardown(session)
            return ControlResult.ok(position, session.media)

    async def stop_all(self) -> int:
        stopped = 0
        for destination_id in self._registry.destinations():
            result = await self.stop(destination_id)
            if result.status is ControlStatus.OK:
                stopped += 1
        return stopped

    # ── Pause / resume ──────────────────────────────────────────────

    async def pause(self, destination_id: DestinationIdField) -> ControlResult:
        async with self._lock_for(destination_id):
            session = self._registry.get(destination_id)
            if session is None:
                return ControlResult.no_active_session()
            if session.is_transitioning:
                return ControlResult(status=ControlStatus.SUPERSEDED)

            now = self._clock.now_ms()
            if session.is_paused:
                return ControlResult.no_op(session.position_at(now))

            session.supersede()
            position = session.freeze(now)
            session.transition_to(SessionState.TRANSITIONING)
            await self._halt_pipeline(session)
            await self._persist_position(session, position)
            session.transition_to(SessionState.PAUSED)

            logger.info(LogTemplates.SESSION_PAUSED, destination_id, format_position(position))
            return ControlResult.ok(position, session.media)

    async def resume(self, destination_id: DestinationIdField) -> ControlResult:
        async with self._lock_for(destination_id):
            session = self._registry.get(destination_id)
            if session is None:
                return ControlResult.no_active_session()
            if session.is_transitioning:
                return ControlResult(status=ControlStatus.SUPERSEDED)
            if not session.is_paused:
                return ControlResult.no_op(session.position_at(self._clock.now_ms()))

            logger.info(
                LogTemplates.SESSION_RESUMED,
                destination_id,
                format_position(session.base_position_ms),
            )
            return await self._restart(
                session, session.base_position_ms, SessionState.TRANSITIONING, "resume"
            )

    async def toggle_pause(self, destination_id: DestinationIdField) -> ControlResult:
        session = self._registry.get(destination_id)
        if session is None:
            return ControlResult.no_active_session()
        if session.is_paused:
            return await self.resume(destination_id)
        return await self.pause(destination_id)

    # ── Seeking ─────────────────────────────────────────────────────

    async def seek(self, destination_id: DestinationIdField, position_ms: int) -> ControlResult:
        """Jump to ``position_ms``. Seeking while paused resumes playback."""
        return await self._seek(destination_id, lambda _current: position_ms)

    async def fast_forward(
        self, destination_id: DestinationIdField, delta_ms: int | None = None
    ) -> ControlResult:
        delta = self._playback.default_skip_ms if delta_ms is None else delta_ms
        return await self._seek(destination_id, lambda current: current + delta)

    async def rewind(
        self, destination_id: DestinationIdField, delta_ms: int | None = None
    ) -> ControlResult:
        delta = self._playback.default_skip_ms if delta_ms is None else delta_ms
        return await self._seek(destination_id, lambda current: current - delta)

    async def _seek(
        self, destination_id: DestinationIdField, target_from: Callable[[int], int]
    ) -> ControlResult:
        async with self._lock_for(destination_id):
            session = self._registry.get(destination_id)
            if session is None:
                return ControlResult.no_active_session()
            if session.is_transitioning:
                return ControlResult(status=ControlStatus.SUPERSEDED)

            current = session.position_at(self._clock.now_ms())
            target = session.clamp(target_from(current))
            logger.info(LogTemplates.SESSION_SEEKING, destination_id, format_position(target))
            return await self._restart(session, target, SessionState.SEEKING, "seek")

    # ── Volume ──────────────────────────────────────────────────────

    async def set_volume(self, destination_id: DestinationIdField, percent: int) -> ControlResult:
        """Set output gain. Takes effect immediately unless paused."""
        percent = max(
            PlaybackDefaults.MIN_VOLUME_PERCENT, min(PlaybackDefaults.MAX_VOLUME_PERCENT, percent)
        )
        async with self._lock_for(destination_id):
            session = self._registry.get(destination_id)
            if session is None:
                return ControlResult.no_active_session()
            if session.is_transitioning:
                return ControlResult(status=ControlStatus.SUPERSEDED)

            position = session.position_at(self._clock.now_ms())
            if percent == session.volume_percent:
                return ControlResult.no_op(position)

            session.volume_percent = percent
            logger.info(LogTemplates.SESSION_VOLUME, destination_id, percent)
            if session.is_paused:
                return ControlResult.ok(position, session.media)
            return await self._restart(session, position, SessionState.TRANSITIONING, "volume")

    # ── Skip ────────────────────────────────────────────────────────

    async def skip(self, destination_id: DestinationIdField) -> ControlResult:
        """Advance to the next episode of the current series."""
        async with self._lock_for(destination_id):
            session = self._registry.get(destination_id)
            if session is None:
                return ControlResult.no_active_session()
            if session.is_transitioning:
                return ControlResult(status=ControlStatus.SUPERSEDED)
            if not session.media.is_episodic:
                return ControlResult(status=ControlStatus.NOT_SKIPPABLE)

            next_media = await self._media_backend.get_adjacent_item(
                session.media.media_id, AdjacentDirection.NEXT
            )
            if next_media is None:
                return ControlResult(status=ControlStatus.NO_NEXT_ITEM)

            position = session.position_at(self._clock.now_ms())
            await self._persist_position(session, position)
            logger.info(
                LogTemplates.SESSION_SKIPPING,
                destination_id,
                session.media.display_title,
                next_media.display_title,
            )

            session.supersede()
            session.load_media(next_media)
            offset = await self._saved_position(next_media)
            return await self._restart(session, offset, SessionState.TRANSITIONING, "skip")

    # ── Pipeline plumbing ───────────────────────────────────────────

    async def _restart(
        self,
        session: PlaybackSession,
        position_ms: int,
        transient: SessionState,
        operation: str,
    ) -> ControlResult:
        """Replace the running pipeline with one starting at ``position_ms``.

        Must be called with the destination lock held.
        """
        token = session.supersede()
        session.transition_to(transient)
        session.anchor(position_ms, self._clock.now_ms())

        await self._halt_pipeline(session)
        await self._kill_grace()

        try:
            self._check_current(session, token)
            await self._launch(session, token, session.base_position_ms)
        except _SupersededError:
            logger.info(LogTemplates.SESSION_SUPERSEDED, operation, session.destination_id)
            return ControlResult(status=ControlStatus.SUPERSEDED)
        except Exception as exc:
            logger.warning(LogTemplates.SESSION_RESTART_FAILED, session.destination_id, exc)
            await self._teardown(session)
            raise

        return ControlResult.ok(session.base_position_ms, session.media)

    async def _launch(self, session: PlaybackSession, token: int, position_ms: int) -> None:
        """Acquire, spawn and publish; leaves the session PLAYING."""
        source = await session.coordinator.acquire(session.media)
        self._check_current(session, token)

        options = self._transcode_options(session, position_ms)
        handle = await self._transcoder.spawn(source, options)
        session.process = handle
        self._check_current(session, token)

        handle.on_first_byte(self._first_byte_callback(session, token))
        session.source = source
        # Anchored when the spawn is issued, so the clock runs slightly ahead
        # of real output by the pipeline's startup latency.
        session.anchor(position_ms, self._clock.now_ms())
        await self._transport.publish(
            session.destination_id,
            handle.stdout,
            options.mode,
            functools.partial(self._on_publish_finished, session, token),
        )
        self._check_current(session, token)
        session.transition_to(SessionState.PLAYING)

    async def _kill_grace(self) -> None:
        # Separates a kill from the next acquire.
        if self._playback.kill_grace_seconds > 0:
            await asyncio.sleep(self._playback.kill_grace_seconds)

    async def _halt_pipeline(self, session: PlaybackSession) -> None:
        handle, session.process = session.process, None
        if handle is not None:
            await self._transcoder.kill(handle)
        try:
            await self._transport.stop(session.destination_id)
        except Exception as exc:
            logger.warning(LogTemplates.TRANSPORT_STOP_FAILED, session.destination_id, exc)

    async def _teardown(
        self,
        session: PlaybackSession,
        *,
        natural_end: bool = False,
        leave: bool = True,
    ) -> int:
        """Kill, release, persist, leave and unregister. Returns the final position."""
        session.supersede()
        position = session.freeze(self._clock.now_ms())

        await self._halt_pipeline(session)
        if session.coordinator is not None:
            await session.coordinator.release()
        await self._persist_position(session, position, natural_end=natural_end)

        if leave:
            try:
                await self._transport.leave(session.destination_id)
            except Exception as exc:
                logger.warning(LogTemplates.TRANSPORT_LEAVE_FAILED, session.destination_id, exc)

        session.state = SessionState.STOPPED
        self._registry.remove(session)
        logger.info(LogTemplates.SESSION_STOPPED, session.destination_id)
        return position

    async def _on_publish_finished(
        self, session: PlaybackSession, token: int, error: Exception | None
    ) -> None:
        if error is not None:
            logger.warning(LogTemplates.VOICE_PUBLISH_ERROR, session.destination_id, error)
        if not self._is_live(session, token):
            logger.debug(LogTemplates.SESSION_STALE_FINISH, session.destination_id, token)
            return

        async with self._lock_for(session.destination_id):
            if not self._is_live(session, token) or not session.is_playing:
                logger.debug(LogTemplates.SESSION_STALE_FINISH, session.destination_id, token)
                return

            kind = ExitKind.CLEAN
            handle = session.process
            if handle is not None:
                await self._transcoder.wait(handle, timeout=StreamDefaults.REAP_TIMEOUT_SECONDS)
                kind = self._transcoder.classify_exit(handle)
                if kind is ExitKind.ABNORMAL:
                    failure = ProcessAbnormalExitError(handle.returncode, handle.stderr_tail)
                    logger.error(
                        LogTemplates.FFMPEG_ABNORMAL_EXIT,
                        failure.exit_code,
                        session.destination_id,
                        "\n".join(failure.stderr_tail),
                    )

            logger.info(
                LogTemplates.SESSION_FINISHED,
                session.media.display_title,
                session.destination_id,
                kind.value,
            )
            await self._teardown(session, natural_end=kind is ExitKind.CLEAN and error is None)

    def _first_byte_callback(self, session: PlaybackSession, token: int) -> Callable[[], None]:
        loop = asyncio.get_running_loop()

        def mark() -> None:
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is loop:
                self._mark_publishing(session, token)
            else:
                loop.call_soon_threadsafe(self._mark_publishing, session, token)

        return mark

    def _mark_publishing(self, session: PlaybackSession, token: int) -> None:
        if session.generation == token:
            session.has_started_publishing = True

    async def _persist_position(
        self, session: PlaybackSession, position_ms: int, *, natural_end: bool = False
    ) -> None:
        if not session.has_started_publishing:
            return
        media = session.media
        if (
            natural_end
            and media.duration_ms > 0
            and position_ms >= media.duration_ms - self._resume.min_position_ms
        ):
            await self._resume.clear(media.resume_key)
            return
        await self._resume.put(media.resume_key, position_ms, media.display_title)

    async def _saved_position(self, media: MediaHandle) -> int:
        saved = await self._resume.get(media.resume_key)
        return saved or 0

    def _transcode_options(self, session: PlaybackSession, position_ms: int) -> TranscodeOptions:
        stream = self._stream
        return TranscodeOptions(
            mode=stream.mode,
            target_height=stream.default_height,
            target_width=stream.default_width,
            frame_rate=stream.frame_rate,
            video_bitrate_kbps=stream.max_bitrate_kbps,
            audio_bitrate_kbps=stream.audio_bitrate_kbps,
            volume_percent=session.volume_percent,
            start_offset_ms=position_ms,
        )

    def _is_live(self, session: PlaybackSession, token: int) -> bool:
        return session.generation == token and self._registry.is_current(session)

    def _check_current(self, session: PlaybackSession, token: int) -> None:
        if not self._is_live(session, token):
            raise _SupersededError
