import asyncio
import io
import itertools

import pytest
import pytest_asyncio

from discord_media_streamer.application.interfaces.media_backend import MediaBackend
from discord_media_streamer.application.interfaces.media_resolver import MediaResolver
from discord_media_streamer.application.interfaces.stream_transport import StreamTransport
from discord_media_streamer.application.interfaces.transcoder import (
    ProcessHandle,
    PublishStream,
    Transcoder,
)
from discord_media_streamer.domain.playback.entities import (
    ExternalMediaInfo,
    MediaHandle,
    PlayableSource,
)
from discord_media_streamer.domain.playback.value_objects import MediaKind, MediaType
from discord_media_streamer.domain.shared.constants import StreamDefaults
from discord_media_streamer.domain.shared.exceptions import (
    ProcessSpawnError,
    UpstreamUnavailableError,
)

GUILD_ID = 111111111111
CHANNEL_ID = 222222222222

# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def in_memory_database():
    """Create an in-memory SQLite database for testing."""
    from discord_media_streamer.infrastructure.persistence.database import Database

    db = Database(":memory:")
    await db.initialize()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def resume_repository(in_memory_database):
    from discord_media_streamer.infrastructure.persistence.repositories.resume_repository import (
        SQLiteResumeRepository,
    )

    return SQLiteResumeRepository(in_memory_database)


@pytest_asyncio.fixture
async def ledger(in_memory_database):
    from discord_media_streamer.infrastructure.persistence.repositories.backend_session_repository import (
        SQLiteBackendSessionRepository,
    )

    return SQLiteBackendSessionRepository(in_memory_database)


# ============================================================================
# Media Fixtures
# ============================================================================


def make_episode(media_id: str, index: int, *, duration_ms: int = 2_700_000) -> MediaHandle:
    return MediaHandle(
        media_id=media_id,
        kind=MediaKind.LIBRARY,
        media_type=MediaType.EPISODE,
        title=f"Episode {index}",
        duration_ms=duration_ms,
        series_title="Test Show",
        season_number=1,
        episode_number=index,
    )


@pytest.fixture
def episode():
    return make_episode("101", 1)


@pytest.fixture
def movie():
    return MediaHandle(
        media_id="501",
        kind=MediaKind.LIBRARY,
        media_type=MediaType.MOVIE,
        title="Test Movie",
        duration_ms=5_400_000,
    )


# ============================================================================
# Fakes
# ============================================================================


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start_ms: int = 1_000_000) -> None:
        self.now = start_ms

    def now_ms(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeProcess:
    _pids = itertools.count(4000)

    def __init__(self) -> None:
        self.pid = next(self._pids)
        self.returncode: int | None = None
        self.kill_calls = 0

    def poll(self) -> int | None:
        return self.returncode

    def kill(self) -> None:
        self.kill_calls += 1
        if self.returncode is None:
            self.returncode = -9

    def wait(self, timeout: float | None = None) -> int | None:
        return self.returncode


class FakeTranscoder(Transcoder):
    """Records spawns and kills; never more than one live process expected."""

    def __init__(self, events: list[str]) -> None:
        self.events = events
        self.handles: list[ProcessHandle] = []
        self.max_alive = 0
        self.spawn_error: Exception | None = None

    @property
    def alive(self) -> list[ProcessHandle]:
        return [h for h in self.handles if h.is_running]

    @property
    def last_options(self):
        return self.handles[-1].options

    async def spawn(self, source: PlayableSource, options) -> ProcessHandle:
        if self.spawn_error is not None:
            raise self.spawn_error
        payload = b"\x00" * (StreamDefaults.PCM_FRAME_BYTES * 4)
        handle = ProcessHandle(
            process=FakeProcess(),
            stdout=PublishStream(io.BytesIO(payload)),
            options=options,
        )
        self.handles.append(handle)
        self.max_alive = max(self.max_alive, len(self.alive))
        self.events.append(f"spawn:{handle.pid}:{options.start_offset_ms}")
        return handle

    async def kill(self, handle: ProcessHandle) -> None:
        handle.killed_by_us = True
        handle.process.kill()
        self.events.append(f"kill:{handle.pid}")

    async def wait(self, handle: ProcessHandle, timeout: float | None = None) -> int | None:
        return handle.process.wait(timeout)

    async def kill_all(self) -> int:
        alive = self.alive
        for handle in alive:
            await self.kill(handle)
        return len(alive)


class FakeTransport(StreamTransport):
    def __init__(self, events: list[str]) -> None:
        self.events = events
        self.joined: list[tuple[int, int]] = []
        self.published: list[tuple[int, PublishStream, object, object]] = []
        self.stops = 0
        self.leaves = 0
        self.join_error: Exception | None = None
        self.consume = True

    async def join(self, destination_id: int, channel_id: int) -> None:
        # Yield so concurrent callers interleave the way a network join would.
        await asyncio.sleep(0)
        if self.join_error is not None:
            raise self.join_error
        self.joined.append((destination_id, channel_id))

    async def publish(self, destination_id, stream, mode, on_finished) -> None:
        self.published.append((destination_id, stream, mode, on_finished))
        self.events.append("publish")
        if self.consume:
            stream.read(StreamDefaults.PCM_FRAME_BYTES)

    async def stop(self, destination_id: int) -> None:
        self.stops += 1

    async def leave(self, destination_id: int) -> None:
        self.leaves += 1
        self.events.append("leave")

    @property
    def last_on_finished(self):
        return self.published[-1][3]


class FakeMediaBackend(MediaBackend):
    def __init__(
        self, items: list[MediaHandle] | None = None, events: list[str] | None = None
    ) -> None:
        self.events = events if events is not None else []
        self.items = {m.media_id: m for m in items or []}
        self.episode_order = [m.media_id for m in items or [] if m.is_episodic]
        self.resolved: list[tuple[str, str]] = []
        self.terminated: list[str] = []
        self.resolve_error: Exception | None = None
        self.failing_terminations: set[str] = set()

    async def resolve_playable(self, media_id: str, session_id: str) -> PlayableSource:
        if self.resolve_error is not None:
            raise self.resolve_error
        self.resolved.append((media_id, session_id))
        self.events.append(f"acquire:{media_id}")
        return PlayableSource(
            url=f"http://plex.test/library/parts/{media_id}/file.mkv",
            session_id=session_id,
        )

    async def terminate_session(self, session_id: str) -> None:
        if session_id in self.failing_terminations:
            raise UpstreamUnavailableError("Plex", "HTTP 500")
        self.terminated.append(session_id)

    async def get_adjacent_item(self, media_id, direction):
        if media_id not in self.episode_order:
            return None
        neighbour = self.episode_order.index(media_id) + direction.step
        if 0 <= neighbour < len(self.episode_order):
            return self.items[self.episode_order[neighbour]]
        return None

    async def get_media(self, media_id: str) -> MediaHandle | None:
        return self.items.get(media_id)


class FakeResolver(MediaResolver):
    def __init__(self) -> None:
        self.calls: list[tuple[str, bool]] = []

    async def resolve_info(self, url: str, *, use_cache: bool = True) -> ExternalMediaInfo:
        self.calls.append((url, use_cache))
        return ExternalMediaInfo(
            title="Clip",
            webpage_url=url,
            direct_media_url=f"{url}/direct.mp4",
            duration_sec=120,
        )


@pytest.fixture
def events():
    return []


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_transcoder(events):
    return FakeTranscoder(events)


@pytest.fixture
def fake_transport(events):
    return FakeTransport(events)


@pytest.fixture
def fake_backend(episode, events):
    return FakeMediaBackend([episode, make_episode("102", 2), make_episode("103", 3)], events)


@pytest.fixture
def fake_resolver():
    return FakeResolver()


@pytest.fixture
def spawn_failure():
    return ProcessSpawnError("ffmpeg", "No such file or directory")


# ============================================================================
# Session Manager Fixtures
# ============================================================================


@pytest.fixture
def playback_settings():
    from discord_media_streamer.config.settings import PlaybackSettings

    return PlaybackSettings(kill_grace_seconds=0.0)


@pytest_asyncio.fixture
async def resume_store(resume_repository, playback_settings):
    from discord_media_streamer.application.services.resume_store import ResumeStore

    store = ResumeStore(resume_repository, playback_settings)
    await store.load()
    return store


@pytest_asyncio.fixture
async def session_manager(
    resume_store,
    ledger,
    fake_transcoder,
    fake_transport,
    fake_backend,
    fake_resolver,
    playback_settings,
    clock,
):
    from discord_media_streamer.application.services.playback_session_manager import (
        PlaybackSessionManager,
    )
    from discord_media_streamer.application.services.remote_session import (
        DefaultCoordinatorFactory,
    )
    from discord_media_streamer.application.services.session_registry import SessionRegistry

    return PlaybackSessionManager(
        registry=SessionRegistry(),
        resume_store=resume_store,
        transcoder=fake_transcoder,
        transport=fake_transport,
        coordinator_factory=DefaultCoordinatorFactory(
            backend=fake_backend, ledger=ledger, resolver=fake_resolver
        ),
        media_backend=fake_backend,
        playback_settings=playback_settings,
        clock=clock,
    )
