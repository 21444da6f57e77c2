"""Dependency Injection Container

Manages the application's dependency graph, providing lazy initialization
and lifecycle management for the database, repositories, upstream adapters and
the playback session manager. Components are created on first access and
cached for the lifetime of the process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..domain.shared.messages import LogTemplates

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from discord.ext.commands import Bot

    from ..application.interfaces.media_backend import MediaBackend
    from ..application.interfaces.media_resolver import MediaResolver
    from ..application.interfaces.source_coordinator import CoordinatorFactory
    from ..application.interfaces.stream_transport import StreamTransport
    from ..application.interfaces.transcoder import Transcoder
    from ..application.services.playback_session_manager import PlaybackSessionManager
    from ..application.services.remote_session import OrphanRecoveryStats
    from ..application.services.resume_store import ResumeStore
    from ..application.services.session_registry import SessionRegistry
    from ..domain.playback.repository import (
        BackendSessionRepository,
        ResumePositionRepository,
    )
    from ..infrastructure.persistence.database import Database
    from .settings import Settings


@dataclass
class Container:
    """Dependency injection container.

    Components are lazily initialized when first accessed. The stream
    transport needs the bot, so :meth:`set_bot` must be called before the
    transport or the session manager is touched.
    """

    settings: Settings
    _bot: Bot | None = None

    # Persistence layer
    _database: Database | None = None
    _resume_repository: ResumePositionRepository | None = None
    _backend_session_repository: BackendSessionRepository | None = None

    # Infrastructure adapters
    _media_backend: MediaBackend | None = None
    _media_resolver: MediaResolver | None = None
    _transcoder: Transcoder | None = None
    _transport: StreamTransport | None = None

    # Application services
    _resume_store: ResumeStore | None = None
    _session_registry: SessionRegistry | None = None
    _coordinator_factory: CoordinatorFactory | None = None
    _session_manager: PlaybackSessionManager | None = None

    def set_bot(self, bot: Bot) -> None:
        self._bot = bot

    @property
    def bot(self) -> Bot:
        if self._bot is None:
            raise RuntimeError("Bot not set. Call set_bot() first.")
        return self._bot

    # === Persistence ===

    @property
    def database(self) -> Database:
        if self._database is None:
            from ..infrastructure.persistence.database import Database

            self._database = Database(self.settings.database.url, settings=self.settings.database)
        return self._database

    @property
    def resume_repository(self) -> ResumePositionRepository:
        if self._resume_repository is None:
            from ..infrastructure.persistence.repositories.resume_repository import (
                SQLiteResumeRepository,
            )

            self._resume_repository = SQLiteResumeRepository(self.database)
        return self._resume_repository

    @property
    def backend_session_repository(self) -> BackendSessionRepository:
        """The durable ledger of backend session ids that may still be open."""
        if self._backend_session_repository is None:
            from ..infrastructure.persistence.repositories.backend_session_repository import (
                SQLiteBackendSessionRepository,
            )

            self._backend_session_repository = SQLiteBackendSessionRepository(self.database)
        return self._backend_session_repository

    # === Infrastructure Adapters ===

    @property
    def media_backend(self) -> MediaBackend:
        if self._media_backend is None:
            from ..infrastructure.plex.client import PlexMediaBackend

            self._media_backend = PlexMediaBackend(self.settings.plex)
        return self._media_backend

    @property
    def media_resolver(self) -> MediaResolver:
        if self._media_resolver is None:
            from ..infrastructure.media.ytdlp_resolver import YtDlpMediaResolver

            self._media_resolver = YtDlpMediaResolver(self.settings.stream)
        return self._media_resolver

    @property
    def transcoder(self) -> Transcoder:
        if self._transcoder is None:
            from ..infrastructure.media.ffmpeg_supervisor import FFmpegSupervisor

            self._transcoder = FFmpegSupervisor(self.settings.stream)
        return self._transcoder

    @property
    def transport(self) -> StreamTransport:
        if self._transport is None:
            from ..infrastructure.discord.adapters.stream_transport import (
                DiscordStreamTransport,
            )

            self._transport = DiscordStreamTransport(self.bot, self.settings.discord)
        return self._transport

    # === Application Services ===

    @property
    def resume_store(self) -> ResumeStore:
        if self._resume_store is None:
            from ..application.services.resume_store import ResumeStore

            self._resume_store = ResumeStore(self.resume_repository, self.settings.playback)
        return self._resume_store

    @property
    def session_registry(self) -> SessionRegistry:
        if self._session_registry is None:
            from ..application.services.session_registry import SessionRegistry

            self._session_registry = SessionRegistry()
        return self._session_registry

    @property
    def coordinator_factory(self) -> CoordinatorFactory:
        if self._coordinator_factory is None:
            from ..application.services.remote_session import DefaultCoordinatorFactory

            self._coordinator_factory = DefaultCoordinatorFactory(
                backend=self.media_backend,
                ledger=self.backend_session_repository,
                resolver=self.media_resolver,
            )
        return self._coordinator_factory

    @property
    def session_manager(self) -> PlaybackSessionManager:
        if self._session_manager is None:
            from ..application.services.playback_session_manager import (
                PlaybackSessionManager,
            )

            self._session_manager = PlaybackSessionManager(
                registry=self.session_registry,
                resume_store=self.resume_store,
                transcoder=self.transcoder,
                transport=self.transport,
                coordinator_factory=self.coordinator_factory,
                media_backend=self.media_backend,
                playback_settings=self.settings.playback,
                stream_settings=self.settings.stream,
            )
        return self._session_manager

    # === Lifecycle ===

    async def initialize(self) -> OrphanRecoveryStats:
        """Open the database, load saved positions and clean up after a crash."""
        from ..application.services.remote_session import recover_orphans

        await self.database.initialize()
        await self.resume_store.load()
        stats = await recover_orphans(self.media_backend, self.backend_session_repository)
        logger.info(LogTemplates.CONTAINER_INITIALIZED)
        return stats

    async def shutdown(self) -> None:
        """Shutdown and cleanup all resources."""
        if self._session_manager is not None:
            try:
                await self._session_manager.stop_all()
            except Exception as exc:
                logger.warning("Failed stopping playback sessions: %r", exc)

        if self._transcoder is not None:
            await self._transcoder.kill_all()

        if self._media_backend is not None:
            try:
                await self._media_backend.aclose()
            except Exception as exc:
                logger.warning("Failed closing media backend client: %r", exc)

        if self._database is not None:
            await self._database.close()

        logger.info(LogTemplates.CONTAINER_SHUTDOWN)


def create_container(settings: Settings) -> Container:
    """Create a new dependency injection container."""
    return Container(settings)
