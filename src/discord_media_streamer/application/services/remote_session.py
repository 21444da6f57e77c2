"""Source coordinators - own the upstream resource behind a session's URL.

Library media is served through a media-backend session: every acquire mints
a fresh session id, records it in a durable ledger *before* talking to the
backend, and the ledger row is only removed once the backend confirms the
session is gone. Ids left in the ledger by a crash are terminated at the next
startup by :func:`recover_orphans`.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING

from pydantic import BaseModel

from ...domain.playback.entities import MediaHandle, PlayableSource
from ...domain.playback.value_objects import MediaKind
from ...domain.shared.exceptions import NotPlayableError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ...domain.shared.types import NonNegativeInt
from ..interfaces.source_coordinator import CoordinatorFactory, SourceCoordinator

if TYPE_CHECKING:
    from ...domain.playback.repository import BackendSessionRepository
    from ..interfaces.media_backend import MediaBackend
    from ..interfaces.media_resolver import MediaResolver

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return uuid.uuid4().hex


class RemoteSessionCoordinator(SourceCoordinator):
    """Acquires and releases media-backend sessions for one playback session."""

    def __init__(
        self,
        backend: MediaBackend,
        ledger: BackendSessionRepository,
        *,
        id_factory: Callable[[], str] = new_session_id,
    ) -> None:
        self._backend = backend
        self._ledger = ledger
        self._id_factory = id_factory
        self._session_id: str | None = None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    async def acquire(self, media: MediaHandle) -> PlayableSource:
        await self.release()

        session_id = self._id_factory()
        try:
            await self._ledger.add(session_id, media.media_id)
        except Exception as exc:
            logger.warning(LogTemplates.LEDGER_WRITE_FAILED, session_id, exc)
        self._session_id = session_id

        try:
            source = await self._backend.resolve_playable(media.media_id, session_id)
        except Exception:
            await self.release()
            raise

        logger.info(LogTemplates.BACKEND_SESSION_ACQUIRED, session_id, media.media_id)
        return source

    async def release(self) -> None:
        session_id = self._session_id
        if session_id is None:
            return
        self._session_id = None

        try:
            await self._backend.terminate_session(session_id)
        except Exception as exc:
            # Row stays in the ledger; the next startup retries it.
            logger.warning(LogTemplates.BACKEND_SESSION_RELEASE_FAILED, session_id, exc)
            return

        try:
            await self._ledger.remove(session_id)
        except Exception as exc:
            logger.warning(LogTemplates.LEDGER_WRITE_FAILED, session_id, exc)
        logger.info(LogTemplates.BACKEND_SESSION_RELEASED, session_id)


class ExternalSourceCoordinator(SourceCoordinator):
    """Serves page URLs through the external resolver. Nothing to release."""

    def __init__(self, resolver: MediaResolver) -> None:
        self._resolver = resolver

    async def acquire(self, media: MediaHandle) -> PlayableSource:
        if not media.source_url:
            raise NotPlayableError(
                media.media_id, ErrorMessages.SOURCE_URL_REQUIRED.format(media_id=media.media_id)
            )
        # Direct URLs expire, so never reuse one across pipeline restarts.
        info = await self._resolver.resolve_info(media.source_url, use_cache=False)
        return PlayableSource(url=info.direct_media_url, audio_url=info.audio_url)

    async def release(self) -> None:
        return None


class DirectUrlCoordinator(SourceCoordinator):
    """Serves a URL ffmpeg can read as-is."""

    async def acquire(self, media: MediaHandle) -> PlayableSource:
        if not media.source_url:
            raise NotPlayableError(
                media.media_id, ErrorMessages.SOURCE_URL_REQUIRED.format(media_id=media.media_id)
            )
        return PlayableSource(url=media.source_url)

    async def release(self) -> None:
        return None


class DefaultCoordinatorFactory(CoordinatorFactory):
    def __init__(
        self,
        *,
        backend: MediaBackend,
        ledger: BackendSessionRepository,
        resolver: MediaResolver,
    ) -> None:
        self._backend = backend
        self._ledger = ledger
        self._resolver = resolver

    def create(self, media: MediaHandle) -> SourceCoordinator:
        if media.kind is MediaKind.LIBRARY:
            return RemoteSessionCoordinator(self._backend, self._ledger)
        if media.kind is MediaKind.EXTERNAL:
            return ExternalSourceCoordinator(self._resolver)
        return DirectUrlCoordinator()


class OrphanRecoveryStats(BaseModel):
    found: NonNegativeInt = 0
    terminated: NonNegativeInt = 0
    failed: NonNegativeInt = 0


async def recover_orphans(
    backend: MediaBackend, ledger: BackendSessionRepository
) -> OrphanRecoveryStats:
    """Terminate every session id a previous run left in the ledger.

    Ids are removed from the ledger whether or not termination succeeded;
    the backend expires them on its own eventually.
    """
    stats = OrphanRecoveryStats()
    try:
        session_ids = await ledger.list_ids()
    except Exception as exc:
        logger.warning(LogTemplates.LEDGER_WRITE_FAILED, "orphan scan", exc)
        return stats

    if not session_ids:
        return stats

    stats.found = len(session_ids)
    logger.info(LogTemplates.ORPHANS_FOUND, stats.found)

    for session_id in session_ids:
        try:
            await backend.terminate_session(session_id)
            stats.terminated += 1
        except Exception as exc:
            stats.failed += 1
            logger.warning(LogTemplates.ORPHAN_TERMINATE_FAILED, session_id, exc)

        try:
            await ledger.remove(session_id)
        except Exception as exc:
            logger.warning(LogTemplates.LEDGER_WRITE_FAILED, session_id, exc)

    logger.info(LogTemplates.ORPHANS_RECOVERED, stats.terminated, stats.failed)
    return stats
