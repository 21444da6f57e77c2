"""Resume Store - remembers where each media item was left off.

All entries are loaded into memory once at startup; every mutation is written
through to the repository before the call returns, so a crash right after a
stop does not lose the position. Storage failures are logged and never
propagate into playback.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from ...domain.playback.entities import ResumeEntry
from ...domain.shared.constants import PlaybackDefaults
from ...domain.shared.datetime_utils import format_position, utcnow
from ...domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ...config.settings import PlaybackSettings
    from ...domain.playback.repository import ResumePositionRepository

logger = logging.getLogger(__name__)


class ResumeStore:
    def __init__(
        self,
        repository: ResumePositionRepository,
        settings: PlaybackSettings | None = None,
        *,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._entries: dict[str, ResumeEntry] = {}
        self._now = now
        self._min_position_ms = (
            settings.resume_min_position_ms if settings else PlaybackDefaults.RESUME_MIN_POSITION_MS
        )
        self._ttl = timedelta(
            days=settings.resume_ttl_days if settings else PlaybackDefaults.RESUME_TTL_DAYS
        )

    @property
    def min_position_ms(self) -> int:
        return self._min_position_ms

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, resume_key: object) -> bool:
        return resume_key in self._entries

    async def load(self) -> int:
        """Load every stored entry, dropping expired ones.

        Returns:
            Number of live entries loaded.
        """
        try:
            entries = await self._repository.load_all()
        except Exception as exc:
            logger.warning(LogTemplates.RESUME_LOAD_FAILED, exc)
            self._entries = {}
            return 0

        now = self._now()
        self._entries = {e.resume_key: e for e in entries if not e.is_expired(self._ttl, now)}
        pruned = len(entries) - len(self._entries)
        if pruned:
            await self._delete_expired_rows(now)
        logger.info(LogTemplates.RESUME_LOADED, len(self._entries), pruned)
        return len(self._entries)

    async def get(self, resume_key: str) -> int | None:
        entry = await self.get_entry(resume_key)
        return entry.position_ms if entry else None

    async def get_entry(self, resume_key: str) -> ResumeEntry | None:
        entry = self._entries.get(resume_key)
        if entry is None:
            return None
        if entry.is_expired(self._ttl, self._now()):
            await self.clear(resume_key)
            return None
        return entry

    async def put(self, resume_key: str, position_ms: int, label: str = "") -> bool:
        """Save ``position_ms`` for ``resume_key``.

        Positions below the minimum are ignored and leave any earlier entry
        untouched.

        Returns:
            True if the entry was stored.
        """
        if position_ms < self._min_position_ms:
            logger.debug(LogTemplates.RESUME_BELOW_MINIMUM, resume_key, position_ms)
            return False

        entry = ResumeEntry(
            resume_key=resume_key,
            position_ms=position_ms,
            label=label,
            updated_at=self._now(),
        )
        self._entries[resume_key] = entry
        try:
            await self._repository.upsert(entry)
        except Exception as exc:
            logger.warning(LogTemplates.RESUME_WRITE_FAILED, resume_key, exc)
            return False

        logger.info(LogTemplates.RESUME_SAVED, label or resume_key, format_position(position_ms))
        return True

    async def clear(self, resume_key: str) -> bool:
        existed = self._entries.pop(resume_key, None) is not None
        try:
            await self._repository.delete(resume_key)
        except Exception as exc:
            logger.warning(LogTemplates.RESUME_WRITE_FAILED, resume_key, exc)
            return existed

        if existed:
            logger.info(LogTemplates.RESUME_CLEARED, resume_key)
        return existed

    async def prune(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of in-memory entries removed.
        """
        now = self._now()
        expired = [k for k, e in self._entries.items() if e.is_expired(self._ttl, now)]
        for key in expired:
            del self._entries[key]
        await self._delete_expired_rows(now)
        return len(expired)

    def entries(self) -> list[ResumeEntry]:
        return sorted(self._entries.values(), key=lambda e: e.updated_at, reverse=True)

    async def _delete_expired_rows(self, now: datetime) -> None:
        try:
            await self._repository.delete_older_than(now - self._ttl)
        except Exception as exc:
            logger.warning(LogTemplates.RESUME_WRITE_FAILED, "expired entries", exc)
