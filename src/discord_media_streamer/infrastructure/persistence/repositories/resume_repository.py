"""SQLite implementation of the resume position repository."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from discord_media_streamer.domain.playback.entities import ResumeEntry
from discord_media_streamer.domain.playback.repository import ResumePositionRepository
from discord_media_streamer.domain.shared.datetime_utils import UtcDateTime

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)


class SQLiteResumeRepository(ResumePositionRepository):
    def __init__(self, database: Database) -> None:
        self._db = database

    async def load_all(self) -> list[ResumeEntry]:
        rows = await self._db.fetch_all(
            "SELECT resume_key, position_ms, label, updated_at FROM resume_positions"
        )
        return [self._row_to_entry(row) for row in rows]

    async def upsert(self, entry: ResumeEntry) -> None:
        await self._db.execute(
            """
            INSERT INTO resume_positions (resume_key, position_ms, label, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(resume_key) DO UPDATE SET
                position_ms = excluded.position_ms,
                label = excluded.label,
                updated_at = excluded.updated_at
            """,
            (
                entry.resume_key,
                entry.position_ms,
                entry.label,
                UtcDateTime(entry.updated_at).iso,
            ),
        )

    async def delete(self, resume_key: str) -> bool:
        deleted = await self._db.execute(
            "DELETE FROM resume_positions WHERE resume_key = ?",
            (resume_key,),
        )
        return deleted > 0

    async def delete_older_than(self, cutoff: datetime) -> int:
        return await self._db.execute(
            "DELETE FROM resume_positions WHERE updated_at < ?",
            (UtcDateTime(cutoff).iso,),
        )

    def _row_to_entry(self, row: dict[str, Any]) -> ResumeEntry:
        return ResumeEntry(
            resume_key=row["resume_key"],
            position_ms=int(row["position_ms"]),
            label=row["label"] or "",
            updated_at=UtcDateTime.from_iso(row["updated_at"]).dt,
        )
