"""SQLite ledger of media-backend session ids that may still be open."""

from __future__ import annotations

from typing import TYPE_CHECKING

from discord_media_streamer.domain.playback.repository import BackendSessionRepository
from discord_media_streamer.domain.shared.datetime_utils import UtcDateTime

if TYPE_CHECKING:
    from ..database import Database


class SQLiteBackendSessionRepository(BackendSessionRepository):
    def __init__(self, database: Database) -> None:
        self._db = database

    async def add(self, session_id: str, media_id: str | None = None) -> None:
        await self._db.execute(
            """
            INSERT OR REPLACE INTO backend_sessions (session_id, media_id, created_at)
            VALUES (?, ?, ?)
            """,
            (session_id, media_id, UtcDateTime.now().iso),
        )

    async def remove(self, session_id: str) -> bool:
        deleted = await self._db.execute(
            "DELETE FROM backend_sessions WHERE session_id = ?",
            (session_id,),
        )
        return deleted > 0

    async def list_ids(self) -> list[str]:
        rows = await self._db.fetch_all(
            "SELECT session_id FROM backend_sessions ORDER BY created_at ASC"
        )
        return [row["session_id"] for row in rows]
