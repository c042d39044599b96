"""SQLite implementation of the queue history repository."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from lyre_bot.domain.playback.entities import QueueHistoryEntry
from lyre_bot.domain.playback.repository import QueueHistoryRepository
from lyre_bot.domain.shared.datetime_utils import UtcDateTime
from lyre_bot.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)


class SQLiteQueueHistoryRepository(QueueHistoryRepository):
    def __init__(self, database: Database) -> None:
        self._db = database

    async def record(
        self,
        guild_id: int,
        user_id: str,
        url: str,
        title: str | None,
        duration_seconds: int | None = None,
    ) -> None:
        await self._db.execute(
            """
            INSERT INTO queue_history (guild_id, user_id, url, title, duration, played_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (str(guild_id), user_id, url, title, duration_seconds, UtcDateTime.now().iso),
        )
        logger.debug(LogTemplates.HISTORY_RECORDED, url, guild_id)

    async def get_recent_for_guild(self, guild_id: int, limit: int = 10) -> list[QueueHistoryEntry]:
        rows = await self._db.fetch_all(
            """
            SELECT * FROM queue_history
            WHERE guild_id = ?
            ORDER BY played_at DESC, id DESC
            LIMIT ?
            """,
            (str(guild_id), limit),
        )
        return [self._row_to_entry(row) for row in rows]

    async def get_recent_for_user(self, user_id: str, limit: int = 10) -> list[QueueHistoryEntry]:
        rows = await self._db.fetch_all(
            """
            SELECT * FROM queue_history
            WHERE user_id = ?
            ORDER BY played_at DESC, id DESC
            LIMIT ?
            """,
            (user_id, limit),
        )
        return [self._row_to_entry(row) for row in rows]

    async def cleanup_old(self, older_than: datetime) -> int:
        count = await self._db.execute(
            "DELETE FROM queue_history WHERE played_at < ?",
            (UtcDateTime(older_than).iso,),
        )
        if count > 0:
            logger.info(LogTemplates.HISTORY_OLD_CLEANED, count)
        return count

    def _row_to_entry(self, row: dict[str, Any]) -> QueueHistoryEntry:
        return QueueHistoryEntry.model_validate(
            {
                "id": row["id"],
                "guild_id": int(row["guild_id"]),
                "user_id": row["user_id"],
                "url": row["url"],
                "title": row.get("title"),
                "duration_seconds": row.get("duration"),
                "played_at": UtcDateTime.from_iso(row["played_at"]).dt,
            }
        )
