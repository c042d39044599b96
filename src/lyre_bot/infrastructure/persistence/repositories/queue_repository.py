"""SQLite implementation of the queue repository."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

from lyre_bot.domain.playback.entities import QueueEntry
from lyre_bot.domain.playback.repository import QueueRepository
from lyre_bot.domain.shared.constants import QueueLimits
from lyre_bot.domain.shared.datetime_utils import UtcDateTime
from lyre_bot.domain.shared.exceptions import ConcurrencyError
from lyre_bot.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)


class SQLiteQueueRepository(QueueRepository):
    def __init__(self, database: Database) -> None:
        self._db = database

    async def add(
        self,
        guild_id: int,
        url: str,
        title: str | None,
        duration_seconds: int | None,
        added_by: str,
    ) -> QueueEntry:
        title = title or None
        added_at = UtcDateTime.now()
        # Reject bad input before anything is written.
        QueueEntry(
            guild_id=guild_id,
            position=0,
            url=url,
            title=title,
            duration_seconds=duration_seconds,
            added_by=added_by,
            added_at=added_at.dt,
        )

        conflicts = 0
        locked = 0
        while True:
            try:
                return await self._insert(
                    guild_id, url, title, duration_seconds, added_by, added_at.iso
                )
            except sqlite3.IntegrityError:
                conflicts += 1
                logger.warning(LogTemplates.QUEUE_POSITION_CONFLICT, guild_id, conflicts)
                if conflicts >= QueueLimits.MAX_POSITION_RETRIES:
                    raise ConcurrencyError("QueueEntry") from None
            except sqlite3.OperationalError as e:
                if "locked" not in str(e):
                    raise
                locked += 1
                logger.debug(LogTemplates.QUEUE_TABLE_LOCKED, guild_id, locked)
                if locked >= QueueLimits.MAX_LOCK_RETRIES:
                    raise ConcurrencyError("QueueEntry", str(e)) from e
                await asyncio.sleep(QueueLimits.LOCK_RETRY_DELAY_SECONDS * min(locked, 10))

    async def _insert(
        self,
        guild_id: int,
        url: str,
        title: str | None,
        duration_seconds: int | None,
        added_by: str,
        added_at: str,
    ) -> QueueEntry:
        # The position is computed inside the INSERT so the read and the write
        # happen in one statement; UNIQUE(guild_id, position) rejects a
        # concurrent writer that picked the same slot.
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO current_queue (
                    guild_id, url, title, duration, position, added_by, added_at
                )
                SELECT ?, ?, ?, ?, COALESCE(MAX(position) + 1, 0), ?, ?
                FROM current_queue WHERE guild_id = ?
                """,
                (str(guild_id), url, title, duration_seconds, added_by, added_at, str(guild_id)),
            )
            cursor = await conn.execute(
                "SELECT * FROM current_queue WHERE id = ?", (cursor.lastrowid,)
            )
            row = await cursor.fetchone()
            # A row that fails to map is rolled back with the insert.
            entry = self._row_to_entry(dict(row))

        logger.debug(LogTemplates.QUEUE_ENQUEUED, entry.display_title, entry.position, guild_id)
        return entry

    async def get_queue(self, guild_id: int) -> list[QueueEntry]:
        rows = await self._db.fetch_all(
            """
            SELECT * FROM current_queue
            WHERE guild_id = ?
            ORDER BY position ASC
            """,
            (str(guild_id),),
        )
        return [self._row_to_entry(row) for row in rows]

    async def get_current(self, guild_id: int) -> QueueEntry | None:
        row = await self._db.fetch_one(
            "SELECT * FROM current_queue WHERE guild_id = ? AND position = 0",
            (str(guild_id),),
        )
        return self._row_to_entry(row) if row else None

    async def advance(self, guild_id: int) -> None:
        key = str(guild_id)
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "DELETE FROM current_queue WHERE guild_id = ? AND position = 0",
                (key,),
            )
            if cursor.rowcount == 0:
                return

            # Shift in two passes so no intermediate row collides with the
            # UNIQUE(guild_id, position) constraint: p -> -p -> p - 1.
            await conn.execute(
                "UPDATE current_queue SET position = -position WHERE guild_id = ?",
                (key,),
            )
            await conn.execute(
                "UPDATE current_queue SET position = -position - 1 WHERE guild_id = ?",
                (key,),
            )

        logger.debug(LogTemplates.QUEUE_ADVANCED, guild_id)

    async def clear(self, guild_id: int) -> int:
        count = await self._db.execute(
            "DELETE FROM current_queue WHERE guild_id = ?",
            (str(guild_id),),
        )
        if count > 0:
            logger.info(LogTemplates.QUEUE_CLEARED, count, guild_id)
        return count

    async def count(self, guild_id: int) -> int:
        row = await self._db.fetch_one(
            "SELECT COUNT(*) as count FROM current_queue WHERE guild_id = ?",
            (str(guild_id),),
        )
        return row["count"] if row else 0

    async def count_all(self) -> int:
        row = await self._db.fetch_one("SELECT COUNT(*) as count FROM current_queue")
        return row["count"] if row else 0

    def _row_to_entry(self, row: dict[str, Any]) -> QueueEntry:
        return QueueEntry.model_validate(
            {
                "id": row["id"],
                "guild_id": int(row["guild_id"]),
                "position": row["position"],
                "url": row["url"],
                "title": row.get("title"),
                "duration_seconds": row.get("duration"),
                "added_by": row["added_by"],
                "added_at": UtcDateTime.from_iso(row["added_at"]).dt,
            }
        )
