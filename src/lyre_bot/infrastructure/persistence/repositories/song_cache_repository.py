"""SQLite implementation of the downloaded-song cache repository."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from lyre_bot.domain.playback.entities import CacheEntry
from lyre_bot.domain.playback.repository import SongCacheRepository
from lyre_bot.domain.shared.datetime_utils import UtcDateTime
from lyre_bot.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)


class SQLiteSongCacheRepository(SongCacheRepository):
    def __init__(self, database: Database) -> None:
        self._db = database

    async def record(self, entry: CacheEntry) -> None:
        await self._db.execute(
            """
            INSERT INTO song_cache (
                content_id, url, title, file_path, file_size, last_accessed, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(content_id) DO UPDATE SET
                url = excluded.url,
                title = COALESCE(excluded.title, song_cache.title),
                file_path = excluded.file_path,
                file_size = excluded.file_size,
                last_accessed = excluded.last_accessed
            """,
            (
                entry.content_id,
                entry.url,
                entry.title,
                entry.file_path,
                entry.size_bytes,
                UtcDateTime(entry.last_accessed).iso,
                UtcDateTime(entry.created_at).iso,
            ),
        )
        logger.debug(LogTemplates.CACHE_RECORDED, entry.content_id, entry.size_bytes)

    async def get(self, content_id: str) -> CacheEntry | None:
        row = await self._db.fetch_one(
            "SELECT * FROM song_cache WHERE content_id = ?",
            (content_id,),
        )
        return self._row_to_entry(row) if row else None

    async def find_by_url(self, url: str) -> CacheEntry | None:
        row = await self._db.fetch_one(
            """
            SELECT * FROM song_cache
            WHERE url = ?
            ORDER BY last_accessed DESC
            LIMIT 1
            """,
            (url,),
        )
        return self._row_to_entry(row) if row else None

    async def touch(self, content_id: str) -> bool:
        updated = await self._db.execute(
            "UPDATE song_cache SET last_accessed = ? WHERE content_id = ?",
            (UtcDateTime.now().iso, content_id),
        )
        return updated > 0

    async def set_title(self, url: str, title: str) -> int:
        return await self._db.execute(
            "UPDATE song_cache SET title = ?, last_accessed = ? WHERE url = ?",
            (title, UtcDateTime.now().iso, url),
        )

    async def get_older_than(self, cutoff: datetime) -> list[CacheEntry]:
        rows = await self._db.fetch_all(
            "SELECT * FROM song_cache WHERE last_accessed < ?",
            (UtcDateTime(cutoff).iso,),
        )
        return [self._row_to_entry(row) for row in rows]

    async def delete(self, content_id: str) -> bool:
        deleted = await self._db.execute(
            "DELETE FROM song_cache WHERE content_id = ?",
            (content_id,),
        )
        return deleted > 0

    async def total_size(self) -> int:
        row = await self._db.fetch_one("SELECT SUM(file_size) as total FROM song_cache")
        return (row["total"] or 0) if row else 0

    def _row_to_entry(self, row: dict[str, Any]) -> CacheEntry:
        return CacheEntry.model_validate(
            {
                "content_id": row["content_id"],
                "url": row["url"],
                "title": row.get("title"),
                "file_path": row["file_path"],
                "size_bytes": row["file_size"],
                "last_accessed": UtcDateTime.from_iso(row["last_accessed"]).dt,
                "created_at": UtcDateTime.from_iso(row["created_at"]).dt,
            }
        )
