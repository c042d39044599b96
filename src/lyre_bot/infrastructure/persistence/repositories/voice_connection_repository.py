"""SQLite implementation of the voice connection repository."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from lyre_bot.domain.playback.entities import VoiceConnectionRecord
from lyre_bot.domain.playback.repository import VoiceConnectionRepository
from lyre_bot.domain.shared.datetime_utils import UtcDateTime
from lyre_bot.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)


class SQLiteVoiceConnectionRepository(VoiceConnectionRepository):
    def __init__(self, database: Database) -> None:
        self._db = database

    async def get(self, guild_id: str) -> VoiceConnectionRecord | None:
        row = await self._db.fetch_one(
            "SELECT * FROM voice_connections WHERE guild_id = ?",
            (guild_id,),
        )
        return self._row_to_record(row) if row else None

    async def request_join(self, guild_id: str, channel_id: str) -> VoiceConnectionRecord:
        now = UtcDateTime.now().iso
        async with self._db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO voice_connections (
                    guild_id, channel_id, connected_at, last_activity, is_playing
                ) VALUES (?, ?, ?, ?, 0)
                ON CONFLICT(guild_id) DO UPDATE SET
                    channel_id = excluded.channel_id,
                    connected_at = excluded.connected_at,
                    last_activity = excluded.last_activity
                """,
                (guild_id, channel_id, now, now),
            )
            cursor = await conn.execute(
                "SELECT * FROM voice_connections WHERE guild_id = ?", (guild_id,)
            )
            row = await cursor.fetchone()

        logger.debug(LogTemplates.VOICE_JOIN_REQUESTED, channel_id, guild_id)
        return self._row_to_record(dict(row))

    async def upsert(self, guild_id: str, channel_id: str | None) -> VoiceConnectionRecord:
        now = UtcDateTime.now().iso
        async with self._db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO voice_connections (
                    guild_id, channel_id, connected_at, last_activity, is_playing
                ) VALUES (?, ?, ?, ?, 0)
                ON CONFLICT(guild_id) DO UPDATE SET
                    channel_id = excluded.channel_id,
                    last_activity = excluded.last_activity
                """,
                (guild_id, channel_id, now, now),
            )
            cursor = await conn.execute(
                "SELECT * FROM voice_connections WHERE guild_id = ?", (guild_id,)
            )
            row = await cursor.fetchone()

        return self._row_to_record(dict(row))

    async def get_pending_joins(self) -> list[VoiceConnectionRecord]:
        rows = await self._db.fetch_all(
            "SELECT * FROM voice_connections WHERE channel_id IS NOT NULL"
        )
        return [self._row_to_record(row) for row in rows]

    async def get_all(self) -> list[VoiceConnectionRecord]:
        rows = await self._db.fetch_all("SELECT * FROM voice_connections")
        return [self._row_to_record(row) for row in rows]

    async def update_last_activity(self, guild_id: str) -> bool:
        updated = await self._db.execute(
            "UPDATE voice_connections SET last_activity = ? WHERE guild_id = ?",
            (UtcDateTime.now().iso, guild_id),
        )
        return updated > 0

    async def update_playing_status(
        self,
        guild_id: str,
        is_playing: bool,
        current_track_title: str | None,
        *,
        clear_channel: bool = False,
    ) -> bool:
        if clear_channel:
            sql = """
                UPDATE voice_connections
                SET is_playing = ?, current_track_title = ?, last_activity = ?, channel_id = NULL
                WHERE guild_id = ?
            """
        else:
            sql = """
                UPDATE voice_connections
                SET is_playing = ?, current_track_title = ?, last_activity = ?
                WHERE guild_id = ?
            """
        updated = await self._db.execute(
            sql,
            (int(is_playing), current_track_title, UtcDateTime.now().iso, guild_id),
        )
        return updated > 0

    async def delete(self, guild_id: str) -> bool:
        deleted = await self._db.execute(
            "DELETE FROM voice_connections WHERE guild_id = ?",
            (guild_id,),
        )
        if deleted:
            logger.debug(LogTemplates.VOICE_RECORD_DELETED, guild_id)
        return deleted > 0

    async def clear_all(self) -> int:
        return await self._db.execute("DELETE FROM voice_connections")

    def _row_to_record(self, row: dict[str, Any]) -> VoiceConnectionRecord:
        return VoiceConnectionRecord.model_validate(
            {
                "guild_id": row["guild_id"],
                "channel_id": row.get("channel_id"),
                "connected_at": UtcDateTime.from_iso(row["connected_at"]).dt,
                "last_activity": UtcDateTime.from_iso(row["last_activity"]).dt,
                "is_playing": bool(row["is_playing"]),
                "current_track_title": row.get("current_track_title"),
            }
        )
