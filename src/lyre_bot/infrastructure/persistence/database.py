"""SQLite access through aiosqlite.

Each repository call opens its own connection, so calls are atomic and
independent. WAL mode lets the reconciler read while a command writes.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite

from lyre_bot.domain.shared.constants import SQLPragmas
from lyre_bot.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ...config.settings import DatabaseSettings

logger = logging.getLogger(__name__)

MEMORY = ":memory:"
_SHARED_MEMORY_URI = "file:lyre-bot?mode=memory&cache=shared"

# Ids are TEXT: the reconciler has to cope with values that do not parse.
_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS current_queue (
        id INTEGER PRIMARY KEY,
        guild_id TEXT NOT NULL,
        url TEXT NOT NULL,
        title TEXT,
        duration INTEGER,
        position INTEGER NOT NULL,
        added_by TEXT NOT NULL,
        added_at TEXT NOT NULL,
        UNIQUE(guild_id, position)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS voice_connections (
        guild_id TEXT PRIMARY KEY NOT NULL,
        channel_id TEXT,
        connected_at TEXT NOT NULL,
        last_activity TEXT NOT NULL,
        is_playing INTEGER NOT NULL DEFAULT 0,
        current_track_title TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS song_cache (
        content_id TEXT PRIMARY KEY NOT NULL,
        url TEXT NOT NULL,
        title TEXT,
        file_path TEXT NOT NULL,
        file_size INTEGER NOT NULL DEFAULT 0,
        last_accessed TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_song_cache_url ON song_cache(url)",
    "CREATE INDEX IF NOT EXISTS idx_song_cache_accessed ON song_cache(last_accessed)",
    """
    CREATE TABLE IF NOT EXISTS queue_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        guild_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        url TEXT NOT NULL,
        title TEXT,
        duration INTEGER,
        played_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_queue_history_guild ON queue_history(guild_id, played_at)",
    "CREATE INDEX IF NOT EXISTS idx_queue_history_user ON queue_history(user_id, played_at)",
)


def path_from_url(url: str) -> str:
    """``sqlite:///data/lyre.db`` -> ``data/lyre.db``; bare paths pass through."""
    prefix = "sqlite:///"
    return url[len(prefix):] if url.startswith(prefix) else url


class Database:
    def __init__(self, url: str, settings: DatabaseSettings | None = None) -> None:
        self._db_path = path_from_url(url)
        self._busy_timeout = settings.busy_timeout_ms if settings else 5000
        self._connection_timeout = settings.connection_timeout_s if settings else 10
        # An in-memory database lives only while some connection holds it open.
        self._anchor: aiosqlite.Connection | None = None
        self._ready = False

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def in_memory(self) -> bool:
        return self._db_path == MEMORY

    async def initialize(self) -> None:
        if self._ready:
            return

        if self.in_memory:
            if self._anchor is None:
                self._anchor = await self._connect()
        else:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        async with self.transaction() as conn:
            for statement in _SCHEMA:
                await conn.execute(statement)

        self._ready = True
        logger.info(LogTemplates.DATABASE_INITIALIZED, self._db_path)

    async def _connect(self) -> aiosqlite.Connection:
        target, uri = (_SHARED_MEMORY_URI, True) if self.in_memory else (self._db_path, False)
        conn = await aiosqlite.connect(target, uri=uri, timeout=self._connection_timeout)
        conn.row_factory = aiosqlite.Row
        for pragma in (
            SQLPragmas.JOURNAL_MODE_WAL,
            SQLPragmas.FOREIGN_KEYS_ON,
            SQLPragmas.BUSY_TIMEOUT.format(timeout=self._busy_timeout),
        ):
            await conn.execute(pragma)
        return conn

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        conn = await self._connect()
        try:
            yield conn
        finally:
            await conn.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """A connection that commits on success and rolls back on any error."""
        async with self.connection() as conn:
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

    async def execute(self, sql: str, parameters: tuple[Any, ...] = ()) -> int:
        """Run one write statement in its own transaction; returns the row count."""
        async with self.transaction() as conn:
            cursor = await conn.execute(sql, parameters)
            return cursor.rowcount

    async def fetch_one(self, sql: str, parameters: tuple[Any, ...] = ()) -> dict[str, Any] | None:
        async with self.connection() as conn:
            cursor = await conn.execute(sql, parameters)
            row = await cursor.fetchone()
        return None if row is None else dict(row)

    async def fetch_all(self, sql: str, parameters: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        async with self.connection() as conn:
            cursor = await conn.execute(sql, parameters)
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def close(self) -> None:
        anchor, self._anchor = self._anchor, None
        self._ready = False
        if anchor is not None:
            await anchor.close()
        logger.info(LogTemplates.DATABASE_CLOSED)
