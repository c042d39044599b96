"""
Integration Tests for the SQLite Repositories

Runs each repository against a shared in-memory database:
- Queue positions stay contiguous from 0 across add/advance, also under concurrent writers
- Voice connection records as join desires and observed sessions
- Song cache upserts, title updates and age queries
- History recording and retention cleanup
"""

import asyncio
import sqlite3
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from pydantic import ValidationError as PydanticValidationError

from lyre_bot.domain.playback.entities import CacheEntry
from lyre_bot.domain.shared.constants import QueueLimits
from lyre_bot.domain.shared.exceptions import ConcurrencyError

# =============================================================================
# Queue Repository
# =============================================================================


class TestQueueRepository:
    """Tests for SQLiteQueueRepository."""

    async def test_add_assigns_contiguous_positions(self, queue_repository):
        """Positions should be 0, 1, 2 in insertion order."""
        first = await queue_repository.add(111, "https://a", "A", None, "7")
        second = await queue_repository.add(111, "https://b", "B", 200, "7")
        third = await queue_repository.add(111, "https://c", None, None, "8")

        assert [first.position, second.position, third.position] == [0, 1, 2]
        assert second.duration_seconds == 200
        assert third.title is None
        assert third.display_title == "https://c"

    async def test_positions_are_per_guild(self, queue_repository):
        """Each guild should start its own queue at position 0."""
        await queue_repository.add(111, "https://a", "A", None, "7")
        other = await queue_repository.add(222, "https://b", "B", None, "7")

        assert other.position == 0

    async def test_get_queue_is_ordered_and_round_trips(self, queue_repository):
        """Entries should come back in position order with the stored fields."""
        await queue_repository.add(111, "https://a", "A", 60, "7")
        await queue_repository.add(111, "https://b", "B", None, "8")

        queue = await queue_repository.get_queue(111)

        assert [e.url for e in queue] == ["https://a", "https://b"]
        assert queue[0].guild_id == 111
        assert queue[0].added_by == "7"
        assert queue[0].added_at.tzinfo is not None
        assert queue[0].is_current is True
        assert queue[1].is_current is False

    async def test_get_current_empty(self, queue_repository):
        """An empty queue has no current entry."""
        assert await queue_repository.get_current(111) is None

    async def test_advance_removes_head_and_shifts(self, queue_repository):
        """Advancing should drop position 0 and renumber from 0."""
        for url in ("https://a", "https://b", "https://c"):
            await queue_repository.add(111, url, None, None, "7")

        await queue_repository.advance(111)

        queue = await queue_repository.get_queue(111)
        assert [(e.position, e.url) for e in queue] == [(0, "https://b"), (1, "https://c")]

        current = await queue_repository.get_current(111)
        assert current is not None
        assert current.url == "https://b"

    async def test_advance_then_add_continues_after_tail(self, queue_repository):
        """A new entry after an advance should land right after the last one."""
        for url in ("https://a", "https://b"):
            await queue_repository.add(111, url, None, None, "7")
        await queue_repository.advance(111)

        entry = await queue_repository.add(111, "https://c", None, None, "7")

        assert entry.position == 1

    async def test_advance_empty_is_noop(self, queue_repository):
        """Advancing an empty queue should not fail or create rows."""
        await queue_repository.advance(111)

        assert await queue_repository.count(111) == 0

    async def test_advance_does_not_touch_other_guilds(self, queue_repository):
        """Advancing one guild leaves another guild's queue intact."""
        await queue_repository.add(111, "https://a", None, None, "7")
        await queue_repository.add(222, "https://b", None, None, "7")

        await queue_repository.advance(111)

        assert await queue_repository.count(111) == 0
        assert await queue_repository.count(222) == 1

    async def test_clear_returns_count(self, queue_repository):
        """Clear should delete every entry for the guild and report how many."""
        await queue_repository.add(111, "https://a", None, None, "7")
        await queue_repository.add(111, "https://b", None, None, "7")
        await queue_repository.add(222, "https://c", None, None, "7")

        assert await queue_repository.clear(111) == 2
        assert await queue_repository.count(111) == 0
        assert await queue_repository.clear(111) == 0

    async def test_count_all(self, queue_repository):
        """count_all should sum entries across guilds."""
        await queue_repository.add(111, "https://a", None, None, "7")
        await queue_repository.add(222, "https://b", None, None, "7")
        await queue_repository.add(222, "https://c", None, None, "7")

        assert await queue_repository.count_all() == 3

    async def test_long_title_and_multi_day_duration_round_trip(self, queue_repository):
        """Titles and durations have no upper bound and stay readable afterwards."""
        title = "x" * 501

        entry = await queue_repository.add(111, "https://a", title, 90_000, "7")

        assert entry.title == title
        assert entry.duration_seconds == 90_000
        assert entry.duration_formatted == "25:00:00"
        queue = await queue_repository.get_queue(111)
        assert [(e.title, e.duration_seconds) for e in queue] == [(title, 90_000)]
        current = await queue_repository.get_current(111)
        assert current is not None
        assert current.title == title

    async def test_empty_title_is_stored_as_missing(self, queue_repository):
        """An empty title falls back to the URL for display."""
        entry = await queue_repository.add(111, "https://a", "", None, "7")

        assert entry.title is None
        assert entry.display_title == "https://a"

    async def test_invalid_entry_writes_nothing(self, queue_repository):
        """Input the model rejects should never reach the table."""
        with pytest.raises(PydanticValidationError):
            await queue_repository.add(111, "https://a", "A", -5, "7")

        assert await queue_repository.count(111) == 0
        assert await queue_repository.get_queue(111) == []

    async def test_unreadable_row_is_rolled_back(self, queue_repository):
        """If the inserted row cannot be mapped back, the insert is undone."""
        with (
            patch.object(queue_repository, "_row_to_entry", side_effect=ValueError("bad row")),
            pytest.raises(ValueError),
        ):
            await queue_repository.add(111, "https://a", "A", None, "7")

        assert await queue_repository.count(111) == 0

    async def test_position_conflicts_raise_concurrency_error(self, queue_repository):
        """Repeated UNIQUE(guild_id, position) conflicts give up after the retry budget."""
        insert = AsyncMock(side_effect=sqlite3.IntegrityError("UNIQUE constraint failed"))

        with patch.object(queue_repository, "_insert", insert), pytest.raises(ConcurrencyError):
            await queue_repository.add(111, "https://a", "A", None, "7")

        assert insert.await_count == QueueLimits.MAX_POSITION_RETRIES

    async def test_position_conflict_then_success(self, queue_repository):
        """A single conflict is retried and the next attempt's entry is returned."""
        real_insert = queue_repository._insert
        calls = 0

        async def conflict_once(*args):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise sqlite3.IntegrityError("UNIQUE constraint failed")
            return await real_insert(*args)

        with patch.object(queue_repository, "_insert", conflict_once):
            entry = await queue_repository.add(111, "https://a", "A", None, "7")

        assert calls == 2
        assert entry.position == 0
        assert await queue_repository.count(111) == 1

    async def test_locked_table_is_retried(self, queue_repository):
        """A shared-cache lock error waits briefly and tries again."""
        real_insert = queue_repository._insert
        calls = 0

        async def locked_twice(*args):
            nonlocal calls
            calls += 1
            if calls <= 2:
                raise sqlite3.OperationalError("database table is locked")
            return await real_insert(*args)

        with (
            patch.object(queue_repository, "_insert", locked_twice),
            patch(
                "lyre_bot.infrastructure.persistence.repositories.queue_repository.asyncio.sleep",
                new=AsyncMock(),
            ) as sleep,
        ):
            entry = await queue_repository.add(111, "https://a", "A", None, "7")

        assert calls == 3
        assert entry.position == 0
        assert sleep.await_count == 2

    async def test_other_operational_errors_propagate(self, queue_repository):
        """Only lock errors are retried."""
        insert = AsyncMock(side_effect=sqlite3.OperationalError("no such table: current_queue"))

        with (
            patch.object(queue_repository, "_insert", insert),
            pytest.raises(sqlite3.OperationalError),
        ):
            await queue_repository.add(111, "https://a", "A", None, "7")

        insert.assert_awaited_once()


class TestQueueRepositoryConcurrency:
    """Concurrent writers against a file database."""

    @pytest_asyncio.fixture
    async def file_queue_repository(self, tmp_path):
        from lyre_bot.infrastructure.persistence.database import Database
        from lyre_bot.infrastructure.persistence.repositories.queue_repository import (
            SQLiteQueueRepository,
        )

        db = Database(str(tmp_path / "queue.db"))
        await db.initialize()
        yield SQLiteQueueRepository(db)
        await db.close()

    async def test_concurrent_adds_get_distinct_contiguous_positions(self, file_queue_repository):
        """Simultaneous adds for one guild should each get their own slot."""
        entries = await asyncio.gather(
            *(
                file_queue_repository.add(111, f"https://t/{i}", f"T{i}", None, "7")
                for i in range(20)
            )
        )

        assert sorted(e.position for e in entries) == list(range(20))
        queue = await file_queue_repository.get_queue(111)
        assert [e.position for e in queue] == list(range(20))

    async def test_adds_interleaved_with_advances_stay_contiguous(self, file_queue_repository):
        """Adds racing advances leave positions 0..n-1 with no gaps."""
        for i in range(5):
            await file_queue_repository.add(111, f"https://seed/{i}", None, None, "7")

        await asyncio.gather(
            *(file_queue_repository.add(111, f"https://t/{i}", None, None, "7") for i in range(15)),
            *(file_queue_repository.advance(111) for _ in range(5)),
        )

        queue = await file_queue_repository.get_queue(111)
        assert len(queue) == 15
        assert [e.position for e in queue] == list(range(15))

    async def test_in_memory_concurrent_adds(self, queue_repository):
        """Lock errors from the shared in-memory cache are absorbed by retries."""
        entries = await asyncio.gather(
            *(queue_repository.add(111, f"https://t/{i}", None, None, "7") for i in range(10))
        )

        assert sorted(e.position for e in entries) == list(range(10))


# =============================================================================
# Voice Connection Repository
# =============================================================================


class TestVoiceConnectionRepository:
    """Tests for SQLiteVoiceConnectionRepository."""

    async def test_request_join_creates_pending_record(self, voice_repository):
        """A join request should be visible as a pending join."""
        record = await voice_repository.request_join("111", "222")

        assert record.guild_id == "111"
        assert record.channel_id == "222"
        assert record.is_playing is False

        pending = await voice_repository.get_pending_joins()
        assert [r.guild_id for r in pending] == ["111"]

    async def test_request_join_resets_connected_at(self, voice_repository, in_memory_database):
        """A repeated request should refresh the staleness clock."""
        await voice_repository.request_join("111", "222")
        old = (datetime.now(UTC) - timedelta(hours=1)).isoformat()
        await in_memory_database.execute(
            "UPDATE voice_connections SET connected_at = ? WHERE guild_id = ?", (old, "111")
        )

        record = await voice_repository.request_join("111", "333")

        assert record.channel_id == "333"
        assert record.age() < timedelta(minutes=1)

    async def test_upsert_keeps_connected_at(self, voice_repository, in_memory_database):
        """Confirming a session should not reset when the request was made."""
        await voice_repository.request_join("111", "222")
        old = (datetime.now(UTC) - timedelta(hours=1)).isoformat()
        await in_memory_database.execute(
            "UPDATE voice_connections SET connected_at = ? WHERE guild_id = ?", (old, "111")
        )

        record = await voice_repository.upsert("111", "222")

        assert record.age() > timedelta(minutes=59)

    async def test_update_playing_status(self, voice_repository):
        """Playing status and title should be stored."""
        await voice_repository.upsert("111", "222")

        assert await voice_repository.update_playing_status("111", True, "Song") is True

        record = await voice_repository.get("111")
        assert record.is_playing is True
        assert record.current_track_title == "Song"
        assert record.channel_id == "222"

    async def test_update_playing_status_clear_channel(self, voice_repository):
        """Clearing the channel should remove the record from pending joins."""
        await voice_repository.request_join("111", "222")

        await voice_repository.update_playing_status("111", False, None, clear_channel=True)

        record = await voice_repository.get("111")
        assert record is not None
        assert record.channel_id is None
        assert await voice_repository.get_pending_joins() == []

    async def test_update_missing_record_returns_false(self, voice_repository):
        """Updates on unknown guilds should report False."""
        assert await voice_repository.update_playing_status("999", True, "x") is False
        assert await voice_repository.update_last_activity("999") is False

    async def test_unparseable_ids_still_load(self, voice_repository):
        """Garbage ids are stored as text and returned unchanged."""
        await voice_repository.request_join("not-a-number", "")

        pending = await voice_repository.get_pending_joins()

        assert pending[0].guild_id == "not-a-number"
        assert pending[0].channel_id == ""

    async def test_delete_and_clear_all(self, voice_repository):
        """Delete removes one record; clear_all removes the rest."""
        await voice_repository.request_join("111", "222")
        await voice_repository.request_join("333", "444")
        await voice_repository.request_join("555", "666")

        assert await voice_repository.delete("111") is True
        assert await voice_repository.delete("111") is False
        assert await voice_repository.clear_all() == 2
        assert await voice_repository.get_all() == []


# =============================================================================
# Song Cache Repository
# =============================================================================


def _cache_entry(
    content_id: str = "abc", url: str = "https://a", size_bytes: int = 1024, **kwargs
) -> CacheEntry:
    return CacheEntry(
        content_id=content_id,
        url=url,
        file_path=f"/tmp/{content_id}.mp3",
        size_bytes=size_bytes,
        **kwargs,
    )


class TestSongCacheRepository:
    """Tests for SQLiteSongCacheRepository."""

    async def test_record_and_get(self, cache_repository):
        """A recorded entry should be retrievable by content id and url."""
        await cache_repository.record(_cache_entry())

        by_id = await cache_repository.get("abc")
        by_url = await cache_repository.find_by_url("https://a")

        assert by_id is not None
        assert by_id.file_path == "/tmp/abc.mp3"
        assert by_id.size_bytes == 1024
        assert by_url == by_id

    async def test_record_keeps_existing_title(self, cache_repository):
        """Re-recording without a title should not erase a known title."""
        await cache_repository.record(_cache_entry(title="Known"))
        await cache_repository.record(_cache_entry(size_bytes=2048))

        entry = await cache_repository.get("abc")

        assert entry.title == "Known"
        assert entry.size_bytes == 2048

    async def test_set_title_by_url(self, cache_repository):
        """set_title should update every row for the url."""
        await cache_repository.record(_cache_entry())

        assert await cache_repository.set_title("https://a", "Title") == 1
        assert await cache_repository.set_title("https://missing", "Title") == 0

        entry = await cache_repository.find_by_url("https://a")
        assert entry.title == "Title"

    async def test_touch(self, cache_repository):
        """touch reports whether a record existed."""
        await cache_repository.record(_cache_entry())

        assert await cache_repository.touch("abc") is True
        assert await cache_repository.touch("missing") is False

    async def test_get_older_than_uses_last_accessed(self, cache_repository):
        """Only entries not accessed since the cutoff should be returned."""
        old = datetime.now(UTC) - timedelta(days=40)
        await cache_repository.record(_cache_entry("old", "https://old", last_accessed=old))
        await cache_repository.record(_cache_entry("new", "https://new"))

        stale = await cache_repository.get_older_than(datetime.now(UTC) - timedelta(days=30))

        assert [e.content_id for e in stale] == ["old"]

    async def test_total_size_and_delete(self, cache_repository):
        """total_size sums file sizes; delete removes the row."""
        assert await cache_repository.total_size() == 0

        await cache_repository.record(_cache_entry("a", size_bytes=100))
        await cache_repository.record(_cache_entry("b", size_bytes=250))

        assert await cache_repository.total_size() == 350
        assert await cache_repository.delete("a") is True
        assert await cache_repository.delete("a") is False
        assert await cache_repository.total_size() == 250


# =============================================================================
# Queue History Repository
# =============================================================================


class TestQueueHistoryRepository:
    """Tests for SQLiteQueueHistoryRepository."""

    async def test_record_and_recent_for_guild(self, history_repository):
        """Recent entries should come back newest first."""
        await history_repository.record(111, "7", "https://a", "A")
        await history_repository.record(111, "8", "https://b", "B")
        await history_repository.record(222, "7", "https://c", None)

        recent = await history_repository.get_recent_for_guild(111)

        assert [e.url for e in recent] == ["https://b", "https://a"]
        assert recent[0].guild_id == 111

    async def test_recent_for_user_respects_limit(self, history_repository):
        """get_recent_for_user should filter by user and honour the limit."""
        for i in range(3):
            await history_repository.record(111, "7", f"https://{i}", None)
        await history_repository.record(111, "8", "https://other", None)

        recent = await history_repository.get_recent_for_user("7", limit=2)

        assert len(recent) == 2
        assert all(e.user_id == "7" for e in recent)

    async def test_cleanup_old(self, history_repository, in_memory_database):
        """Rows played before the cutoff should be removed."""
        await history_repository.record(111, "7", "https://a", "A")
        await history_repository.record(111, "7", "https://b", "B")
        old = (datetime.now(UTC) - timedelta(days=60)).isoformat()
        await in_memory_database.execute(
            "UPDATE queue_history SET played_at = ? WHERE url = ?", (old, "https://a")
        )

        removed = await history_repository.cleanup_old(datetime.now(UTC) - timedelta(days=30))

        assert removed == 1
        remaining = await history_repository.get_recent_for_guild(111)
        assert [e.url for e in remaining] == ["https://b"]


# =============================================================================
# Database
# =============================================================================


class TestDatabase:
    """Tests for the Database connection manager."""

    async def test_file_database_creates_parent_dir(self, tmp_path):
        """A file URL should create its parent directory and schema."""
        from lyre_bot.infrastructure.persistence.database import Database

        db = Database(f"sqlite:///{tmp_path}/nested/lyre.db")
        await db.initialize()
        try:
            rows = await db.fetch_all("SELECT name FROM sqlite_master WHERE type = 'table'")
        finally:
            await db.close()

        names = {row["name"] for row in rows}
        assert {"current_queue", "voice_connections", "song_cache", "queue_history"} <= names
        assert (tmp_path / "nested" / "lyre.db").exists()

    async def test_transaction_rolls_back(self, in_memory_database):
        """A failing transaction should leave no rows behind."""
        with pytest.raises(RuntimeError):
            async with in_memory_database.transaction() as conn:
                await conn.execute(
                    "INSERT INTO voice_connections (guild_id, connected_at, last_activity) "
                    "VALUES ('1', 'x', 'x')"
                )
                raise RuntimeError("boom")

        assert await in_memory_database.fetch_all("SELECT * FROM voice_connections") == []
