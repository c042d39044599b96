"""Tests for the periodic cleanup job."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from lyre_bot.config.settings import CleanupSettings
from lyre_bot.domain.playback.entities import CacheEntry
from lyre_bot.infrastructure.persistence.cleanup import CleanupJob


@pytest.fixture
def cleanup_job(history_repository, cache_repository):
    return CleanupJob(
        history_repository=history_repository,
        cache_repository=cache_repository,
        settings=CleanupSettings(retention_days=30),
    )


class TestCleanupJob:
    """Tests for CleanupJob.run_cleanup."""

    async def test_removes_stale_cache_files_and_rows(
        self, cleanup_job, cache_repository, tmp_path
    ):
        """Files unused for longer than the retention period are deleted."""
        old_file = tmp_path / "old.mp3"
        old_file.write_bytes(b"x")
        new_file = tmp_path / "new.mp3"
        new_file.write_bytes(b"y")
        long_ago = datetime.now(UTC) - timedelta(days=45)

        await cache_repository.record(
            CacheEntry(
                content_id="old",
                url="https://old",
                file_path=str(old_file),
                last_accessed=long_ago,
            )
        )
        await cache_repository.record(
            CacheEntry(content_id="new", url="https://new", file_path=str(new_file))
        )

        stats = await cleanup_job.run_cleanup()

        assert stats.cache_cleaned == 1
        assert stats.files_removed == 1
        assert not old_file.exists()
        assert new_file.exists()
        assert await cache_repository.get("old") is None
        assert await cache_repository.get("new") is not None

    async def test_missing_file_still_drops_row(self, cleanup_job, cache_repository, tmp_path):
        """A row whose file is already gone is removed without counting a file."""
        await cache_repository.record(
            CacheEntry(
                content_id="gone",
                url="https://gone",
                file_path=str(tmp_path / "gone.mp3"),
                last_accessed=datetime.now(UTC) - timedelta(days=45),
            )
        )

        stats = await cleanup_job.run_cleanup()

        assert stats.cache_cleaned == 1
        assert stats.files_removed == 0

    async def test_history_failure_does_not_stop_cache_cleanup(self, cache_repository):
        """A failing history cleanup is logged and the cache pass still runs."""
        history = MagicMock()
        history.cleanup_old = AsyncMock(side_effect=RuntimeError("locked"))
        job = CleanupJob(
            history_repository=history,
            cache_repository=cache_repository,
            settings=CleanupSettings(),
        )

        stats = await job.run_cleanup()

        assert stats.history_cleaned == 0
        assert stats.total_cleaned == 0

    async def test_start_stop(self, cleanup_job):
        """The loop starts once and stops cleanly."""
        cleanup_job.start()
        cleanup_job.start()
        assert cleanup_job.is_running is True

        await cleanup_job.stop()

        assert cleanup_job.is_running is False
