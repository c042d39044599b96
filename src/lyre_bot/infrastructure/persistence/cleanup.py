"""Periodic cleanup of old history rows and long-unused cached audio files."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel

from lyre_bot.domain.shared.datetime_utils import utcnow
from lyre_bot.domain.shared.messages import LogTemplates
from lyre_bot.domain.shared.types import NonNegativeInt

if TYPE_CHECKING:
    from ...config.settings import CleanupSettings
    from ...domain.playback.entities import CacheEntry
    from ...domain.playback.repository import QueueHistoryRepository, SongCacheRepository

logger = logging.getLogger(__name__)


class CleanupJob:
    def __init__(
        self,
        *,
        history_repository: QueueHistoryRepository,
        cache_repository: SongCacheRepository,
        settings: CleanupSettings,
    ) -> None:
        self._history_repo = history_repository
        self._cache_repo = cache_repository
        self._settings = settings
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            logger.warning(LogTemplates.CLEANUP_ALREADY_RUNNING)
            return
        self._task = asyncio.create_task(self._run_loop(), name="lyre-cleanup")
        logger.info(LogTemplates.CLEANUP_STARTED)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info(LogTemplates.CLEANUP_STOPPED)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_loop(self) -> None:
        interval = self._settings.cleanup_interval_minutes * 60
        while True:
            try:
                await self.run_cleanup()
            except Exception:
                logger.exception("Cleanup pass raised")
            await asyncio.sleep(interval)

    async def run_cleanup(self) -> CleanupStats:
        stats = CleanupStats()

        logger.debug(LogTemplates.CLEANUP_CYCLE_RUNNING)

        cutoff = utcnow() - timedelta(days=self._settings.retention_days)
        try:
            stats.history_cleaned = await self._history_repo.cleanup_old(cutoff)
        except Exception as e:
            logger.warning(LogTemplates.CLEANUP_HISTORY_FAILED, e)

        try:
            for entry in await self._cache_repo.get_older_than(cutoff):
                if await asyncio.to_thread(_remove_file, entry):
                    stats.files_removed += 1
                if await self._cache_repo.delete(entry.content_id):
                    stats.cache_cleaned += 1
        except Exception as e:
            logger.warning(LogTemplates.CLEANUP_CACHE_FAILED, e)

        if stats.total_cleaned > 0:
            logger.info(
                LogTemplates.CLEANUP_COMPLETED,
                stats.history_cleaned,
                stats.cache_cleaned,
                stats.files_removed,
            )

        return stats


def _remove_file(entry: CacheEntry) -> bool:
    try:
        Path(entry.file_path).unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(LogTemplates.CLEANUP_FILE_REMOVE_FAILED, entry.file_path, e)
        return False
    return True


class CleanupStats(BaseModel):
    history_cleaned: NonNegativeInt = 0
    cache_cleaned: NonNegativeInt = 0
    files_removed: NonNegativeInt = 0

    @property
    def total_cleaned(self) -> int:
        return self.history_cleaned + self.cache_cleaned + self.files_removed
