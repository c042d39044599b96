"""In-process operational counters fed by domain events and a download folder scan."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from ...domain.shared.constants import ExtractorConfig
from ...domain.shared.events import (
    BotJoinedVoiceChannel,
    BotLeftVoiceChannel,
    EventBus,
    QueueCleared,
    QueueExhausted,
    TrackAddedToQueue,
    TrackFinishedPlaying,
    get_event_bus,
)
from ...domain.shared.messages import LogTemplates
from ...domain.shared.types import NonNegativeInt

if TYPE_CHECKING:
    from ...domain.playback.repository import QueueRepository

logger = logging.getLogger(__name__)


class MetricsSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    connected_guilds: NonNegativeInt = 0
    total_queue_len: NonNegativeInt = 0
    download_files: NonNegativeInt = 0
    download_bytes: NonNegativeInt = 0
    ready: bool = False
    uptime_seconds: NonNegativeInt = 0


def scan_download_folder(root: Path) -> tuple[int, int]:
    """Count cached mp3 files directly under ``root`` and their total size."""
    files = 0
    total = 0
    if not root.is_dir():
        return files, total
    for entry in root.iterdir():
        if entry.is_file() and entry.suffix == ExtractorConfig.AUDIO_EXTENSION:
            files += 1
            total += entry.stat().st_size
    return files, total


class MetricsCollector:
    """Owns the counters; nothing else writes them.

    Connection and queue counters move with domain events on the event bus.
    Download counters and the queue total are refreshed by a periodic scan.
    """

    def __init__(
        self,
        *,
        download_root: Callable[[], Path],
        queue_repository: QueueRepository | None = None,
        scan_interval_seconds: float = 30,
        event_bus: EventBus | None = None,
    ) -> None:
        self._download_root = download_root
        self._queue_repo = queue_repository
        self._scan_interval = scan_interval_seconds
        self._event_bus = event_bus or get_event_bus()

        self._connected: set[int] = set()
        self._total_queue_len = 0
        self._download_files = 0
        self._download_bytes = 0
        self._ready = False
        self._started_at = time.monotonic()

        self._running = False
        self._task: asyncio.Task | None = None
        self._subscriptions = [
            (BotJoinedVoiceChannel, self._on_joined),
            (BotLeftVoiceChannel, self._on_left),
            (QueueExhausted, self._on_exhausted),
            (TrackAddedToQueue, self._on_track_added),
            (TrackFinishedPlaying, self._on_track_finished),
            (QueueCleared, self._on_queue_cleared),
        ]

    def subscribe(self) -> None:
        for event_type, handler in self._subscriptions:
            self._event_bus.subscribe(event_type, handler)

    def unsubscribe(self) -> None:
        for event_type, handler in self._subscriptions:
            self._event_bus.unsubscribe(event_type, handler)

    def mark_ready(self, ready: bool = True) -> None:
        self._ready = ready

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            connected_guilds=len(self._connected),
            total_queue_len=self._total_queue_len,
            download_files=self._download_files,
            download_bytes=self._download_bytes,
            ready=self._ready,
            uptime_seconds=int(time.monotonic() - self._started_at),
        )

    # === Event handlers ===

    async def _on_joined(self, event: BotJoinedVoiceChannel) -> None:
        self._connected.add(event.guild_id)

    async def _on_left(self, event: BotLeftVoiceChannel) -> None:
        self._connected.discard(event.guild_id)

    async def _on_exhausted(self, event: QueueExhausted) -> None:
        self._connected.discard(event.guild_id)

    async def _on_track_added(self, event: TrackAddedToQueue) -> None:
        self._total_queue_len += 1

    async def _on_track_finished(self, event: TrackFinishedPlaying) -> None:
        self._total_queue_len = max(0, self._total_queue_len - 1)

    async def _on_queue_cleared(self, event: QueueCleared) -> None:
        self._total_queue_len = max(0, self._total_queue_len - event.track_count)

    # === Periodic scan ===

    def start(self) -> None:
        if self._running:
            return

        self.subscribe()
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(LogTemplates.METRICS_STARTED)

    async def stop(self) -> None:
        self._running = False
        self.unsubscribe()

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(LogTemplates.METRICS_STOPPED)

    async def _run_loop(self) -> None:
        while self._running:
            await self.refresh()

            try:
                await asyncio.sleep(self._scan_interval)
            except asyncio.CancelledError:
                break

    async def refresh(self) -> None:
        try:
            root = self._download_root()
            self._download_files, self._download_bytes = await asyncio.to_thread(
                scan_download_folder, root
            )
        except Exception as e:
            logger.warning(LogTemplates.METRICS_SCAN_FAILED, e)

        if self._queue_repo is None:
            return
        try:
            self._total_queue_len = await self._queue_repo.count_all()
        except Exception as e:
            logger.warning(LogTemplates.METRICS_QUEUE_REFRESH_FAILED, e)
