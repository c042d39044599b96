"""Dependency Injection Container

Builds repositories, the download supervisor, the voice adapter, services
and handlers on first access and hands out the same instance afterwards.
Voice components need the bot, so ``set_bot`` must run before they are used.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from discord.ext.commands import Bot

    from ..application.commands.play_track import PlayTrackHandler
    from ..application.commands.skip_track import SkipTrackHandler
    from ..application.commands.stop_playback import StopPlaybackHandler
    from ..application.interfaces.voice_adapter import VoiceAdapter
    from ..application.queries.get_queue import GetQueueHandler
    from ..application.services.metrics_collector import MetricsCollector
    from ..application.services.track_completion import TrackCompletionHandler
    from ..application.services.voice_connection_service import VoiceConnectionService
    from ..application.services.voice_reconciler import VoiceReconciler
    from ..domain.playback.repository import (
        QueueHistoryRepository,
        QueueRepository,
        SongCacheRepository,
        VoiceConnectionRepository,
    )
    from ..infrastructure.audio.download_supervisor import DownloadSupervisor
    from ..infrastructure.audio.extractor import ExtractorLocator
    from ..infrastructure.persistence.cleanup import CleanupJob
    from ..infrastructure.persistence.database import Database
    from .settings import Settings

T = TypeVar("T")


class Container:
    """Lazily wired object graph for one bot process."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._bot: Bot | None = None
        self._instances: dict[str, Any] = {}

    def _once(self, name: str, build: Callable[[], T]) -> T:
        if name not in self._instances:
            self._instances[name] = build()
            logger.debug("Built %s", name)
        return self._instances[name]

    def set_bot(self, bot: Bot) -> None:
        self._bot = bot

    @property
    def bot(self) -> Bot:
        if self._bot is None:
            raise RuntimeError("No bot attached; call set_bot() before using voice components")
        return self._bot

    # Persistence

    @property
    def database(self) -> Database:
        def build() -> Database:
            from ..infrastructure.persistence.database import Database

            return Database(self.settings.database.url, settings=self.settings.database)

        return self._once("database", build)

    @property
    def queue_repository(self) -> QueueRepository:
        def build() -> QueueRepository:
            from ..infrastructure.persistence.repositories.queue_repository import (
                SQLiteQueueRepository,
            )

            return SQLiteQueueRepository(self.database)

        return self._once("queue_repository", build)

    @property
    def voice_repository(self) -> VoiceConnectionRepository:
        def build() -> VoiceConnectionRepository:
            from ..infrastructure.persistence.repositories.voice_connection_repository import (
                SQLiteVoiceConnectionRepository,
            )

            return SQLiteVoiceConnectionRepository(self.database)

        return self._once("voice_repository", build)

    @property
    def cache_repository(self) -> SongCacheRepository:
        def build() -> SongCacheRepository:
            from ..infrastructure.persistence.repositories.song_cache_repository import (
                SQLiteSongCacheRepository,
            )

            return SQLiteSongCacheRepository(self.database)

        return self._once("cache_repository", build)

    @property
    def history_repository(self) -> QueueHistoryRepository:
        def build() -> QueueHistoryRepository:
            from ..infrastructure.persistence.repositories.history_repository import (
                SQLiteQueueHistoryRepository,
            )

            return SQLiteQueueHistoryRepository(self.database)

        return self._once("history_repository", build)

    # Audio

    @property
    def extractor_locator(self) -> ExtractorLocator:
        def build() -> ExtractorLocator:
            from ..infrastructure.audio.extractor import ExtractorLocator

            return ExtractorLocator(self.settings.downloads)

        return self._once("extractor_locator", build)

    @property
    def download_supervisor(self) -> DownloadSupervisor:
        def build() -> DownloadSupervisor:
            from ..infrastructure.audio.download_supervisor import DownloadSupervisor

            return DownloadSupervisor(
                self.extractor_locator,
                self.settings.downloads,
                cache_repository=self.cache_repository,
            )

        return self._once("download_supervisor", build)

    # Voice

    @property
    def voice_adapter(self) -> VoiceAdapter:
        def build() -> VoiceAdapter:
            from ..infrastructure.discord.adapters.voice_adapter import DiscordVoiceAdapter

            return DiscordVoiceAdapter(self.bot, self.settings.audio)

        return self._once("voice_adapter", build)

    @property
    def voice_service(self) -> VoiceConnectionService:
        def build() -> VoiceConnectionService:
            from ..application.services.voice_connection_service import VoiceConnectionService

            return VoiceConnectionService(
                voice_adapter=self.voice_adapter,
                voice_repository=self.voice_repository,
            )

        return self._once("voice_service", build)

    @property
    def track_completion(self) -> TrackCompletionHandler:
        def build() -> TrackCompletionHandler:
            from ..application.services.track_completion import TrackCompletionHandler

            return TrackCompletionHandler(
                queue_repository=self.queue_repository,
                voice_repository=self.voice_repository,
                voice_adapter=self.voice_adapter,
                guild_locks=self.voice_service.guild_locks,
            )

        return self._once("track_completion", build)

    # Commands and queries

    @property
    def play_track_handler(self) -> PlayTrackHandler:
        def build() -> PlayTrackHandler:
            from ..application.commands.play_track import PlayTrackHandler

            return PlayTrackHandler(
                voice_service=self.voice_service,
                voice_adapter=self.voice_adapter,
                downloader=self.download_supervisor,
                queue_repository=self.queue_repository,
                voice_repository=self.voice_repository,
                cache_repository=self.cache_repository,
                history_repository=self.history_repository,
            )

        return self._once("play_track_handler", build)

    @property
    def skip_track_handler(self) -> SkipTrackHandler:
        def build() -> SkipTrackHandler:
            from ..application.commands.skip_track import SkipTrackHandler

            return SkipTrackHandler(voice_adapter=self.voice_adapter)

        return self._once("skip_track_handler", build)

    @property
    def stop_playback_handler(self) -> StopPlaybackHandler:
        def build() -> StopPlaybackHandler:
            from ..application.commands.stop_playback import StopPlaybackHandler

            return StopPlaybackHandler(
                voice_adapter=self.voice_adapter,
                voice_service=self.voice_service,
                queue_repository=self.queue_repository,
            )

        return self._once("stop_playback_handler", build)

    @property
    def get_queue_handler(self) -> GetQueueHandler:
        def build() -> GetQueueHandler:
            from ..application.queries.get_queue import GetQueueHandler

            return GetQueueHandler(queue_repository=self.queue_repository)

        return self._once("get_queue_handler", build)

    # Background jobs

    @property
    def voice_reconciler(self) -> VoiceReconciler:
        def build() -> VoiceReconciler:
            from ..application.services.voice_reconciler import VoiceReconciler

            return VoiceReconciler(
                voice_repository=self.voice_repository,
                voice_service=self.voice_service,
                voice_adapter=self.voice_adapter,
            )

        return self._once("voice_reconciler", build)

    @property
    def cleanup_job(self) -> CleanupJob:
        def build() -> CleanupJob:
            from ..infrastructure.persistence.cleanup import CleanupJob

            return CleanupJob(
                history_repository=self.history_repository,
                cache_repository=self.cache_repository,
                settings=self.settings.cleanup,
            )

        return self._once("cleanup_job", build)

    @property
    def metrics_collector(self) -> MetricsCollector:
        def build() -> MetricsCollector:
            from ..application.services.metrics_collector import MetricsCollector

            return MetricsCollector(
                download_root=self.download_supervisor.cache_root,
                queue_repository=self.queue_repository,
                scan_interval_seconds=self.settings.cleanup.scan_interval_seconds,
            )

        return self._once("metrics_collector", build)

    # Lifecycle

    async def initialize(self) -> None:
        await self.database.initialize()

    async def shutdown(self) -> None:
        database = self._instances.get("database")
        if database is not None:
            await database.close()
        self._instances.clear()


def create_container(settings: Settings) -> Container:
    return Container(settings)
