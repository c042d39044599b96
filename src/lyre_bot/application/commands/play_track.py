"""Command and handler for playing a media URL in a guild's voice channel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, field_validator

from lyre_bot.domain.playback.entities import QueueEntry
from lyre_bot.domain.shared.constants import UIConstants
from lyre_bot.domain.shared.events import EventBus, TrackAddedToQueue, get_event_bus
from lyre_bot.domain.shared.exceptions import DomainError, JoinError
from lyre_bot.domain.shared.messages import LogTemplates
from lyre_bot.domain.shared.types import DiscordSnowflake, NonEmptyStr, NonNegativeInt

if TYPE_CHECKING:
    from ...domain.playback.download_job import DownloadJob
    from ...domain.playback.repository import (
        QueueHistoryRepository,
        QueueRepository,
        SongCacheRepository,
        VoiceConnectionRepository,
    )
    from ..interfaces.audio_downloader import AudioDownloader
    from ..interfaces.voice_adapter import VoiceAdapter
    from ..services.voice_connection_service import VoiceConnectionService

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], Awaitable[None]]


class PlayTrackStatus(Enum):
    """Status codes for play track results."""

    NOW_PLAYING = "now_playing"
    QUEUED = "queued"
    VOICE_ERROR = "voice_error"
    DOWNLOAD_ERROR = "download_error"
    PLAYBACK_ERROR = "playback_error"


class PlayTrackCommand(BaseModel):
    """Request to download a URL and queue it for playback."""

    model_config = ConfigDict(frozen=True, strict=True)

    guild_id: DiscordSnowflake
    channel_id: DiscordSnowflake
    user_id: DiscordSnowflake
    url: NonEmptyStr

    @field_validator("url", mode="before")
    @classmethod
    def _strip_url(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v


class PlayTrackResult(BaseModel):
    """Result of a play track command."""

    model_config = ConfigDict(frozen=True)

    status: PlayTrackStatus
    message: str
    title: str | None = None
    path: Path | None = None
    entry: QueueEntry | None = None
    files_ahead: NonNegativeInt = 0

    @property
    def is_success(self) -> bool:
        return self.status in {PlayTrackStatus.NOW_PLAYING, PlayTrackStatus.QUEUED}

    @property
    def started_playing(self) -> bool:
        return self.status is PlayTrackStatus.NOW_PLAYING

    @classmethod
    def success(
        cls,
        title: str,
        path: Path,
        entry: QueueEntry | None,
        files_ahead: int,
    ) -> PlayTrackResult:
        if files_ahead == 0:
            status = PlayTrackStatus.NOW_PLAYING
            message = f"Now playing: {title}"
        else:
            status = PlayTrackStatus.QUEUED
            message = f"Added to queue: {title} (position {files_ahead + 1})"

        return cls(
            status=status,
            message=message,
            title=title,
            path=path,
            entry=entry,
            files_ahead=files_ahead,
        )

    @classmethod
    def error(cls, status: PlayTrackStatus, message: str) -> PlayTrackResult:
        return cls(status=status, message=message)


class PlayTrackHandler:
    """Joins voice, downloads the track and hands the file to the voice adapter.

    Only the join, the download and the hand-off can fail the request. The
    bookkeeping that follows (history, queue row, playing status, cached
    title) is logged on failure and never surfaces to the caller.
    """

    def __init__(
        self,
        *,
        voice_service: VoiceConnectionService,
        voice_adapter: VoiceAdapter,
        downloader: AudioDownloader,
        queue_repository: QueueRepository,
        voice_repository: VoiceConnectionRepository,
        cache_repository: SongCacheRepository,
        history_repository: QueueHistoryRepository,
        event_bus: EventBus | None = None,
    ) -> None:
        self._voice_service = voice_service
        self._voice_adapter = voice_adapter
        self._downloader = downloader
        self._queue_repo = queue_repository
        self._voice_repo = voice_repository
        self._cache_repo = cache_repository
        self._history_repo = history_repository
        self._event_bus = event_bus or get_event_bus()

    async def handle(
        self,
        command: PlayTrackCommand,
        on_progress: ProgressCallback | None = None,
    ) -> PlayTrackResult:
        logger.info(LogTemplates.PLAY_REQUESTED, command.url, command.guild_id, command.user_id)

        try:
            await self._voice_service.join_with_retry(command.guild_id, command.channel_id)
        except JoinError as e:
            await self._voice_service.forget(command.guild_id)
            return PlayTrackResult.error(PlayTrackStatus.VOICE_ERROR, e.message)

        job = self._downloader.spawn_download(command.url)
        title_lookup = await self._start_title_lookup(command.url)

        try:
            await self._forward_progress(command.guild_id, job, on_progress)
            path = await job.result()
        except DomainError as e:
            if isinstance(title_lookup, asyncio.Task):
                title_lookup.cancel()
            return PlayTrackResult.error(PlayTrackStatus.DOWNLOAD_ERROR, e.message)

        title = await self._resolve_title(command.url, title_lookup)

        try:
            files_ahead = await self._voice_adapter.enqueue(command.guild_id, path, title)
        except DomainError as e:
            return PlayTrackResult.error(PlayTrackStatus.PLAYBACK_ERROR, e.message)

        await self._record_history(command, title)
        entry = await self._add_to_queue(command, title)
        await self._mark_playing(command.guild_id, title, started=files_ahead == 0)
        await self._store_title(command.url, title)

        await self._event_bus.publish(
            TrackAddedToQueue(
                guild_id=command.guild_id,
                track_title=title,
                queue_position=entry.position if entry else files_ahead,
            )
        )

        return PlayTrackResult.success(title, path, entry, files_ahead)

    async def _start_title_lookup(self, url: str) -> asyncio.Task[str] | str:
        try:
            cached = await self._cache_repo.find_by_url(url)
        except Exception as e:
            logger.warning(LogTemplates.CACHE_TITLE_FAILED, url, e)
            cached = None

        if cached is not None and cached.title:
            logger.debug(LogTemplates.PLAY_TITLE_CACHED, url, cached.title)
            return cached.title

        return asyncio.create_task(self._downloader.extract_title(url))

    async def _resolve_title(self, url: str, lookup: asyncio.Task[str] | str) -> str:
        if isinstance(lookup, str):
            return lookup
        try:
            title = await lookup
        except DomainError as e:
            logger.warning(LogTemplates.PLAY_TITLE_FAILED, url, e.message)
            return UIConstants.UNKNOWN_TITLE
        return title or UIConstants.UNKNOWN_TITLE

    async def _forward_progress(
        self,
        guild_id: int,
        job: DownloadJob,
        on_progress: ProgressCallback | None,
    ) -> None:
        async for event in job.progress:
            if on_progress is None:
                continue
            try:
                await on_progress(event.percent)
            except Exception as e:
                logger.warning(LogTemplates.PLAY_PROGRESS_CALLBACK_FAILED, guild_id, e)

    async def _record_history(self, command: PlayTrackCommand, title: str) -> None:
        try:
            await self._history_repo.record(
                command.guild_id, str(command.user_id), command.url, title
            )
        except Exception as e:
            logger.warning(LogTemplates.PLAY_HISTORY_FAILED, command.guild_id, e)

    async def _add_to_queue(self, command: PlayTrackCommand, title: str) -> QueueEntry | None:
        try:
            return await self._queue_repo.add(
                command.guild_id, command.url, title, None, str(command.user_id)
            )
        except Exception as e:
            logger.warning(LogTemplates.PLAY_QUEUE_ADD_FAILED, command.guild_id, e)
            return None

    async def _mark_playing(self, guild_id: int, title: str, *, started: bool) -> None:
        try:
            if started:
                await self._voice_repo.update_playing_status(str(guild_id), True, title)
            else:
                await self._voice_repo.update_last_activity(str(guild_id))
        except Exception as e:
            logger.warning(LogTemplates.STATUS_UPDATE_FAILED, guild_id, e)

    async def _store_title(self, url: str, title: str) -> None:
        if title == UIConstants.UNKNOWN_TITLE:
            return
        try:
            await self._cache_repo.set_title(url, title)
        except Exception as e:
            logger.warning(LogTemplates.CACHE_TITLE_FAILED, url, e)
