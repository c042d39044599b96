"""Advances the durable queue when the voice driver reports a finished track."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...domain.shared.events import EventBus, QueueExhausted, TrackFinishedPlaying, get_event_bus
from ...domain.shared.messages import LogTemplates
from ...domain.shared.types import DiscordSnowflake
from .voice_connection_service import GuildLocks

if TYPE_CHECKING:
    from ...domain.playback.repository import QueueRepository, VoiceConnectionRepository
    from ..interfaces.voice_adapter import VoiceAdapter

logger = logging.getLogger(__name__)


class TrackCompletionHandler:
    """Track-end hook registered on the voice adapter.

    Position 0 is removed and the rest shift down. An empty queue ends the
    voice session: the bot disconnects and the record's channel is cleared so
    the reconciler does not rejoin. The session is ended under the guild's
    join lock, so a join in progress is never torn down halfway. Status
    updates are best effort.
    """

    def __init__(
        self,
        *,
        queue_repository: QueueRepository,
        voice_repository: VoiceConnectionRepository,
        voice_adapter: VoiceAdapter,
        guild_locks: GuildLocks | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._queue_repo = queue_repository
        self._voice_repo = voice_repository
        self._voice_adapter = voice_adapter
        self._locks = guild_locks or GuildLocks()
        self._event_bus = event_bus or get_event_bus()
        self._notice_channels: dict[int, int] = {}

    def register(self) -> None:
        self._voice_adapter.set_on_track_end_callback(self.on_track_end)

    def remember_text_channel(
        self, guild_id: DiscordSnowflake, channel_id: DiscordSnowflake
    ) -> None:
        """Send the guild's queue-finished notice to ``channel_id``."""
        self._notice_channels[guild_id] = channel_id

    async def on_track_end(self, guild_id: DiscordSnowflake) -> None:
        try:
            await self._queue_repo.advance(guild_id)
        except Exception as e:
            logger.warning(LogTemplates.TRACK_COMPLETION_ADVANCE_FAILED, guild_id, e)

        remaining = await self._queue_repo.count(guild_id)
        await self._event_bus.publish(TrackFinishedPlaying(guild_id=guild_id, remaining=remaining))

        if remaining == 0:
            await self._end_session(guild_id)
            return

        current = await self._queue_repo.get_current(guild_id)
        await self._update_status(guild_id, True, current.title if current else None)

    async def _end_session(self, guild_id: int) -> None:
        async with self._locks.hold(guild_id):
            # A /play holding the lock before us may have started a new file.
            if self._voice_adapter.is_playing(guild_id) or await self._queue_repo.count(guild_id):
                logger.info(LogTemplates.QUEUE_EXHAUSTED_SESSION_KEPT, guild_id)
                return

            logger.info(LogTemplates.QUEUE_EXHAUSTED, guild_id)
            await self._voice_adapter.disconnect(guild_id)
            await self._update_status(guild_id, False, None, clear_channel=True)

        await self._event_bus.publish(
            QueueExhausted(
                guild_id=guild_id,
                text_channel_id=self._notice_channels.pop(guild_id, None),
            )
        )

    async def _update_status(
        self,
        guild_id: int,
        is_playing: bool,
        title: str | None,
        *,
        clear_channel: bool = False,
    ) -> None:
        try:
            await self._voice_repo.update_playing_status(
                str(guild_id), is_playing, title, clear_channel=clear_channel
            )
        except Exception as e:
            logger.warning(LogTemplates.STATUS_UPDATE_FAILED, guild_id, e)
