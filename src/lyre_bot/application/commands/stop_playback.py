"""Command and handler for stopping playback, clearing the queue and leaving voice."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from lyre_bot.domain.shared.events import EventBus, QueueCleared, get_event_bus
from lyre_bot.domain.shared.messages import DiscordUIMessages, LogTemplates
from lyre_bot.domain.shared.types import DiscordSnowflake, NonNegativeInt

if TYPE_CHECKING:
    from ...domain.playback.repository import QueueRepository
    from ..interfaces.voice_adapter import VoiceAdapter
    from ..services.voice_connection_service import VoiceConnectionService

logger = logging.getLogger(__name__)


class StopStatus(Enum):
    """Status codes for stop results."""

    SUCCESS = "success"
    NOT_CONNECTED = "not_connected"


class StopPlaybackCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    guild_id: DiscordSnowflake


class StopResult(BaseModel):

    status: StopStatus
    message: str
    tracks_cleared: NonNegativeInt = 0

    @property
    def is_success(self) -> bool:
        return self.status == StopStatus.SUCCESS

    @classmethod
    def success(cls, tracks_cleared: int = 0) -> StopResult:
        return cls(
            status=StopStatus.SUCCESS,
            message=DiscordUIMessages.ACTION_STOPPED,
            tracks_cleared=tracks_cleared,
        )

    @classmethod
    def error(cls, status: StopStatus, message: str) -> StopResult:
        return cls(status=status, message=message)


class StopPlaybackHandler:

    def __init__(
        self,
        *,
        voice_adapter: VoiceAdapter,
        voice_service: VoiceConnectionService,
        queue_repository: QueueRepository,
        event_bus: EventBus | None = None,
    ) -> None:
        self._voice_adapter = voice_adapter
        self._voice_service = voice_service
        self._queue_repo = queue_repository
        self._event_bus = event_bus or get_event_bus()

    async def handle(self, command: StopPlaybackCommand) -> StopResult:
        if not self._voice_adapter.is_connected(command.guild_id):
            return StopResult.error(StopStatus.NOT_CONNECTED, DiscordUIMessages.STATE_NOT_CONNECTED)

        # Stop first so the pending files do not trigger queue advances.
        await self._voice_adapter.stop(command.guild_id)
        logger.info(LogTemplates.PLAYBACK_STOPPED, command.guild_id)

        tracks_cleared = await self._queue_repo.clear(command.guild_id)
        await self._event_bus.publish(
            QueueCleared(guild_id=command.guild_id, track_count=tracks_cleared)
        )

        await self._voice_service.leave(command.guild_id, reason="stopped")
        return StopResult.success(tracks_cleared)
