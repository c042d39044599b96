"""
Skip Track Command

Command and handler for skipping the file that is currently playing.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from lyre_bot.domain.shared.messages import DiscordUIMessages, LogTemplates
from lyre_bot.domain.shared.types import DiscordSnowflake

if TYPE_CHECKING:
    from ..interfaces.voice_adapter import VoiceAdapter

logger = logging.getLogger(__name__)


class SkipStatus(Enum):
    """Status codes for skip results."""

    SUCCESS = "success"
    NOTHING_PLAYING = "nothing_playing"
    NOT_CONNECTED = "not_connected"


class SkipTrackCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    guild_id: DiscordSnowflake


class SkipResult(BaseModel):
    """Result of a skip track command."""

    status: SkipStatus
    message: str

    @property
    def is_success(self) -> bool:
        return self.status == SkipStatus.SUCCESS

    @classmethod
    def success(cls) -> SkipResult:
        return cls(status=SkipStatus.SUCCESS, message=DiscordUIMessages.ACTION_SKIPPED)

    @classmethod
    def error(cls, status: SkipStatus, message: str) -> SkipResult:
        return cls(status=status, message=message)


class SkipTrackHandler:
    """Stops the current file; the voice adapter starts the next one.

    The durable queue is advanced by the track-end hook, not here.
    """

    def __init__(self, *, voice_adapter: VoiceAdapter) -> None:
        self._voice_adapter = voice_adapter

    async def handle(self, command: SkipTrackCommand) -> SkipResult:
        if not self._voice_adapter.is_connected(command.guild_id):
            return SkipResult.error(SkipStatus.NOT_CONNECTED, DiscordUIMessages.STATE_NOT_CONNECTED)

        if not await self._voice_adapter.skip(command.guild_id):
            return SkipResult.error(
                SkipStatus.NOTHING_PLAYING, DiscordUIMessages.STATE_NOTHING_TO_SKIP
            )

        logger.info(LogTemplates.PLAYBACK_SKIPPED, command.guild_id)
        return SkipResult.success()
