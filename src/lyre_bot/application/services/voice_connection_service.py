"""Voice Connection Service - joins, leaves and records voice sessions per guild."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from ...domain.shared.constants import VoiceTimings
from ...domain.shared.events import BotJoinedVoiceChannel, BotLeftVoiceChannel, EventBus, get_event_bus
from ...domain.shared.exceptions import JoinError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ...domain.shared.types import DiscordSnowflake

if TYPE_CHECKING:
    from ...domain.playback.entities import VoiceConnectionRecord
    from ...domain.playback.repository import VoiceConnectionRepository
    from ..interfaces.voice_adapter import VoiceAdapter

logger = logging.getLogger(__name__)


class GuildLocks:
    """One asyncio lock per guild, created on first use.

    Holding a guild's lock grants exclusive ownership of the check-then-join
    sequence for that guild.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}

    def get(self, guild_id: int) -> asyncio.Lock:
        lock = self._locks.get(guild_id)
        if lock is None:
            lock = self._locks[guild_id] = asyncio.Lock()
        return lock

    def is_locked(self, guild_id: int) -> bool:
        lock = self._locks.get(guild_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, guild_id: int) -> AsyncIterator[None]:
        async with self.get(guild_id):
            yield


class VoiceConnectionService:
    """Coordinates the voice adapter with persisted voice connection records."""

    def __init__(
        self,
        *,
        voice_adapter: VoiceAdapter,
        voice_repository: VoiceConnectionRepository,
        guild_locks: GuildLocks | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._voice_adapter = voice_adapter
        self._voice_repo = voice_repository
        self._locks = guild_locks or GuildLocks()
        self._event_bus = event_bus or get_event_bus()

    @property
    def guild_locks(self) -> GuildLocks:
        return self._locks

    async def join_with_retry(
        self, guild_id: DiscordSnowflake, channel_id: DiscordSnowflake
    ) -> bool:
        """Ensure a live voice session exists for the guild.

        An existing session in any channel satisfies the request; the bot is
        never moved. Otherwise up to ``MAX_JOIN_ATTEMPTS`` joins are made with
        capped exponential backoff between them.

        Returns:
            True if a new session was established, False if one already existed.

        Raises:
            JoinError: If every attempt failed. The caller decides what to do
                with the persisted record.
        """
        async with self._locks.hold(guild_id):
            current = self._voice_adapter.get_current_channel_id(guild_id)
            if current is not None:
                logger.info(LogTemplates.VOICE_ALREADY_CONNECTED, guild_id, current)
                await self._touch(guild_id)
                return False

            max_attempts = VoiceTimings.MAX_JOIN_ATTEMPTS
            for attempt in range(1, max_attempts + 1):
                logger.info(LogTemplates.VOICE_JOIN_ATTEMPT, channel_id, guild_id, attempt, max_attempts)

                try:
                    connected = await self._voice_adapter.connect(guild_id, channel_id)
                except Exception as e:
                    logger.warning(LogTemplates.VOICE_CLIENT_ERROR, e)
                    connected = False

                if connected:
                    logger.info(LogTemplates.VOICE_JOIN_SUCCEEDED, channel_id, guild_id, attempt)
                    await self._record_joined(guild_id, channel_id)
                    await self._event_bus.publish(
                        BotJoinedVoiceChannel(guild_id=guild_id, channel_id=channel_id)
                    )
                    return True

                if attempt < max_attempts:
                    delay_ms = VoiceTimings.backoff_ms(attempt)
                    logger.warning(LogTemplates.VOICE_JOIN_RETRY, attempt, guild_id, delay_ms)
                    await asyncio.sleep(delay_ms / 1000)

            logger.error(LogTemplates.VOICE_JOIN_EXHAUSTED, channel_id, guild_id, max_attempts)
            raise JoinError(
                guild_id,
                channel_id,
                max_attempts,
                ErrorMessages.JOIN_FAILED.format(channel_id=channel_id, attempts=max_attempts),
            )

    async def request_join(
        self, guild_id: DiscordSnowflake, channel_id: DiscordSnowflake
    ) -> VoiceConnectionRecord:
        """Persist a fresh join desire for the reconciler to act on."""
        return await self._voice_repo.request_join(str(guild_id), str(channel_id))

    async def leave(self, guild_id: DiscordSnowflake, reason: str = "stopped") -> None:
        """Disconnect, forget the record and announce the departure."""
        async with self._locks.hold(guild_id):
            await self._voice_adapter.disconnect(guild_id)
            await self._voice_repo.delete(str(guild_id))

        await self._event_bus.publish(BotLeftVoiceChannel(guild_id=guild_id, reason=reason))

    async def forget(self, guild_id: DiscordSnowflake) -> None:
        """Delete the persisted record after a failed join."""
        await self._voice_repo.delete(str(guild_id))

    async def _record_joined(self, guild_id: int, channel_id: int) -> None:
        try:
            await self._voice_repo.upsert(str(guild_id), str(channel_id))
        except Exception as e:
            logger.warning(LogTemplates.VOICE_RECORD_UPDATE_FAILED, guild_id, e)

    async def _touch(self, guild_id: int) -> None:
        try:
            await self._voice_repo.update_last_activity(str(guild_id))
        except Exception as e:
            logger.warning(LogTemplates.VOICE_RECORD_UPDATE_FAILED, guild_id, e)
