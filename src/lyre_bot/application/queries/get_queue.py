"""Query for retrieving a guild's durable queue."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from lyre_bot.domain.playback.entities import QueueEntry
from lyre_bot.domain.shared.types import DiscordSnowflake, NonNegativeInt

if TYPE_CHECKING:
    from ...domain.playback.repository import QueueRepository


class GetQueueQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    guild_id: DiscordSnowflake


class QueueInfo(BaseModel):

    guild_id: DiscordSnowflake
    entries: list[QueueEntry] = Field(default_factory=list)
    total_duration: NonNegativeInt = 0

    @property
    def current(self) -> QueueEntry | None:
        if self.entries and self.entries[0].is_current:
            return self.entries[0]
        return None

    @property
    def upcoming(self) -> list[QueueEntry]:
        return [entry for entry in self.entries if not entry.is_current]

    @property
    def length(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0


class GetQueueHandler:

    def __init__(self, *, queue_repository: QueueRepository) -> None:
        self._queue_repo = queue_repository

    async def handle(self, query: GetQueueQuery) -> QueueInfo:
        entries = await self._queue_repo.get_queue(query.guild_id)

        total_duration = sum(
            e.duration_seconds for e in entries if e.duration_seconds is not None
        )

        return QueueInfo(
            guild_id=query.guild_id,
            entries=entries,
            total_duration=total_duration,
        )
