"""
Playback Domain Repository Interfaces

Abstract base classes defining the contracts for data persistence.
Implementations live in the infrastructure layer. Every method is atomic on
its own; no transaction spans two calls.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from lyre_bot.domain.playback.entities import (
    CacheEntry,
    QueueEntry,
    QueueHistoryEntry,
    VoiceConnectionRecord,
)


class QueueRepository(ABC):
    """Durable, per-guild, position-ordered queue of tracks."""

    @abstractmethod
    async def add(
        self,
        guild_id: int,
        url: str,
        title: str | None,
        duration_seconds: int | None,
        added_by: str,
    ) -> QueueEntry:
        """Append a track at ``max(position) + 1`` (or 0 for an empty queue).

        Returns:
            The stored entry, including its assigned position.
        """
        ...

    @abstractmethod
    async def get_queue(self, guild_id: int) -> list[QueueEntry]:
        """Get all entries for a guild in ascending position order."""
        ...

    @abstractmethod
    async def get_current(self, guild_id: int) -> QueueEntry | None:
        """Get the entry at position 0, or None if the queue is empty."""
        ...

    @abstractmethod
    async def advance(self, guild_id: int) -> None:
        """Remove the position-0 entry and shift every other entry down by one.

        A no-op for an empty queue.
        """
        ...

    @abstractmethod
    async def clear(self, guild_id: int) -> int:
        """Delete every entry for a guild. Returns the number removed."""
        ...

    @abstractmethod
    async def count(self, guild_id: int) -> int:
        ...

    @abstractmethod
    async def count_all(self) -> int:
        """Total number of queued entries across every guild."""
        ...


class VoiceConnectionRepository(ABC):
    """Persisted join desires and observed voice connections, one per guild."""

    @abstractmethod
    async def get(self, guild_id: str) -> VoiceConnectionRecord | None:
        ...

    @abstractmethod
    async def request_join(self, guild_id: str, channel_id: str) -> VoiceConnectionRecord:
        """Replace any record for the guild with a fresh join desire (connected_at = now)."""
        ...

    @abstractmethod
    async def upsert(self, guild_id: str, channel_id: str | None) -> VoiceConnectionRecord:
        """Create the record, or update its channel and last activity if it exists."""
        ...

    @abstractmethod
    async def get_pending_joins(self) -> list[VoiceConnectionRecord]:
        """All records with a non-null channel id."""
        ...

    @abstractmethod
    async def get_all(self) -> list[VoiceConnectionRecord]:
        ...

    @abstractmethod
    async def update_last_activity(self, guild_id: str) -> bool:
        ...

    @abstractmethod
    async def update_playing_status(
        self,
        guild_id: str,
        is_playing: bool,
        current_track_title: str | None,
        *,
        clear_channel: bool = False,
    ) -> bool:
        """Update playing flag and title. Returns False if no record exists."""
        ...

    @abstractmethod
    async def delete(self, guild_id: str) -> bool:
        ...

    @abstractmethod
    async def clear_all(self) -> int:
        """Delete every record. Returns the number removed."""
        ...


class SongCacheRepository(ABC):
    """Records of downloaded audio files keyed by content id."""

    @abstractmethod
    async def record(self, entry: CacheEntry) -> None:
        """Insert or replace the record for ``entry.content_id``."""
        ...

    @abstractmethod
    async def get(self, content_id: str) -> CacheEntry | None:
        ...

    @abstractmethod
    async def find_by_url(self, url: str) -> CacheEntry | None:
        """Most recently accessed record for a source URL."""
        ...

    @abstractmethod
    async def touch(self, content_id: str) -> bool:
        """Refresh ``last_accessed``. Returns False if no record exists."""
        ...

    @abstractmethod
    async def set_title(self, url: str, title: str) -> int:
        ...

    @abstractmethod
    async def get_older_than(self, cutoff: datetime) -> list[CacheEntry]:
        ...

    @abstractmethod
    async def delete(self, content_id: str) -> bool:
        ...

    @abstractmethod
    async def total_size(self) -> int:
        ...


class QueueHistoryRepository(ABC):
    """Append-only log of accepted play requests."""

    @abstractmethod
    async def record(
        self,
        guild_id: int,
        user_id: str,
        url: str,
        title: str | None,
        duration_seconds: int | None = None,
    ) -> None:
        ...

    @abstractmethod
    async def get_recent_for_guild(self, guild_id: int, limit: int = 10) -> list[QueueHistoryEntry]:
        ...

    @abstractmethod
    async def get_recent_for_user(self, user_id: str, limit: int = 10) -> list[QueueHistoryEntry]:
        ...

    @abstractmethod
    async def cleanup_old(self, older_than: datetime) -> int:
        ...
