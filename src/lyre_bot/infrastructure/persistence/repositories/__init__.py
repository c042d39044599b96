"""SQLite repository implementations."""

from lyre_bot.infrastructure.persistence.repositories.history_repository import (
    SQLiteQueueHistoryRepository,
)
from lyre_bot.infrastructure.persistence.repositories.queue_repository import (
    SQLiteQueueRepository,
)
from lyre_bot.infrastructure.persistence.repositories.song_cache_repository import (
    SQLiteSongCacheRepository,
)
from lyre_bot.infrastructure.persistence.repositories.voice_connection_repository import (
    SQLiteVoiceConnectionRepository,
)

__all__ = [
    "SQLiteQueueRepository",
    "SQLiteVoiceConnectionRepository",
    "SQLiteSongCacheRepository",
    "SQLiteQueueHistoryRepository",
]
