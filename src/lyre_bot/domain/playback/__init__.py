"""
Playback Bounded Context

Durable queue entries, voice connection records, cached downloads and the
in-memory download job handle.
"""

from lyre_bot.domain.playback.download_job import DownloadJob, ProgressStream
from lyre_bot.domain.playback.entities import (
    CacheEntry,
    DownloadProgress,
    QueueEntry,
    QueueHistoryEntry,
    VoiceConnectionRecord,
)
from lyre_bot.domain.playback.value_objects import ContentId, DownloadState

__all__ = [
    # Entities
    "QueueEntry",
    "VoiceConnectionRecord",
    "CacheEntry",
    "QueueHistoryEntry",
    "DownloadProgress",
    # Value objects
    "ContentId",
    "DownloadState",
    # Jobs
    "DownloadJob",
    "ProgressStream",
]
