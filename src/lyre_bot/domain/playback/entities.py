"""Core domain entities for the playback bounded context."""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from ..shared.datetime_utils import utcnow
from ..shared.types import (
    DiscordSnowflake,
    DurationSeconds,
    FileBytes,
    NonEmptyStr,
    ProgressPercent,
    QueuePositionInt,
    SnowflakeStr,
    TrackTitleStr,
    UtcDatetimeField,
)


class QueueEntry(BaseModel):
    """A track in a guild's durable queue; position 0 is the now-playing slot."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    guild_id: DiscordSnowflake
    position: QueuePositionInt
    url: NonEmptyStr
    title: TrackTitleStr | None = None
    duration_seconds: DurationSeconds | None = None
    added_by: NonEmptyStr
    added_at: UtcDatetimeField = Field(default_factory=utcnow)

    @property
    def is_current(self) -> bool:
        return self.position == 0

    @property
    def display_title(self) -> str:
        return self.title or self.url

    @property
    def duration_formatted(self) -> str:
        """Format duration as MM:SS or HH:MM:SS."""
        if self.duration_seconds is None:
            return "Streaming"

        hours, remainder = divmod(self.duration_seconds, 3600)
        minutes, seconds = divmod(remainder, 60)

        if hours > 0:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}"


class VoiceConnectionRecord(BaseModel):
    """Persisted voice connection state for a guild.

    A record with a channel id that is younger than the staleness threshold
    is a pending join desire. Once the live session is confirmed the same
    record describes the observed connection.

    Ids are kept as the stored strings; the reconciler parses them.
    """

    model_config = ConfigDict(frozen=True)

    guild_id: SnowflakeStr
    channel_id: SnowflakeStr | None = None
    connected_at: UtcDatetimeField = Field(default_factory=utcnow)
    last_activity: UtcDatetimeField = Field(default_factory=utcnow)
    is_playing: bool = False
    current_track_title: str | None = None

    def age(self, now: datetime | None = None) -> timedelta:
        return (now or utcnow()) - self.connected_at

    def is_stale(self, threshold_seconds: int, now: datetime | None = None) -> bool:
        return self.age(now) > timedelta(seconds=threshold_seconds)


class CacheEntry(BaseModel):
    """A downloaded audio file addressed by its content id."""

    model_config = ConfigDict(frozen=True)

    content_id: NonEmptyStr
    url: NonEmptyStr
    title: TrackTitleStr | None = None
    file_path: NonEmptyStr
    size_bytes: FileBytes = 0
    last_accessed: UtcDatetimeField = Field(default_factory=utcnow)
    created_at: UtcDatetimeField = Field(default_factory=utcnow)


class QueueHistoryEntry(BaseModel):
    """Append-only record of an accepted play request."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    guild_id: DiscordSnowflake
    user_id: NonEmptyStr
    url: NonEmptyStr
    title: TrackTitleStr | None = None
    duration_seconds: DurationSeconds | None = None
    played_at: UtcDatetimeField = Field(default_factory=utcnow)


class DownloadProgress(BaseModel):
    """A single progress update forwarded from a download job."""

    model_config = ConfigDict(frozen=True)

    percent: ProgressPercent
