"""Port interface for Discord voice operations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from pathlib import Path

from lyre_bot.domain.shared.types import DiscordSnowflake


class VoiceAdapter(ABC):
    """Interface for Discord voice channel operations.

    Each guild has its own playback queue of local audio files. When a file
    finishes (or is skipped) the adapter starts the next file, then invokes
    the track-end callback.
    """

    @abstractmethod
    def get_current_channel_id(self, guild_id: DiscordSnowflake) -> DiscordSnowflake | None:
        """Get the current voice channel ID, or None if not connected."""
        ...

    @abstractmethod
    def is_connected(self, guild_id: DiscordSnowflake) -> bool:
        ...

    @abstractmethod
    def is_playing(self, guild_id: DiscordSnowflake) -> bool:
        """True while a file is being played in the guild."""
        ...

    @abstractmethod
    async def connect(self, guild_id: DiscordSnowflake, channel_id: DiscordSnowflake) -> bool:
        """Make a single attempt to join a voice channel."""
        ...

    @abstractmethod
    async def disconnect(self, guild_id: DiscordSnowflake) -> bool:
        """Leave voice in a guild and drop its pending files."""
        ...

    @abstractmethod
    async def enqueue(self, guild_id: DiscordSnowflake, path: Path, title: str) -> int:
        """Queue an audio file, starting it at once if nothing is playing.

        Returns:
            The number of files ahead of this one (0 means it started playing).
        """
        ...

    @abstractmethod
    async def skip(self, guild_id: DiscordSnowflake) -> bool:
        """Stop the current file so the next one starts. False if nothing is playing."""
        ...

    @abstractmethod
    async def stop(self, guild_id: DiscordSnowflake) -> bool:
        """Stop playback and drop every pending file without firing the callback."""
        ...

    @abstractmethod
    def set_on_track_end_callback(
        self,
        callback: Callable[[DiscordSnowflake], Awaitable[None]],
    ) -> None:
        """Set callback for when a track ends."""
        ...
