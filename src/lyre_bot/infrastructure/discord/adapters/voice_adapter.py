"""discord.py implementation of the VoiceAdapter port."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

import discord

from lyre_bot.application.interfaces.voice_adapter import VoiceAdapter
from lyre_bot.config.settings import AudioSettings
from lyre_bot.domain.shared.exceptions import PlaybackError
from lyre_bot.domain.shared.messages import ErrorMessages, LogTemplates

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT: float = 10.0

TrackEndCallback = Callable[[int], Awaitable[None]]


@dataclass
class _GuildPlayback:
    """Files waiting behind the current one in a single guild."""

    pending: deque[tuple[Path, str]] = field(default_factory=deque)
    title: str | None = None
    # The next end-of-file report was caused by stop()/disconnect(), not a finished track.
    stopping: bool = False


class DiscordVoiceAdapter(VoiceAdapter):
    """Plays cached audio files through discord.py voice clients.

    FFmpeg reports the end of a file on its own thread. The report is moved
    onto the bot loop, the next pending file is started, then the track-end
    callback runs.
    """

    def __init__(self, bot: discord.Client, settings: AudioSettings | None = None) -> None:
        self._bot = bot
        audio = settings or AudioSettings()
        self._volume = audio.default_volume
        self._before_options = audio.ffmpeg_options.get("before_options", "")
        self._options = audio.ffmpeg_options.get("options", "")
        self._callback: TrackEndCallback | None = None
        self._guilds: dict[int, _GuildPlayback] = {}

    def _state(self, guild_id: int) -> _GuildPlayback:
        return self._guilds.setdefault(guild_id, _GuildPlayback())

    def _voice_client(self, guild_id: int) -> discord.VoiceClient | None:
        guild = self._bot.get_guild(guild_id)
        client = guild.voice_client if guild else None
        return client if isinstance(client, discord.VoiceClient) else None

    @staticmethod
    def _busy(client: discord.VoiceClient) -> bool:
        return client.is_playing() or client.is_paused()

    # Connection

    async def connect(self, guild_id: int, channel_id: int) -> bool:
        guild = self._bot.get_guild(guild_id)
        if guild is None:
            logger.warning(LogTemplates.GUILD_NOT_FOUND, guild_id)
            return False

        channel = guild.get_channel(channel_id)
        if not isinstance(channel, discord.VoiceChannel | discord.StageChannel):
            logger.warning(LogTemplates.CHANNEL_NOT_VOICE, channel_id)
            return False

        try:
            async with asyncio.timeout(CONNECT_TIMEOUT):
                await channel.connect(self_deaf=True)
        except TimeoutError:
            logger.error(LogTemplates.VOICE_CONNECTION_TIMEOUT, channel_id)
            return False
        except discord.Forbidden:
            logger.error(LogTemplates.VOICE_NO_PERMISSION, channel_id)
            return False
        except discord.ClientException as e:
            logger.error(LogTemplates.VOICE_CLIENT_ERROR, e)
            return False
        except Exception:
            logger.exception("Voice connect to %s failed", channel_id)
            return False

        logger.info(LogTemplates.VOICE_CONNECTED, channel.name, guild.name)
        return True

    async def disconnect(self, guild_id: int) -> bool:
        state = self._guilds.pop(guild_id, None)
        client = self._voice_client(guild_id)
        if client is None:
            return True

        if self._busy(client):
            # The end-of-file report still arrives after the state is gone.
            self._state(guild_id).stopping = True

        try:
            await client.disconnect(force=True)
        except Exception:
            logger.exception("Voice disconnect in guild %s failed", guild_id)
            return False

        logger.info(LogTemplates.VOICE_DISCONNECTED, guild_id)
        if state is not None and state.pending:
            logger.debug("Dropped %d pending file(s) for guild %s", len(state.pending), guild_id)
        return True

    # Playback

    async def enqueue(self, guild_id: int, path: Path, title: str) -> int:
        client = self._voice_client(guild_id)
        if client is None:
            logger.warning(LogTemplates.VOICE_NOT_CONNECTED, guild_id)
            raise PlaybackError(guild_id, ErrorMessages.VOICE_NOT_CONNECTED.format(guild_id=guild_id))

        state = self._state(guild_id)
        if state.title is not None or self._busy(client):
            state.pending.append((path, title))
            logger.info(LogTemplates.PLAYBACK_FILE_QUEUED, title, guild_id, len(state.pending))
            return len(state.pending)

        self._play(client, guild_id, path, title)
        return 0

    def _play(self, client: discord.VoiceClient, guild_id: int, path: Path, title: str) -> None:
        loop = self._bot.loop

        def on_file_end(error: Exception | None = None) -> None:
            # Runs on the FFmpeg reader thread.
            if error:
                logger.warning(LogTemplates.PLAYBACK_ERROR, guild_id, error)
            else:
                logger.info(LogTemplates.TRACK_ENDED, guild_id, error)
            asyncio.run_coroutine_threadsafe(self._handle_track_end(guild_id), loop)

        try:
            source = discord.PCMVolumeTransformer(
                discord.FFmpegPCMAudio(
                    str(path), before_options=self._before_options, options=self._options
                ),
                volume=self._volume,
            )
            client.play(source, after=on_file_end)
        except discord.ClientException as e:
            logger.error(LogTemplates.PLAYBACK_FAILED_START, e)
            raise PlaybackError(
                guild_id, ErrorMessages.PLAYBACK_START_FAILED.format(error=e)
            ) from e

        self._state(guild_id).title = title
        logger.info(LogTemplates.PLAYBACK_STARTED, title, guild_id)

    async def skip(self, guild_id: int) -> bool:
        client = self._voice_client(guild_id)
        if client is None or not self._busy(client):
            return False
        # on_file_end starts the next file and advances the queue.
        client.stop()
        return True

    async def stop(self, guild_id: int) -> bool:
        state = self._state(guild_id)
        state.pending.clear()
        state.title = None

        client = self._voice_client(guild_id)
        if client is not None and self._busy(client):
            state.stopping = True
            client.stop()
            logger.info(LogTemplates.PLAYBACK_STOPPED, guild_id)
        return True

    async def _handle_track_end(self, guild_id: int) -> None:
        state = self._state(guild_id)
        state.title = None

        if state.stopping:
            state.stopping = False
            logger.debug(LogTemplates.PLAYBACK_IGNORING_CALLBACK, guild_id)
            return

        skipped = self._play_next(guild_id, state)

        if self._callback is None:
            logger.warning(LogTemplates.PLAYBACK_NO_CALLBACK, guild_id)
            return

        # One report for the finished file and one per file that would not start.
        for _ in range(1 + skipped):
            logger.debug(LogTemplates.PLAYBACK_CALLING_CALLBACK, guild_id)
            try:
                await self._callback(guild_id)
            except Exception as e:
                logger.error(LogTemplates.PLAYBACK_CALLBACK_ERROR, guild_id, e)

    def _play_next(self, guild_id: int, state: _GuildPlayback) -> int:
        """Start the first pending file that plays; returns how many were dropped."""
        client = self._voice_client(guild_id)
        if client is None:
            return 0
        skipped = 0
        while state.pending:
            path, title = state.pending.popleft()
            try:
                self._play(client, guild_id, path, title)
            except PlaybackError as e:
                logger.warning(LogTemplates.PLAYBACK_FILE_SKIPPED, title, guild_id, e.message)
                skipped += 1
            else:
                break
        return skipped

    # Accessors

    def is_connected(self, guild_id: int) -> bool:
        client = self._voice_client(guild_id)
        return client is not None and client.is_connected()

    def is_playing(self, guild_id: int) -> bool:
        client = self._voice_client(guild_id)
        return client is not None and client.is_playing()

    def get_current_channel_id(self, guild_id: int) -> int | None:
        client = self._voice_client(guild_id)
        channel = client.channel if client else None
        return channel.id if channel else None

    def get_current_title(self, guild_id: int) -> str | None:
        state = self._guilds.get(guild_id)
        return state.title if state else None

    def pending_count(self, guild_id: int) -> int:
        state = self._guilds.get(guild_id)
        return len(state.pending) if state else 0

    def set_on_track_end_callback(self, callback: TrackEndCallback) -> None:
        self._callback = callback
