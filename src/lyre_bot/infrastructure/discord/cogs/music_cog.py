"""Slash-command music cog delegating to application command handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from lyre_bot.application.commands.play_track import PlayTrackCommand, PlayTrackResult
from lyre_bot.application.commands.skip_track import SkipTrackCommand
from lyre_bot.application.commands.stop_playback import StopPlaybackCommand
from lyre_bot.application.queries.get_queue import GetQueueQuery, QueueInfo
from lyre_bot.domain.shared.constants import UIConstants
from lyre_bot.domain.shared.events import QueueExhausted, get_event_bus
from lyre_bot.domain.shared.messages import DiscordUIMessages, ErrorMessages, LogTemplates
from lyre_bot.infrastructure.discord.guards.voice_guards import (
    check_voice_permissions,
    get_member_voice_channel,
    send_ephemeral,
)
from lyre_bot.utils.reply import format_duration, text_bar, truncate

if TYPE_CHECKING:
    from ....config.container import Container

logger = logging.getLogger(__name__)

EMBED_COLOUR = 0x1DB954
FINISHED_COLOUR = 0x808080


class MusicCog(commands.Cog):
    def __init__(self, bot: commands.Bot, container: Container) -> None:
        self.bot = bot
        self.container = container

    async def cog_load(self) -> None:
        get_event_bus().subscribe(QueueExhausted, self._on_queue_exhausted)

    async def cog_unload(self) -> None:
        get_event_bus().unsubscribe(QueueExhausted, self._on_queue_exhausted)

    # ─────────────────────────────────────────────────────────────────
    # Play
    # ─────────────────────────────────────────────────────────────────

    @app_commands.command(name="play", description="Play audio from a URL in your voice channel.")
    @app_commands.describe(url="Media URL supported by yt-dlp")
    async def play(self, interaction: discord.Interaction, url: str) -> None:
        channel = await get_member_voice_channel(interaction)
        if channel is None or interaction.guild is None:
            return
        if not await check_voice_permissions(interaction, channel):
            return

        await interaction.response.defer()
        if interaction.channel_id is not None:
            self.container.track_completion.remember_text_channel(
                interaction.guild.id, interaction.channel_id
            )

        async def on_progress(percent: int) -> None:
            await interaction.edit_original_response(
                content=DiscordUIMessages.PROGRESS_DOWNLOADING.format(
                    bar=text_bar(percent), percent=percent
                )
            )

        command = PlayTrackCommand(
            guild_id=interaction.guild.id,
            channel_id=channel.id,
            user_id=interaction.user.id,
            url=url,
        )
        result = await self.container.play_track_handler.handle(command, on_progress=on_progress)

        if not result.is_success:
            await interaction.edit_original_response(
                content=DiscordUIMessages.ERROR_PLAY_FAILED.format(reason=result.message)
            )
            return

        await interaction.edit_original_response(content="", embed=self._build_play_embed(url, result))

    def _build_play_embed(self, url: str, result: PlayTrackResult) -> discord.Embed:
        title = (
            DiscordUIMessages.EMBED_NOW_PLAYING
            if result.started_playing
            else DiscordUIMessages.EMBED_QUEUED
        )
        position = result.entry.position if result.entry else result.files_ahead
        embed = discord.Embed(
            title=title,
            description=truncate(result.title or UIConstants.UNKNOWN_TITLE, 200),
            url=url,
            colour=EMBED_COLOUR,
        )
        embed.set_footer(
            text=DiscordUIMessages.EMBED_QUEUE_FOOTER.format(
                position=position, duration=format_duration(None)
            )
        )
        return embed

    # ─────────────────────────────────────────────────────────────────
    # Next / Stop
    # ─────────────────────────────────────────────────────────────────

    @app_commands.command(name="next", description="Skip to the next queued track.")
    async def next(self, interaction: discord.Interaction) -> None:
        if interaction.guild is None:
            await send_ephemeral(interaction, DiscordUIMessages.STATE_SERVER_ONLY)
            return

        await interaction.response.defer()
        result = await self.container.skip_track_handler.handle(
            SkipTrackCommand(guild_id=interaction.guild.id)
        )
        await interaction.edit_original_response(content=result.message)

    @app_commands.command(name="stop", description="Stop playback and clear the queue.")
    async def stop(self, interaction: discord.Interaction) -> None:
        if interaction.guild is None:
            await send_ephemeral(interaction, DiscordUIMessages.STATE_SERVER_ONLY)
            return

        await interaction.response.defer()
        result = await self.container.stop_playback_handler.handle(
            StopPlaybackCommand(guild_id=interaction.guild.id)
        )
        await interaction.edit_original_response(content=result.message)

    # ─────────────────────────────────────────────────────────────────
    # Queue
    # ─────────────────────────────────────────────────────────────────

    @app_commands.command(name="queue", description="Show the tracks waiting to play.")
    async def queue(self, interaction: discord.Interaction) -> None:
        if interaction.guild is None:
            await send_ephemeral(interaction, DiscordUIMessages.STATE_SERVER_ONLY)
            return

        info = await self.container.get_queue_handler.handle(
            GetQueueQuery(guild_id=interaction.guild.id)
        )
        if info.is_empty:
            await interaction.response.send_message(DiscordUIMessages.STATE_QUEUE_EMPTY)
            return

        await interaction.response.send_message(embed=build_queue_embed(info))

    # ─────────────────────────────────────────────────────────────────
    # Queue finished
    # ─────────────────────────────────────────────────────────────────

    async def _on_queue_exhausted(self, event: QueueExhausted) -> None:
        if event.text_channel_id is None:
            return
        channel = self.bot.get_channel(event.text_channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            return
        try:
            await channel.send(embed=build_queue_finished_embed())
        except discord.HTTPException as e:
            logger.warning(LogTemplates.QUEUE_FINISHED_NOTICE_FAILED, event.text_channel_id, e)


def build_queue_embed(info: QueueInfo) -> discord.Embed:
    limit = UIConstants.QUEUE_DISPLAY_LIMIT
    lines = []
    for entry in info.entries[:limit]:
        marker = "▶" if entry.is_current else f"{entry.position}."
        lines.append(f"{marker} {truncate(entry.display_title, 80)}")
    if info.length > limit:
        lines.append(DiscordUIMessages.EMBED_QUEUE_MORE.format(count=info.length - limit))

    return discord.Embed(
        title=DiscordUIMessages.EMBED_QUEUE.format(total_tracks=info.length),
        description="\n".join(lines),
        colour=EMBED_COLOUR,
    )


def build_queue_finished_embed() -> discord.Embed:
    return discord.Embed(
        title=DiscordUIMessages.EMBED_QUEUE_FINISHED,
        description=DiscordUIMessages.EMBED_QUEUE_FINISHED_DESCRIPTION,
        colour=FINISHED_COLOUR,
    )


async def setup(bot: commands.Bot) -> None:
    container = getattr(bot, "container", None)
    if container is None:
        raise RuntimeError(ErrorMessages.CONTAINER_NOT_FOUND)

    await bot.add_cog(MusicCog(bot, container))
