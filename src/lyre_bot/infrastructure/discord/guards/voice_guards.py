"""Reusable guard functions for Discord slash commands.

These are free functions that accept explicit dependencies rather than relying
on a specific cog instance, making them usable from any cog.
"""

from __future__ import annotations

import discord

from lyre_bot.domain.shared.messages import DiscordUIMessages


async def send_ephemeral(interaction: discord.Interaction, message: str) -> None:
    """Send an ephemeral message, handling both fresh and already-responded interactions."""
    if interaction.response.is_done():
        await interaction.followup.send(message, ephemeral=True)
    else:
        await interaction.response.send_message(message, ephemeral=True)


async def get_member(interaction: discord.Interaction) -> discord.Member | None:
    """Validate that the interaction comes from a guild member. Returns None with error on failure."""
    if not interaction.guild:
        await send_ephemeral(interaction, DiscordUIMessages.STATE_SERVER_ONLY)
        return None

    user = interaction.user
    if not isinstance(user, discord.Member):
        await send_ephemeral(interaction, DiscordUIMessages.STATE_VERIFY_VOICE_FAILED)
        return None

    return user


async def get_member_voice_channel(
    interaction: discord.Interaction,
) -> discord.VoiceChannel | discord.StageChannel | None:
    """The caller's voice channel. Returns None with error if they are not in one."""
    member = await get_member(interaction)
    if member is None:
        return None

    if not member.voice or not member.voice.channel:
        await send_ephemeral(interaction, DiscordUIMessages.STATE_MUST_BE_IN_VOICE)
        return None

    return member.voice.channel


async def check_voice_permissions(
    interaction: discord.Interaction,
    channel: discord.VoiceChannel | discord.StageChannel,
) -> bool:
    """Whether the bot may join and speak in ``channel``. Explains the missing permission if not."""
    me = channel.guild.me
    if me is None:
        await send_ephemeral(interaction, DiscordUIMessages.STATE_BOT_NOT_MEMBER)
        return False

    permissions = channel.permissions_for(me)
    if not permissions.connect:
        await send_ephemeral(interaction, DiscordUIMessages.STATE_MISSING_CONNECT)
        return False
    if not permissions.speak:
        await send_ephemeral(interaction, DiscordUIMessages.STATE_MISSING_SPEAK)
        return False

    return True
