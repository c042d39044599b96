"""Discord cogs - command handlers."""

from lyre_bot.infrastructure.discord.cogs.music_cog import MusicCog

__all__ = [
    "MusicCog",
]
