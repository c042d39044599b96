"""Infrastructure layer - external systems integration.

This layer contains implementations for:
- Persistence (SQLite repositories, cleanup job)
- Discord (bot, cogs, voice adapter)
- Audio (yt-dlp acquisition, metadata extraction, download jobs)
"""

from lyre_bot.infrastructure.discord.adapters.voice_adapter import DiscordVoiceAdapter
from lyre_bot.infrastructure.discord.bot import create_bot
from lyre_bot.infrastructure.persistence.database import Database

__all__ = [
    "create_bot",
    "DiscordVoiceAdapter",
    "Database",
]
