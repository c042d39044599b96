"""
Application Commands (CQRS Write Side)

Command objects and their handlers for write operations.
Commands represent intent to change the system state.
"""

from lyre_bot.application.commands.play_track import (
    PlayTrackCommand,
    PlayTrackHandler,
    PlayTrackResult,
    PlayTrackStatus,
)
from lyre_bot.application.commands.skip_track import SkipResult, SkipTrackCommand, SkipTrackHandler
from lyre_bot.application.commands.stop_playback import (
    StopPlaybackCommand,
    StopPlaybackHandler,
    StopResult,
)

__all__ = [
    # Play
    "PlayTrackCommand",
    "PlayTrackHandler",
    "PlayTrackResult",
    "PlayTrackStatus",
    # Skip
    "SkipTrackCommand",
    "SkipTrackHandler",
    "SkipResult",
    # Stop
    "StopPlaybackCommand",
    "StopPlaybackHandler",
    "StopResult",
]
