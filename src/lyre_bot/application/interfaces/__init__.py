"""
Application Interfaces (Ports)

Abstract interfaces that define contracts between the application
layer and infrastructure adapters. These are the "ports" in
hexagonal architecture.
"""

from lyre_bot.application.interfaces.audio_downloader import AudioDownloader
from lyre_bot.application.interfaces.voice_adapter import VoiceAdapter

__all__ = [
    "AudioDownloader",
    "VoiceAdapter",
]
