"""Audio infrastructure - yt-dlp acquisition, metadata extraction and download jobs."""

from lyre_bot.infrastructure.audio.download_supervisor import DownloadSupervisor, parse_percent
from lyre_bot.infrastructure.audio.extractor import ExtractorLocator, print_field
from lyre_bot.infrastructure.audio.models import ReleaseAsset, ReleaseInfo

__all__ = [
    "DownloadSupervisor",
    "ExtractorLocator",
    "ReleaseAsset",
    "ReleaseInfo",
    "parse_percent",
    "print_field",
]
