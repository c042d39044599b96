"""Port interface for media download and metadata lookup."""

from __future__ import annotations

from abc import ABC, abstractmethod

from lyre_bot.domain.playback.download_job import DownloadJob


class AudioDownloader(ABC):
    """Interface for turning a media URL into a cached local audio file."""

    @abstractmethod
    def spawn_download(self, url: str) -> DownloadJob:
        """Start a background download and return its job handle immediately.

        Progress events are read from ``job.progress``; the final path (or the
        failure) comes from ``await job.result()``.
        """
        ...

    @abstractmethod
    async def extract_title(self, url: str) -> str:
        """Ask the extractor for the media title.

        Raises:
            DomainError: If the extractor is unavailable or prints nothing.
        """
        ...
