"""In-memory download job handle and its progress stream."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path

from ..shared.exceptions import DownloadError
from ..shared.messages import ErrorMessages
from .entities import DownloadProgress
from .value_objects import DownloadState


class ProgressStream:
    """Single-producer stream of progress events for one download job.

    Iterate with ``async for``; iteration ends once the extractor closes its
    progress pipe, which can be before the job itself finishes. Abandoning
    the stream does not affect the job.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[DownloadProgress | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, percent: int) -> None:
        if not self._closed:
            self._queue.put_nowait(DownloadProgress(percent=percent))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[DownloadProgress]:
        return self

    async def __anext__(self) -> DownloadProgress:
        item = await self._queue.get()
        if item is None:
            # Keep the end marker so later iterations stop too.
            self._queue.put_nowait(None)
            raise StopAsyncIteration
        return item


@dataclass
class DownloadJob:
    """In-memory handle for a running download."""

    url: str
    progress: ProgressStream = field(default_factory=ProgressStream)
    state: DownloadState = DownloadState.RUNNING
    path: Path | None = None
    reason: str | None = None
    content_id: str | None = None
    last_progress_percent: int = -1
    task: asyncio.Task[Path] | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.state is not DownloadState.RUNNING

    async def result(self) -> Path:
        """Wait for the job and return the audio file path.

        Raises:
            DomainError: The failure that ended the job, or DownloadError if
                the job was never started.
        """
        if self.task is None:
            raise DownloadError(ErrorMessages.DOWNLOAD_NOT_STARTED.format(url=self.url))
        return await self.task

    def forward(self, percent: int) -> None:
        """Emit ``percent`` unless it repeats the previous event."""
        if percent != self.last_progress_percent:
            self.last_progress_percent = percent
            self.progress.emit(percent)

