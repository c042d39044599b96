"""Background yt-dlp download jobs with progress streaming and a content-addressed cache.

A job resolves a URL to ``<cache root>/<content id>.mp3``. When that file
already exists the job finishes immediately with a single 100% progress event;
otherwise yt-dlp runs in a private job directory and the produced file is moved
into the cache. Progress events are parsed from yt-dlp's stderr.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import time
from pathlib import Path

from lyre_bot.application.interfaces.audio_downloader import AudioDownloader
from lyre_bot.config.settings import DownloadSettings
from lyre_bot.domain.playback.download_job import DownloadJob
from lyre_bot.domain.playback.entities import CacheEntry
from lyre_bot.domain.playback.repository import SongCacheRepository
from lyre_bot.domain.playback.value_objects import ContentId, DownloadState
from lyre_bot.domain.shared.constants import ExtractorConfig
from lyre_bot.domain.shared.exceptions import DomainError, DownloadError, NoOutputError
from lyre_bot.domain.shared.messages import ErrorMessages, LogTemplates

from .extractor import ExtractorLocator

logger = logging.getLogger(__name__)

_DIGITS_AND_DOT = frozenset("0123456789.")
_STDOUT_CHUNK = 64 * 1024


def parse_percent(line: str) -> int | None:
    """Extract an integer percentage from a yt-dlp progress line.

    Takes the run of digits and dots right before the first ``%``, rounds it
    and clamps it to ``0..100``. Lines without a parsable number yield None.
    """
    idx = line.find("%")
    if idx < 0:
        return None

    start = idx
    while start > 0 and line[start - 1] in _DIGITS_AND_DOT:
        start -= 1

    try:
        value = float(line[start:idx])
    except ValueError:
        return None
    return max(0, min(100, round(value)))


class DownloadSupervisor(AudioDownloader):
    """Spawns download jobs against a shared extractor and cache root."""

    def __init__(
        self,
        locator: ExtractorLocator,
        settings: DownloadSettings | None = None,
        cache_repository: SongCacheRepository | None = None,
    ) -> None:
        self._locator = locator
        self._settings = settings or DownloadSettings()
        self._cache_repository = cache_repository

    def cache_root(self) -> Path:
        """Directory holding cached mp3 files.

        ``download_folder`` when configured (relative paths are taken from the
        working directory), else ``downloads`` beside the cached extractor.
        """
        configured = self._settings.download_folder
        if configured:
            path = Path(configured)
            return path if path.is_absolute() else Path.cwd() / path
        return self._locator.binary_dir() / ExtractorConfig.DOWNLOADS_DIR_NAME

    def spawn_download(self, url: str) -> DownloadJob:
        """Start downloading ``url`` in the background and return its job handle."""
        job = DownloadJob(url=url)
        job.task = asyncio.create_task(self._run(job), name=f"download:{url}")
        job.task.add_done_callback(_consume_exception)
        return job

    async def extract_title(self, url: str) -> str:
        return await self._locator.extract_title(url)

    async def _run(self, job: DownloadJob) -> Path:
        try:
            path = await self._download(job)
        except asyncio.CancelledError:
            job.state = DownloadState.FAILED
            job.reason = "cancelled"
            raise
        except DomainError as e:
            job.state = DownloadState.FAILED
            job.reason = e.message
            logger.warning(LogTemplates.DOWNLOAD_FAILED, job.url, e.message)
            raise
        except OSError as e:
            job.state = DownloadState.FAILED
            job.reason = str(e)
            logger.warning(LogTemplates.DOWNLOAD_FAILED, job.url, e)
            raise DownloadError(str(e)) from e
        finally:
            job.progress.close()

        job.state = DownloadState.SUCCEEDED
        job.path = path
        return path

    async def _download(self, job: DownloadJob) -> Path:
        binary = await self._locator.ensure_extractor()

        root = self.cache_root()
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DownloadError(ErrorMessages.DOWNLOAD_DIR_FAILED.format(path=root, error=e)) from e

        content_id = await self._resolve_content_id(binary, job.url)
        job.content_id = content_id.value

        target = root / content_id.file_name
        if target.exists():
            logger.info(LogTemplates.DOWNLOAD_CACHE_HIT, job.url, target)
            job.forward(100)
            await self._touch_cache(content_id, job.url, target)
            return target

        job_dir = root / f"{ExtractorConfig.JOB_DIR_PREFIX}{time.time_ns()}"
        job_dir.mkdir(parents=True, exist_ok=True)
        logger.info(LogTemplates.DOWNLOAD_STARTED, job.url, job_dir)

        keep_job_dir = False
        try:
            await self._run_extractor(job, binary, job_dir)
            produced = _newest_mp3(job_dir)
            final = _move_into_cache(produced, target)
            keep_job_dir = final != target
        finally:
            if not keep_job_dir:
                _remove_job_dir(job_dir)

        if final == target:
            await self._record_cache(content_id, job.url, target)

        logger.info(LogTemplates.DOWNLOAD_FINISHED, job.url, final)
        return final

    async def _resolve_content_id(self, binary: Path, url: str) -> ContentId:
        try:
            return ContentId(await self._locator.extract_id(binary, url))
        except (DomainError, ValueError) as e:
            fallback = ContentId.fallback(time.time_ns())
            logger.warning(LogTemplates.DOWNLOAD_ID_FALLBACK, url, fallback, e)
            return fallback

    async def _run_extractor(self, job: DownloadJob, binary: Path, job_dir: Path) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                str(binary),
                *ExtractorConfig.DOWNLOAD_ARGS,
                "-o",
                str(job_dir / ExtractorConfig.OUTPUT_TEMPLATE),
                job.url,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise DownloadError(ErrorMessages.EXTRACTOR_SPAWN_FAILED.format(error=e)) from e

        timeout = self._settings.timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                await asyncio.gather(
                    self._pump_progress(job, proc.stderr),
                    _drain(proc.stdout),
                )
                returncode = await proc.wait()
        except TimeoutError:
            logger.warning(LogTemplates.DOWNLOAD_TIMED_OUT, job.url, timeout)
            await _kill(proc)
            raise DownloadError(ErrorMessages.DOWNLOAD_TIMEOUT.format(seconds=timeout)) from None
        except asyncio.CancelledError:
            await _kill(proc)
            raise

        if returncode != 0:
            raise DownloadError(ErrorMessages.DOWNLOAD_EXIT_STATUS.format(code=returncode))

    async def _pump_progress(self, job: DownloadJob, stream: asyncio.StreamReader | None) -> None:
        try:
            if stream is None:
                return
            async for raw in stream:
                percent = parse_percent(raw.decode("utf-8", errors="replace"))
                if percent is not None:
                    job.forward(percent)
        finally:
            # No more progress once stderr is closed; the job may still be running.
            job.progress.close()

    async def _touch_cache(self, content_id: ContentId, url: str, path: Path) -> None:
        if self._cache_repository is None:
            return
        try:
            if not await self._cache_repository.touch(content_id.value):
                await self._record_cache(content_id, url, path)
        except Exception as e:
            logger.warning(LogTemplates.CACHE_TOUCH_FAILED, content_id, e)

    async def _record_cache(self, content_id: ContentId, url: str, path: Path) -> None:
        if self._cache_repository is None:
            return
        try:
            await self._cache_repository.record(
                CacheEntry(
                    content_id=content_id.value,
                    url=url,
                    file_path=str(path),
                    size_bytes=path.stat().st_size,
                )
            )
        except Exception as e:
            logger.warning(LogTemplates.CACHE_RECORD_FAILED, content_id, e)


def _consume_exception(task: asyncio.Task[Path]) -> None:
    # Failures are logged by the job itself; awaiting callers still see them.
    if not task.cancelled():
        task.exception()


async def _drain(stream: asyncio.StreamReader | None) -> None:
    if stream is None:
        return
    while await stream.read(_STDOUT_CHUNK):
        pass


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()


def _newest_mp3(job_dir: Path) -> Path:
    candidates = [p for p in job_dir.iterdir() if p.suffix == ExtractorConfig.AUDIO_EXTENSION]
    if not candidates:
        raise NoOutputError(ErrorMessages.DOWNLOAD_NO_OUTPUT.format(path=job_dir))
    return max(candidates, key=lambda p: p.stat().st_mtime)


def _move_into_cache(produced: Path, target: Path) -> Path:
    """Place ``produced`` at ``target``; returns wherever the audio ends up."""
    if target.exists():
        return target

    try:
        os.replace(produced, target)
        return target
    except OSError as e:
        logger.warning(LogTemplates.DOWNLOAD_MOVE_FAILED, produced, e)

    try:
        shutil.copy2(produced, target)
        return target
    except OSError as e:
        logger.warning(LogTemplates.DOWNLOAD_COPY_FAILED, produced, e)
        with contextlib.suppress(OSError):
            target.unlink(missing_ok=True)
        return produced


def _remove_job_dir(job_dir: Path) -> None:
    try:
        shutil.rmtree(job_dir)
    except OSError as e:
        logger.warning(LogTemplates.DOWNLOAD_JOB_DIR_CLEANUP_FAILED, job_dir, e)
