"""Locate, install and invoke the yt-dlp executable.

The binary is taken from PATH when available (the ``yt-dlp`` distribution
installs a console script), otherwise from a per-user cache directory, and as
a last resort downloaded from the latest GitHub release.
"""

from __future__ import annotations

import asyncio
import logging
import os
import platform
import shutil
import sys
from pathlib import Path

import httpx
from pydantic import ValidationError as PydanticValidationError

from lyre_bot.config.settings import DownloadSettings
from lyre_bot.domain.shared.constants import ExtractorConfig
from lyre_bot.domain.shared.exceptions import AcquisitionError, ExtractionError
from lyre_bot.domain.shared.messages import ErrorMessages, LogTemplates

from .models import ReleaseInfo

logger = logging.getLogger(__name__)

_X64_MACHINES = frozenset({"amd64", "x86_64", "x64"})


def platform_asset_name(system: str | None = None, machine: str | None = None) -> str:
    """Name of the release asset that runs on the given (or current) platform."""
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()

    if system == "windows":
        if machine in _X64_MACHINES:
            return ExtractorConfig.ASSET_WINDOWS_X64
        return ExtractorConfig.ASSET_WINDOWS_X86
    if system == "linux":
        return ExtractorConfig.ASSET_LINUX
    if system == "darwin":
        return ExtractorConfig.ASSET_MACOS
    return ExtractorConfig.ASSET_GENERIC


def binary_file_name(system: str | None = None) -> str:
    system = (system or platform.system()).lower()
    if system == "windows":
        return f"{ExtractorConfig.BINARY_NAME}.exe"
    return ExtractorConfig.BINARY_NAME


def user_cache_dir() -> Path | None:
    """Per-user cache directory for the current platform, or None if unresolvable."""
    if sys.platform == "win32":
        local = os.environ.get("LOCALAPPDATA")
        return Path(local) if local else None

    try:
        home = Path.home()
    except RuntimeError:
        home = None

    if sys.platform == "darwin":
        return home / "Library" / "Caches" if home else None

    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return home / ".cache" if home else None


class ExtractorLocator:
    """Resolves the yt-dlp executable once and runs metadata queries against it."""

    def __init__(
        self,
        settings: DownloadSettings | None = None,
        *,
        cache_dir: Path | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or DownloadSettings()
        self._cache_dir = cache_dir
        self._transport = transport
        self._lock = asyncio.Lock()
        self._resolved: Path | None = None

    def binary_dir(self) -> Path:
        """``<user cache dir>/lyre/yt-dlp``; also the parent of the default downloads folder.

        Raises:
            AcquisitionError: If no user cache directory can be determined.
        """
        if self._cache_dir is not None:
            return self._cache_dir

        base = user_cache_dir()
        if base is None:
            raise AcquisitionError(ErrorMessages.NO_CACHE_DIR)
        return base / ExtractorConfig.APP_CACHE_NAME / ExtractorConfig.BINARY_NAME

    async def ensure_extractor(self) -> Path:
        """Return a path to a runnable yt-dlp, installing it if necessary.

        Concurrent callers share a single installation attempt; the result is
        memoized for the lifetime of the locator.

        Raises:
            AcquisitionError: If the binary is neither installed nor downloadable.
        """
        async with self._lock:
            if self._resolved is not None:
                return self._resolved

            on_path = shutil.which(ExtractorConfig.BINARY_NAME)
            if on_path:
                logger.debug(LogTemplates.EXTRACTOR_ON_PATH, on_path)
                self._resolved = Path(on_path)
                return self._resolved

            directory = self.binary_dir()
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise AcquisitionError(
                    ErrorMessages.ASSET_WRITE_FAILED.format(path=directory, error=e)
                ) from e

            local = directory / binary_file_name()
            if local.exists():
                logger.debug(LogTemplates.EXTRACTOR_CACHED, local)
                self._resolved = local
                return local

            await self._install(local)
            self._resolved = local
            return local

    async def _install(self, target: Path) -> None:
        wanted = platform_asset_name()

        async with httpx.AsyncClient(
            timeout=self._settings.http_timeout_s,
            headers={"User-Agent": ExtractorConfig.USER_AGENT},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            try:
                response = await client.get(
                    self._settings.release_api_url,
                    headers={"Accept": ExtractorConfig.GITHUB_ACCEPT},
                )
            except httpx.HTTPError as e:
                raise AcquisitionError(ErrorMessages.RELEASE_REQUEST_FAILED.format(error=e)) from e

            if not response.is_success:
                raise AcquisitionError(
                    ErrorMessages.RELEASE_HTTP_STATUS.format(status=response.status_code)
                )

            try:
                release = ReleaseInfo.model_validate(response.json())
            except (ValueError, PydanticValidationError) as e:
                raise AcquisitionError(ErrorMessages.RELEASE_REQUEST_FAILED.format(error=e)) from e

            asset = release.find_asset(wanted)
            if asset is None:
                raise AcquisitionError(ErrorMessages.NO_MATCHING_ASSET.format(asset=wanted))

            logger.info(LogTemplates.EXTRACTOR_DOWNLOADING, asset.name)
            try:
                download = await client.get(asset.browser_download_url)
                download.raise_for_status()
            except httpx.HTTPError as e:
                raise AcquisitionError(
                    ErrorMessages.ASSET_DOWNLOAD_FAILED.format(asset=asset.name, error=e)
                ) from e

        try:
            await asyncio.to_thread(_write_executable, target, download.content)
        except OSError as e:
            raise AcquisitionError(
                ErrorMessages.ASSET_WRITE_FAILED.format(path=target, error=e)
            ) from e

        logger.info(LogTemplates.EXTRACTOR_INSTALLED, target)

    async def extract_id(self, binary: Path, url: str) -> str:
        """Stable media id for ``url`` as reported by ``yt-dlp --print id``."""
        return await print_field(binary, "id", url)

    async def extract_title(self, url: str) -> str:
        """Human-readable title for ``url``; resolves the binary itself."""
        binary = await self.ensure_extractor()
        return await print_field(binary, "title", url)


def _write_executable(target: Path, content: bytes) -> None:
    # Write beside the target and rename so a half-written binary is never picked up.
    partial = target.with_name(target.name + ".part")
    partial.write_bytes(content)
    if os.name != "nt":
        partial.chmod(0o755)
    os.replace(partial, target)


async def print_field(binary: Path, field: str, url: str) -> str:
    """Run ``yt-dlp --print <field> --skip-download -q <url>`` and return trimmed stdout.

    Raises:
        ExtractionError: On spawn failure, non-zero exit, or empty output.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            str(binary),
            "--print",
            field,
            *ExtractorConfig.PRINT_FIELD_ARGS,
            url,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ExtractionError(field, ErrorMessages.EXTRACTOR_SPAWN_FAILED.format(error=e)) from e

    stdout, stderr = await proc.communicate()

    if proc.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip()
        logger.debug(LogTemplates.EXTRACTION_FAILED, field, url, detail)
        raise ExtractionError(
            field, ErrorMessages.EXTRACTOR_EXITED.format(code=proc.returncode, stderr=detail)
        )

    value = stdout.decode("utf-8", errors="replace").strip()
    if not value:
        raise ExtractionError(field, ErrorMessages.EXTRACTOR_EMPTY_OUTPUT.format(field=field, url=url))
    return value
