"""
Tests for the Download Supervisor

Runs download jobs against a fake yt-dlp shell script:
- Progress lines parsed, de-duplicated and streamed in order
- Content-addressed cache hits skip the extractor entirely
- Extractor failures, missing output and timeouts fail the job
- Rename and copy fallbacks when placing the file in the cache
"""

import asyncio
import os
import stat
from pathlib import Path

import pytest

from lyre_bot.config.settings import DownloadSettings
from lyre_bot.domain.playback.value_objects import DownloadState
from lyre_bot.domain.shared.exceptions import DownloadError, NoOutputError
from lyre_bot.infrastructure.audio.download_supervisor import DownloadSupervisor, parse_percent
from lyre_bot.infrastructure.audio.extractor import ExtractorLocator

WHICH = "lyre_bot.infrastructure.audio.extractor.shutil.which"
MODULE = "lyre_bot.infrastructure.audio.download_supervisor"

# "--print <field>" answers with a fixed id; anything else is a download that
# logs itself, writes progress to stderr and drops an mp3 next to the -o template.
FAKE_EXTRACTOR = """#!/bin/sh
here=$(dirname "$0")
if [ "$1" = "--print" ]; then
  echo "vid123"
  exit 0
fi
echo download >> "$here/calls.log"
out=""
while [ $# -gt 0 ]; do
  if [ "$1" = "-o" ]; then out="$2"; fi
  shift
done
dir=$(dirname "$out")
{DOWNLOAD}
"""

DOWNLOAD_OK = """echo "[download]   0.0% of 3.00MiB at 1.00MiB/s" >&2
echo "[download]   0.0% of 3.00MiB at 1.00MiB/s" >&2
echo "[download]  42.3% of 3.00MiB at 1.00MiB/s" >&2
echo "[download] 100% of 3.00MiB in 00:03" >&2
printf 'audio-bytes' > "$dir/vid123.mp3"
"""


def _install_fake(tmp_path: Path, monkeypatch, download: str = DOWNLOAD_OK) -> Path:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "yt-dlp"
    script.write_text(FAKE_EXTRACTOR.replace("{DOWNLOAD}", download))
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    monkeypatch.setattr(WHICH, lambda name: str(script))
    return bin_dir


def _supervisor(tmp_path: Path, cache_repository=None, **settings) -> DownloadSupervisor:
    download_settings = DownloadSettings(download_folder=str(tmp_path / "dl"), **settings)
    return DownloadSupervisor(
        ExtractorLocator(download_settings, cache_dir=tmp_path / "bin"),
        download_settings,
        cache_repository=cache_repository,
    )


async def _collect(job) -> list[int]:
    return [event.percent async for event in job.progress]


def _refuse(*args, **kwargs):
    raise OSError("cross-device link")


# =============================================================================
# parse_percent
# =============================================================================


class TestParsePercent:
    """Tests for yt-dlp progress line parsing."""

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("[download]  42.3% of 3.00MiB", 42),
            ("[download]  42.5% of 3.00MiB", 42),
            ("[download]  42.6% of 3.00MiB", 43),
            ("[download] 100% of 3.00MiB", 100),
            ("[download]   0.0% of 3.00MiB", 0),
            ("[download] 250% weird", 100),
        ],
    )
    def test_parses_number_before_percent(self, line, expected):
        """The number right before the first % is rounded and clamped."""
        assert parse_percent(line) == expected

    @pytest.mark.parametrize(
        "line",
        ["[info] Downloading webpage", "[download] % of 3.00MiB", "[download] 1.2.3% x"],
    )
    def test_unparsable_lines(self, line):
        """Lines without a usable number yield None."""
        assert parse_percent(line) is None


# =============================================================================
# Download Jobs
# =============================================================================


@pytest.mark.skipif(os.name == "nt", reason="uses a POSIX shell script as the extractor")
class TestDownloadSupervisor:
    """Tests for DownloadSupervisor.spawn_download."""

    async def test_downloads_into_cache(self, tmp_path, monkeypatch, cache_repository):
        """A fresh URL should be downloaded to <root>/<id>.mp3 and recorded."""
        _install_fake(tmp_path, monkeypatch)
        supervisor = _supervisor(tmp_path, cache_repository)

        job = supervisor.spawn_download("https://example.com/watch")
        events = await _collect(job)
        path = await job.result()

        assert path == tmp_path / "dl" / "vid123.mp3"
        assert path.read_bytes() == b"audio-bytes"
        assert events == [0, 42, 100]
        assert job.state is DownloadState.SUCCEEDED
        assert job.content_id == "vid123"
        assert not list((tmp_path / "dl").glob("job-*"))

        entry = await cache_repository.get("vid123")
        assert entry is not None
        assert entry.url == "https://example.com/watch"
        assert entry.size_bytes == len(b"audio-bytes")

    async def test_cache_hit_skips_extractor(self, tmp_path, monkeypatch):
        """An existing cached file should finish with exactly one 100% event."""
        bin_dir = _install_fake(tmp_path, monkeypatch)
        cached = tmp_path / "dl" / "vid123.mp3"
        cached.parent.mkdir(parents=True)
        cached.write_bytes(b"cached")
        supervisor = _supervisor(tmp_path)

        job = supervisor.spawn_download("https://example.com/watch")
        events = await _collect(job)

        assert await job.result() == cached
        assert events == [100]
        assert not (bin_dir / "calls.log").exists()

    async def test_progress_stream_can_be_ignored(self, tmp_path, monkeypatch):
        """A job should complete even if nobody reads its progress."""
        _install_fake(tmp_path, monkeypatch)
        supervisor = _supervisor(tmp_path)

        job = supervisor.spawn_download("https://example.com/watch")

        assert (await job.result()).name == "vid123.mp3"
        assert job.progress.closed is True

    async def test_nonzero_exit_fails_job(self, tmp_path, monkeypatch):
        """An extractor failure should fail the job and close the stream."""
        _install_fake(tmp_path, monkeypatch, download="exit 2\n")
        supervisor = _supervisor(tmp_path)

        job = supervisor.spawn_download("https://example.com/watch")
        events = await _collect(job)

        with pytest.raises(DownloadError, match="status 2"):
            await job.result()
        assert events == []
        assert job.state is DownloadState.FAILED
        assert not list((tmp_path / "dl").glob("job-*"))

    async def test_no_output_fails_job(self, tmp_path, monkeypatch):
        """A clean exit without an mp3 should raise NoOutputError."""
        _install_fake(tmp_path, monkeypatch, download="exit 0\n")
        supervisor = _supervisor(tmp_path)

        job = supervisor.spawn_download("https://example.com/watch")

        with pytest.raises(NoOutputError):
            await job.result()
        assert job.reason is not None

    async def test_timeout_kills_extractor(self, tmp_path, monkeypatch):
        """A download exceeding the timeout should be killed and fail."""
        _install_fake(tmp_path, monkeypatch, download="exec sleep 30\n")
        supervisor = _supervisor(tmp_path, timeout_seconds=0.5)

        job = supervisor.spawn_download("https://example.com/watch")

        with pytest.raises(DownloadError, match="did not finish"):
            await job.result()

    async def test_cache_root_prefers_configured_folder(self, tmp_path):
        """download_folder should override the default location."""
        assert _supervisor(tmp_path).cache_root() == tmp_path / "dl"

    async def test_cache_root_defaults_beside_binary(self, tmp_path):
        """Without a folder the cache lives in <binary dir>/downloads."""
        supervisor = DownloadSupervisor(ExtractorLocator(cache_dir=tmp_path / "bin"))

        assert supervisor.cache_root() == tmp_path / "bin" / "downloads"

    async def test_progress_ends_when_stderr_closes(self, tmp_path, monkeypatch):
        """The stream ends with the progress pipe, before the job finishes."""
        _install_fake(
            tmp_path,
            monkeypatch,
            download=DOWNLOAD_OK.replace(
                "printf 'audio-bytes'", "exec 2>&-\nsleep 1\nprintf 'audio-bytes'"
            ),
        )
        supervisor = _supervisor(tmp_path)

        job = supervisor.spawn_download("https://example.com/watch")
        events = await asyncio.wait_for(_collect(job), timeout=10)

        assert events == [0, 42, 100]
        assert job.done is False
        assert (await job.result()).name == "vid123.mp3"


# =============================================================================
# Moving Into the Cache
# =============================================================================


@pytest.mark.skipif(os.name == "nt", reason="uses a POSIX shell script as the extractor")
class TestCacheFallbacks:
    """What happens when the produced file cannot be renamed into the cache."""

    async def test_copy_when_rename_fails(self, tmp_path, monkeypatch):
        """A failed rename falls back to a copy and the job dir is removed."""
        _install_fake(tmp_path, monkeypatch)
        supervisor = _supervisor(tmp_path)
        monkeypatch.setattr(MODULE + ".os.replace", _refuse)

        job = supervisor.spawn_download("https://example.com/watch")
        path = await job.result()

        assert path == tmp_path / "dl" / "vid123.mp3"
        assert path.read_bytes() == b"audio-bytes"
        assert not list((tmp_path / "dl").glob("job-*"))

    async def test_job_file_kept_when_copy_also_fails(self, tmp_path, monkeypatch):
        """With rename and copy both failing, the job-dir file is the result."""
        _install_fake(tmp_path, monkeypatch)
        supervisor = _supervisor(tmp_path)
        monkeypatch.setattr(MODULE + ".os.replace", _refuse)
        monkeypatch.setattr(MODULE + ".shutil.copy2", _refuse)

        job = supervisor.spawn_download("https://example.com/watch")
        path = await job.result()

        assert path.parent.name.startswith("job-")
        assert path.parent.parent == tmp_path / "dl"
        assert path.read_bytes() == b"audio-bytes"
        assert not (tmp_path / "dl" / "vid123.mp3").exists()
        assert job.state is DownloadState.SUCCEEDED
