"""Fixed timings, extractor flags and SQLite pragmas.

Voice-join and reconciliation timings are not exposed through settings.
"""

from __future__ import annotations

from typing import Final


class VoiceTimings:
    """Reconciler and join-retry timing constants."""

    RECONCILE_INTERVAL_SECONDS: Final[float] = 2.0
    STALE_REQUEST_SECONDS: Final[int] = 5 * 60
    MAX_JOIN_ATTEMPTS: Final[int] = 5
    BACKOFF_BASE_MS: Final[int] = 1000
    BACKOFF_CAP_MS: Final[int] = 5000
    MAX_PARSE_FAILURES: Final[int] = 3

    @classmethod
    def backoff_ms(cls, attempt: int) -> int:
        """Delay after the ``attempt``-th failed join (1-based)."""
        return min(cls.BACKOFF_CAP_MS, cls.BACKOFF_BASE_MS * 2 ** (attempt - 1))


class ExtractorConfig:
    """yt-dlp binary names and command-line flag sets."""

    BINARY_NAME: Final[str] = "yt-dlp"
    APP_CACHE_NAME: Final[str] = "lyre"
    RELEASES_API: Final[str] = "https://api.github.com/repos/yt-dlp/yt-dlp/releases/latest"
    GITHUB_ACCEPT: Final[str] = "application/vnd.github+json"
    USER_AGENT: Final[str] = "lyre-bot/0.1"

    ASSET_WINDOWS_X64: Final[str] = "yt-dlp.exe"
    ASSET_WINDOWS_X86: Final[str] = "yt-dlp_x86.exe"
    ASSET_LINUX: Final[str] = "yt-dlp_linux"
    ASSET_MACOS: Final[str] = "yt-dlp_macos"
    ASSET_GENERIC: Final[str] = "yt-dlp"

    PRINT_FIELD_ARGS: Final[tuple[str, ...]] = ("--skip-download", "-q")

    DOWNLOAD_ARGS: Final[tuple[str, ...]] = (
        "-f", "bestaudio/best",
        "-x",
        "--audio-format", "mp3",
        "--audio-quality", "0",
        # 48 kHz stereo is the voice driver's native format
        "--postprocessor-args", "ffmpeg:-ar 48000 -ac 2",
        "--no-playlist",
        "--newline",
    )
    OUTPUT_TEMPLATE: Final[str] = "%(id)s.%(ext)s"
    AUDIO_EXTENSION: Final[str] = ".mp3"
    DOWNLOADS_DIR_NAME: Final[str] = "downloads"
    JOB_DIR_PREFIX: Final[str] = "job-"
    FALLBACK_ID_PREFIX: Final[str] = "ts-"


class QueueLimits:
    """Queue store retry bounds."""

    MAX_POSITION_RETRIES: Final[int] = 3
    # Shared-cache in-memory databases report "table is locked" instead of waiting.
    MAX_LOCK_RETRIES: Final[int] = 50
    LOCK_RETRY_DELAY_SECONDS: Final[float] = 0.01


class DatabaseTables:
    """Database table names."""

    CURRENT_QUEUE = "current_queue"
    VOICE_CONNECTIONS = "voice_connections"
    SONG_CACHE = "song_cache"
    QUEUE_HISTORY = "queue_history"


class SQLPragmas:
    """SQLite pragma statements used when opening connections."""

    JOURNAL_MODE_WAL = "PRAGMA journal_mode=WAL"
    FOREIGN_KEYS_ON = "PRAGMA foreign_keys=ON"
    BUSY_TIMEOUT = "PRAGMA busy_timeout={timeout}"
    TABLE_INFO = "PRAGMA table_info({table})"


class UIConstants:
    """Text rendering constants for command responses."""

    PROGRESS_BAR_WIDTH: Final[int] = 20
    PROGRESS_BAR_FILLED: Final[str] = "█"
    PROGRESS_BAR_EMPTY: Final[str] = " "
    UNKNOWN_TITLE: Final[str] = "Unknown"
    QUEUE_DISPLAY_LIMIT: Final[int] = 10
