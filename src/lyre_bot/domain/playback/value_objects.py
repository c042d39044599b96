"""Immutable value objects for the playback bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from ..shared.constants import ExtractorConfig
from ..shared.messages import ErrorMessages


class DownloadState(StrEnum):
    """Lifecycle of an in-memory download job."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ContentId:
    """Stable identifier for a media source, used as the download cache key."""

    value: str

    def __post_init__(self) -> None:
        if not self.value or not self.value.strip():
            raise ValueError(ErrorMessages.EMPTY_CONTENT_ID)
        if "/" in self.value or "\\" in self.value:
            raise ValueError(ErrorMessages.INVALID_CONTENT_ID.format(value=self.value))

    def __str__(self) -> str:
        return self.value

    @property
    def is_fallback(self) -> bool:
        return self.value.startswith(ExtractorConfig.FALLBACK_ID_PREFIX)

    @property
    def file_name(self) -> str:
        return f"{self.value}{ExtractorConfig.AUDIO_EXTENSION}"

    @classmethod
    def fallback(cls, timestamp_ns: int) -> ContentId:
        """Timestamp-derived id used when the extractor cannot report one."""
        return cls(f"{ExtractorConfig.FALLBACK_ID_PREFIX}{timestamp_ns}")
