"""Base exception classes for domain-level errors."""

from __future__ import annotations


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class ValidationError(DomainError):
    """Raised when domain validation fails."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class ConcurrencyError(DomainError):
    """Raised when a concurrent modification conflict occurs."""

    def __init__(self, entity_type: str, message: str | None = None) -> None:
        msg = message or f"Concurrent modification detected for {entity_type}"
        super().__init__(msg, code="CONCURRENCY_ERROR")
        self.entity_type = entity_type


# === Media acquisition ===


class AcquisitionError(DomainError):
    """The extractor binary could not be located or downloaded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="ACQUISITION_ERROR")


class ExtractionError(DomainError):
    """The extractor could not print the requested metadata field."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message, code="EXTRACTION_ERROR")
        self.field = field


class DownloadError(DomainError):
    """A download job failed before producing a usable file."""

    def __init__(self, message: str, code: str = "DOWNLOAD_ERROR") -> None:
        super().__init__(message, code=code)


class NoOutputError(DownloadError):
    """The extractor exited successfully but produced no mp3 file."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="NO_OUTPUT")


# === Voice ===


class JoinError(DomainError):
    """Joining a voice channel failed on every attempt."""

    def __init__(self, guild_id: int, channel_id: int, attempts: int, message: str) -> None:
        super().__init__(message, code="JOIN_ERROR")
        self.guild_id = guild_id
        self.channel_id = channel_id
        self.attempts = attempts


class PlaybackError(DomainError):
    """The voice driver could not start or queue an audio file."""

    def __init__(self, guild_id: int, message: str) -> None:
        super().__init__(message, code="PLAYBACK_ERROR")
        self.guild_id = guild_id
