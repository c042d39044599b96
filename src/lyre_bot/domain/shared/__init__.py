"""
Shared Domain Kernel

Contains types, events and exceptions shared across all bounded contexts.
"""

from lyre_bot.domain.shared.exceptions import (
    AcquisitionError,
    ConcurrencyError,
    DomainError,
    DownloadError,
    ExtractionError,
    JoinError,
    NoOutputError,
    PlaybackError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "ValidationError",
    "ConcurrencyError",
    "AcquisitionError",
    "ExtractionError",
    "DownloadError",
    "NoOutputError",
    "JoinError",
    "PlaybackError",
]
