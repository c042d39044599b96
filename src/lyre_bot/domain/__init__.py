"""
Domain Layer

Contains pure business logic organized by bounded contexts:
- shared/: Cross-cutting types, constants, events and exceptions
- playback/: Queue entries, voice records, cache entries and download jobs
"""

from lyre_bot.domain.shared.exceptions import DomainError

__all__ = [
    "DomainError",
]
