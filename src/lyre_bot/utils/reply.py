"""Utility functions for formatting Discord messages."""

from __future__ import annotations

from functools import cache

from lyre_bot.domain.shared.constants import UIConstants


@cache
def format_duration(seconds: int | float | None) -> str:
    if seconds is None:
        return "Streaming"

    total_seconds = int(seconds)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    secs = total_seconds % 60

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def truncate(text: str, max_length: int = 90) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 1] + "…"


def text_bar(percent: int, width: int = UIConstants.PROGRESS_BAR_WIDTH) -> str:
    """Bracketed fixed-width progress bar, e.g. ``[██████              ]`` for 30%."""
    percent = max(0, min(100, percent))
    filled = percent * width // 100
    return (
        "["
        + UIConstants.PROGRESS_BAR_FILLED * filled
        + UIConstants.PROGRESS_BAR_EMPTY * (width - filled)
        + "]"
    )
