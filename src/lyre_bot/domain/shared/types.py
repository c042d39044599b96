"""Constrained field types shared by the domain models and events."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from pydantic import BeforeValidator, Field

# Identifiers

DiscordSnowflake = Annotated[int, Field(gt=0, lt=2**64)]
"""A parsed guild, channel or user id."""

SnowflakeStr = Annotated[str, Field(strict=True)]
"""An id as read from a TEXT column. Not validated; parse it before use."""

# Counters and sizes

NonNegativeInt = Annotated[int, Field(ge=0)]
QueuePositionInt = Annotated[int, Field(ge=0)]
FileBytes = Annotated[int, Field(ge=0)]
ProgressPercent = Annotated[int, Field(ge=0, le=100)]
DurationSeconds = Annotated[int, Field(ge=0)]

# Text

NonEmptyStr = Annotated[str, Field(min_length=1)]
TrackTitleStr = Annotated[str, Field(min_length=1)]


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("naive datetime; pass an aware UTC value")
    return value.astimezone(UTC)


UtcDatetimeField = Annotated[datetime, BeforeValidator(_require_aware)]
"""Aware datetime, converted to UTC."""
