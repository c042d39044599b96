"""Shared validators for Discord-specific data types."""

from __future__ import annotations

from .messages import ErrorMessages


def validate_discord_snowflake(value: int) -> int:
    """Validate a Discord snowflake ID.

    Discord snowflake IDs are 64-bit unsigned integers representing unique
    identifiers for users, guilds, channels, messages, etc.

    Raises:
        ValueError: If the snowflake ID is invalid.
    """
    if value <= 0:
        raise ValueError(ErrorMessages.INVALID_SNOWFLAKE)
    if value >= 2**64:
        raise ValueError(ErrorMessages.SNOWFLAKE_TOO_LARGE)
    return value


def parse_snowflake(raw: str) -> int:
    """Parse a stored snowflake string into the platform's native integer id.

    Raises:
        ValueError: If the string is not a decimal integer or is out of range.
    """
    text = raw.strip()
    if not text.isdigit():
        raise ValueError(ErrorMessages.SNOWFLAKE_NOT_NUMERIC.format(value=raw))
    return validate_discord_snowflake(int(text))
