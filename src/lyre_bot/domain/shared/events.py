"""Playback and voice events, plus the in-process bus that carries them.

Producers (command handlers, the voice service, track completion) publish
events; the metrics collector and the music cog subscribe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .datetime_utils import utcnow
from .types import DiscordSnowflake, NonEmptyStr, NonNegativeInt, UtcDatetimeField

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="PlaybackEvent")
Subscriber = Callable[[E], Awaitable[None]]


class PlaybackEvent(BaseModel):
    """Immutable event with an id and a UTC timestamp."""

    model_config = ConfigDict(frozen=True)

    event_id: NonEmptyStr = Field(default_factory=lambda: uuid4().hex)
    occurred_at: UtcDatetimeField = Field(default_factory=utcnow)


# Queue


class TrackAddedToQueue(PlaybackEvent):
    guild_id: DiscordSnowflake
    track_title: str = ""
    queue_position: NonNegativeInt = 0


class TrackFinishedPlaying(PlaybackEvent):
    """The head of a guild queue finished; ``remaining`` rows are left."""

    guild_id: DiscordSnowflake
    remaining: NonNegativeInt = 0


class QueueCleared(PlaybackEvent):
    guild_id: DiscordSnowflake
    track_count: NonNegativeInt = 0


class QueueExhausted(PlaybackEvent):
    """The last queued track ended and the bot left voice.

    ``text_channel_id`` is where the most recent /play in the guild was issued.
    """

    guild_id: DiscordSnowflake
    text_channel_id: DiscordSnowflake | None = None


# Voice


class BotJoinedVoiceChannel(PlaybackEvent):
    guild_id: DiscordSnowflake
    channel_id: DiscordSnowflake


class BotLeftVoiceChannel(PlaybackEvent):
    guild_id: DiscordSnowflake
    reason: str = ""


class EventBus:
    """Delivers each published event to the subscribers of its exact type.

    Subscribers run concurrently; a failing subscriber is logged and the
    others still receive the event.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type[PlaybackEvent], list[Subscriber[Any]]] = {}

    def subscribe(self, event_type: type[E], subscriber: Subscriber[E]) -> None:
        self._subscribers.setdefault(event_type, []).append(subscriber)

    def unsubscribe(self, event_type: type[E], subscriber: Subscriber[E]) -> None:
        subscribers = self._subscribers.get(event_type, [])
        if subscriber in subscribers:
            subscribers.remove(subscriber)

    async def publish(self, event: PlaybackEvent) -> None:
        subscribers = list(self._subscribers.get(type(event), ()))
        if not subscribers:
            return

        results = await asyncio.gather(
            *(subscriber(event) for subscriber in subscribers), return_exceptions=True
        )
        for subscriber, result in zip(subscribers, results, strict=True):
            if isinstance(result, Exception):
                logger.error(
                    "Subscriber %s failed on %s: %s",
                    getattr(subscriber, "__qualname__", subscriber),
                    type(event).__name__,
                    result,
                    exc_info=result,
                )

    def clear(self) -> None:
        self._subscribers.clear()


_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Return the process-wide bus, creating it on first use."""
    global _bus
    if _bus is None:
        _bus = EventBus()
    return _bus


def reset_event_bus() -> None:
    """Drop the process-wide bus and its subscribers."""
    global _bus
    if _bus is not None:
        _bus.clear()
    _bus = None
