"""
Unit Tests for the Domain Layer

Tests for:
- Value objects (ContentId) and snowflake parsing
- Voice timing constants (join backoff)
- Entities (QueueEntry formatting, VoiceConnectionRecord staleness)
- ProgressStream and DownloadJob progress de-duplication
- EventBus publish/subscribe semantics
"""

from datetime import UTC, datetime, timedelta

import pytest

from lyre_bot.domain.playback.download_job import DownloadJob, ProgressStream
from lyre_bot.domain.playback.entities import QueueEntry, VoiceConnectionRecord
from lyre_bot.domain.playback.value_objects import ContentId
from lyre_bot.domain.shared.constants import VoiceTimings
from lyre_bot.domain.shared.events import EventBus, QueueCleared, TrackAddedToQueue
from lyre_bot.domain.shared.exceptions import DownloadError
from lyre_bot.domain.shared.validators import parse_snowflake

# =============================================================================
# Value Objects
# =============================================================================


class TestContentId:
    """Tests for ContentId."""

    def test_file_name(self):
        """The cache file is <id>.mp3."""
        assert ContentId("dQw4w9WgXcQ").file_name == "dQw4w9WgXcQ.mp3"

    @pytest.mark.parametrize("value", ["", "   ", "a/b", "a\\b"])
    def test_rejects_unsafe_values(self, value):
        """Empty ids and path separators are rejected."""
        with pytest.raises(ValueError):
            ContentId(value)

    def test_fallback(self):
        """Fallback ids are timestamp-derived and flagged."""
        content_id = ContentId.fallback(1234)

        assert str(content_id) == "ts-1234"
        assert content_id.is_fallback is True
        assert ContentId("abc").is_fallback is False


class TestParseSnowflake:
    """Tests for parse_snowflake."""

    def test_parses_decimal(self):
        assert parse_snowflake("123456789012345678") == 123456789012345678
        assert parse_snowflake(" 42 ") == 42

    @pytest.mark.parametrize("raw", ["", "abc", "-1", "0", "1.5", str(2**64)])
    def test_rejects_invalid(self, raw):
        """Non-numeric, zero and out-of-range values are rejected."""
        with pytest.raises(ValueError):
            parse_snowflake(raw)


class TestVoiceTimings:
    """Tests for the join backoff schedule."""

    def test_backoff_doubles_and_caps(self):
        """1s, 2s, 4s, then capped at 5s."""
        assert [VoiceTimings.backoff_ms(n) for n in range(1, 6)] == [1000, 2000, 4000, 5000, 5000]


# =============================================================================
# Entities
# =============================================================================


class TestQueueEntry:
    """Tests for QueueEntry."""

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(None, "Streaming"), (65, "1:05"), (3725, "1:02:05")],
    )
    def test_duration_formatted(self, seconds, expected):
        entry = QueueEntry(
            guild_id=1, position=0, url="https://a", duration_seconds=seconds, added_by="7"
        )

        assert entry.duration_formatted == expected

    def test_rejects_negative_position(self):
        with pytest.raises(ValueError):
            QueueEntry(guild_id=1, position=-1, url="https://a", added_by="7")

    def test_accepts_long_titles_and_durations(self):
        """Neither the title length nor the duration has an upper bound."""
        entry = QueueEntry(
            guild_id=1,
            position=0,
            url="https://a",
            title="t" * 2000,
            duration_seconds=90_000,
            added_by="7",
        )

        assert entry.duration_formatted == "25:00:00"


class TestVoiceConnectionRecord:
    """Tests for VoiceConnectionRecord staleness."""

    def test_is_stale(self):
        """Records older than the threshold are stale."""
        now = datetime.now(UTC)
        record = VoiceConnectionRecord(
            guild_id="1",
            channel_id="2",
            connected_at=now - timedelta(seconds=301),
            last_activity=now,
        )

        assert record.is_stale(300, now) is True
        assert record.is_stale(400, now) is False

    def test_requires_aware_datetimes(self):
        """Naive datetimes are rejected."""
        with pytest.raises(ValueError):
            VoiceConnectionRecord(guild_id="1", connected_at=datetime.now())


# =============================================================================
# Progress
# =============================================================================


class TestProgressStream:
    """Tests for ProgressStream."""

    async def test_iterates_until_closed(self):
        stream = ProgressStream()
        stream.emit(10)
        stream.emit(20)
        stream.close()

        assert [event.percent async for event in stream] == [10, 20]

    async def test_emit_after_close_is_dropped(self):
        stream = ProgressStream()
        stream.close()
        stream.emit(50)

        assert [event.percent async for event in stream] == []
        assert [event.percent async for event in stream] == []

    async def test_forward_deduplicates(self):
        """Repeated percentages are emitted once."""
        job = DownloadJob(url="https://a")
        for percent in (0, 0, 42, 42, 100):
            job.forward(percent)
        job.progress.close()

        assert [event.percent async for event in job.progress] == [0, 42, 100]
        assert job.done is False

    async def test_result_before_start_is_a_download_error(self):
        """A job that never got a task fails with a domain error."""
        job = DownloadJob(url="https://a")

        with pytest.raises(DownloadError, match="never started"):
            await job.result()


# =============================================================================
# Event Bus
# =============================================================================


class TestEventBus:
    """Tests for EventBus."""

    async def test_publish_to_matching_handlers(self):
        """Handlers only receive the event types they subscribed to."""
        bus = EventBus()
        received = []

        async def on_added(event: TrackAddedToQueue) -> None:
            received.append(event.track_title)

        bus.subscribe(TrackAddedToQueue, on_added)

        await bus.publish(TrackAddedToQueue(guild_id=1, track_title="Song"))
        await bus.publish(QueueCleared(guild_id=1, track_count=1))

        assert received == ["Song"]

    async def test_failing_handler_does_not_block_others(self):
        """One handler raising should not stop the rest."""
        bus = EventBus()
        received = []

        async def broken(event):
            raise RuntimeError("boom")

        async def working(event):
            received.append(event.guild_id)

        bus.subscribe(QueueCleared, broken)
        bus.subscribe(QueueCleared, working)

        await bus.publish(QueueCleared(guild_id=5))

        assert received == [5]

    async def test_unsubscribe(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(QueueCleared, handler)
        bus.unsubscribe(QueueCleared, handler)
        await bus.publish(QueueCleared(guild_id=5))

        assert received == []
