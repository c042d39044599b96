import pytest
import pytest_asyncio

# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def in_memory_database():
    """Create an in-memory SQLite database for testing."""
    from lyre_bot.infrastructure.persistence.database import Database

    db = Database(":memory:")
    await db.initialize()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def queue_repository(in_memory_database):
    """Create a queue repository with in-memory database."""
    from lyre_bot.infrastructure.persistence.repositories.queue_repository import (
        SQLiteQueueRepository,
    )

    return SQLiteQueueRepository(in_memory_database)


@pytest_asyncio.fixture
async def voice_repository(in_memory_database):
    """Create a voice connection repository with in-memory database."""
    from lyre_bot.infrastructure.persistence.repositories.voice_connection_repository import (
        SQLiteVoiceConnectionRepository,
    )

    return SQLiteVoiceConnectionRepository(in_memory_database)


@pytest_asyncio.fixture
async def cache_repository(in_memory_database):
    """Create a song cache repository with in-memory database."""
    from lyre_bot.infrastructure.persistence.repositories.song_cache_repository import (
        SQLiteSongCacheRepository,
    )

    return SQLiteSongCacheRepository(in_memory_database)


@pytest_asyncio.fixture
async def history_repository(in_memory_database):
    """Create a queue history repository with in-memory database."""
    from lyre_bot.infrastructure.persistence.repositories.history_repository import (
        SQLiteQueueHistoryRepository,
    )

    return SQLiteQueueHistoryRepository(in_memory_database)


# ============================================================================
# Event Bus / Settings Isolation
# ============================================================================


@pytest.fixture
def event_bus():
    """A fresh event bus not shared with other tests."""
    from lyre_bot.domain.shared.events import EventBus

    return EventBus()


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset the event bus singleton and settings cache around each test."""
    from lyre_bot.config.settings import clear_settings_cache
    from lyre_bot.domain.shared.events import reset_event_bus

    reset_event_bus()
    clear_settings_cache()
    yield
    reset_event_bus()
    clear_settings_cache()


# ============================================================================
# Voice Adapter Fixture
# ============================================================================


@pytest.fixture
def mock_voice_adapter():
    """A VoiceAdapter mock that is not connected anywhere."""
    from unittest.mock import AsyncMock, MagicMock

    from lyre_bot.application.interfaces.voice_adapter import VoiceAdapter

    adapter = MagicMock(spec=VoiceAdapter)
    adapter.get_current_channel_id.return_value = None
    adapter.is_connected.return_value = False
    adapter.is_playing.return_value = False
    adapter.connect = AsyncMock(return_value=True)
    adapter.disconnect = AsyncMock(return_value=True)
    adapter.enqueue = AsyncMock(return_value=0)
    adapter.skip = AsyncMock(return_value=True)
    adapter.stop = AsyncMock(return_value=True)
    return adapter
