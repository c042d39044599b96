"""Background loop that drives live voice sessions toward the persisted join requests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from ...domain.shared.constants import VoiceTimings
from ...domain.shared.datetime_utils import utcnow
from ...domain.shared.exceptions import JoinError
from ...domain.shared.messages import LogTemplates
from ...domain.shared.validators import parse_snowflake

if TYPE_CHECKING:
    from ...domain.playback.entities import VoiceConnectionRecord
    from ...domain.playback.repository import VoiceConnectionRepository
    from ..interfaces.voice_adapter import VoiceAdapter
    from .voice_connection_service import VoiceConnectionService

logger = logging.getLogger(__name__)


class VoiceReconciler:
    """Polls pending join requests every couple of seconds and acts on them.

    Per record, in order:

    - ids that do not parse are skipped; after ``MAX_PARSE_FAILURES``
      consecutive ticks the record is deleted;
    - a guild already bound to the requested channel is left alone;
    - a request older than ``STALE_REQUEST_SECONDS`` is ignored;
    - otherwise a join is attempted, and a record whose join fails is deleted.
    """

    def __init__(
        self,
        *,
        voice_repository: VoiceConnectionRepository,
        voice_service: VoiceConnectionService,
        voice_adapter: VoiceAdapter,
        interval_seconds: float = VoiceTimings.RECONCILE_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._voice_repo = voice_repository
        self._voice_service = voice_service
        self._voice_adapter = voice_adapter
        self._interval = interval_seconds
        self._clock = clock
        self._parse_failures: dict[str, int] = {}
        self._running = False
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._running:
            logger.warning(LogTemplates.RECONCILER_ALREADY_RUNNING)
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(LogTemplates.RECONCILER_STARTED)

    async def stop(self) -> None:
        self._running = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(LogTemplates.RECONCILER_STOPPED)

    @property
    def is_running(self) -> bool:
        return self._running

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.tick()
            except Exception as e:
                logger.exception(LogTemplates.RECONCILER_TICK_FAILED, e)

            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break

    async def tick(self) -> None:
        records = await self._voice_repo.get_pending_joins()
        now = self._clock()

        present = {record.guild_id for record in records}
        for guild_key in list(self._parse_failures):
            if guild_key not in present:
                del self._parse_failures[guild_key]

        for record in records:
            await self._reconcile(record, now)

    async def _reconcile(self, record: VoiceConnectionRecord, now: datetime) -> None:
        try:
            guild_id = parse_snowflake(record.guild_id)
            channel_id = parse_snowflake(record.channel_id or "")
        except ValueError:
            await self._note_parse_failure(record)
            return

        self._parse_failures.pop(record.guild_id, None)

        if self._voice_adapter.get_current_channel_id(guild_id) == channel_id:
            logger.debug(LogTemplates.RECONCILER_ALREADY_BOUND, guild_id, channel_id)
            return

        if record.is_stale(VoiceTimings.STALE_REQUEST_SECONDS, now):
            logger.debug(
                LogTemplates.RECONCILER_STALE_SKIPPED,
                guild_id,
                int(record.age(now).total_seconds()),
            )
            return

        try:
            await self._voice_service.join_with_retry(guild_id, channel_id)
        except JoinError as e:
            logger.warning(LogTemplates.RECONCILER_JOIN_FAILED, guild_id, e.message)
            await self._voice_repo.delete(record.guild_id)

    async def _note_parse_failure(self, record: VoiceConnectionRecord) -> None:
        failures = self._parse_failures.get(record.guild_id, 0) + 1
        logger.warning(
            LogTemplates.RECONCILER_PARSE_FAILED,
            record.guild_id,
            record.channel_id,
            failures,
            VoiceTimings.MAX_PARSE_FAILURES,
        )

        if failures < VoiceTimings.MAX_PARSE_FAILURES:
            self._parse_failures[record.guild_id] = failures
            return

        self._parse_failures.pop(record.guild_id, None)
        await self._voice_repo.delete(record.guild_id)
        logger.warning(LogTemplates.RECONCILER_QUARANTINED, record.guild_id)
