"""The Lyre bot: container startup, background jobs and slash-command wiring."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import TYPE_CHECKING, Any

import discord
from discord.ext import commands

from lyre_bot.domain.shared.messages import DiscordUIMessages, LogTemplates

if TYPE_CHECKING:
    from ...config.container import Container
    from ...config.settings import Settings

logger = logging.getLogger(__name__)

EXTENSIONS: tuple[str, ...] = ("lyre_bot.infrastructure.discord.cogs.music_cog",)


class LyreBot(commands.Bot):
    def __init__(self, container: Container, settings: Settings, **kwargs: Any) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.voice_states = True

        super().__init__(
            command_prefix=settings.discord.command_prefix,
            intents=intents,
            help_command=None,
            **kwargs,
        )
        self.container = container
        self.settings = settings
        container.set_bot(self)

    async def setup_hook(self) -> None:
        logger.info(LogTemplates.BOT_SETUP)
        try:
            await self.container.initialize()
        except Exception as e:
            logger.exception(LogTemplates.BOT_CONTAINER_INIT_FAILED, e)
            raise
        logger.info(LogTemplates.BOT_CONTAINER_INITIALIZED)

        await self._clear_stale_voice_records()
        self.container.track_completion.register()
        self._start_background_jobs()

        for extension in EXTENSIONS:
            try:
                await self.load_extension(extension)
            except Exception as e:
                logger.exception(LogTemplates.BOT_COG_LOAD_FAILED, extension, e)
            else:
                logger.info(LogTemplates.BOT_COG_LOADED, extension)
        self.tree.on_error = self._on_app_command_error

        if self.settings.discord.sync_on_startup:
            try:
                synced = await self.tree.sync()
            except discord.HTTPException as e:
                logger.warning(LogTemplates.BOT_SYNC_GLOBAL_FAILED, e)
            else:
                logger.info(LogTemplates.BOT_SYNCED_GLOBAL, len(synced))

        logger.info(LogTemplates.BOT_SETUP_COMPLETE)

    async def _clear_stale_voice_records(self) -> None:
        """No voice session survives a restart, so every stored record is stale."""
        try:
            cleared = await self.container.voice_repository.clear_all()
        except Exception as e:
            logger.warning(LogTemplates.BOT_STALE_VOICE_RECORDS_FAILED, e)
            return
        if cleared:
            logger.info(LogTemplates.BOT_STALE_VOICE_RECORDS_CLEARED, cleared)
        else:
            logger.info(LogTemplates.BOT_NO_STALE_VOICE_RECORDS)

    @property
    def _jobs(self) -> dict[str, Any]:
        return {
            "voice reconciler": self.container.voice_reconciler,
            "cleanup job": self.container.cleanup_job,
            "metrics collector": self.container.metrics_collector,
        }

    def _start_background_jobs(self) -> None:
        for name, job in self._jobs.items():
            try:
                job.start()
            except Exception as e:
                logger.warning(LogTemplates.BOT_BACKGROUND_START_FAILED, name, e)

    async def _stop_background_jobs(self) -> None:
        for name, job in self._jobs.items():
            try:
                await job.stop()
            except Exception as e:
                logger.warning(LogTemplates.BOT_BACKGROUND_STOP_ERROR, name, e)

    async def _on_app_command_error(
        self, interaction: discord.Interaction, error: Exception
    ) -> None:
        """Log the failure and tell only the invoking user."""
        command = getattr(interaction.command, "name", "<unknown>")
        logger.error(LogTemplates.BOT_SLASH_COMMAND_ERROR, command, getattr(error, "original", error))

        if interaction.response.is_done():
            send = interaction.followup.send
        else:
            send = interaction.response.send_message
        try:
            await send(DiscordUIMessages.ERROR_COMMAND_FAILED_SEE_LOGS, ephemeral=True)
        except discord.HTTPException:
            logger.warning(LogTemplates.BOT_ERROR_MESSAGE_SEND_FAILED)

    async def on_ready(self) -> None:
        user = self.user
        logger.info(LogTemplates.BOT_READY, user, user.id if user else None)
        logger.info(LogTemplates.BOT_CONNECTED_GUILDS, len(self.guilds))
        self.container.metrics_collector.mark_ready()
        await self.change_presence(
            activity=discord.Activity(type=discord.ActivityType.listening, name="/play")
        )

    async def close(self) -> None:
        logger.info(LogTemplates.BOT_SHUTTING_DOWN)
        self.container.metrics_collector.mark_ready(False)
        await self._stop_background_jobs()

        for client in list(self.voice_clients):
            try:
                await client.disconnect(force=True)
            except Exception as e:
                logger.warning(LogTemplates.BOT_VOICE_DISCONNECT_FAILED, e)

        try:
            await self.container.shutdown()
        except Exception as e:
            logger.warning(LogTemplates.BOT_CONTAINER_SHUTDOWN_ERROR, e)
        else:
            logger.info(LogTemplates.BOT_CONTAINER_SHUTDOWN)

        await super().close()
        logger.info(LogTemplates.BOT_SHUTDOWN_COMPLETE)

    def run_with_graceful_shutdown(self, token: str, *, shutdown_timeout: float = 30.0) -> None:
        """Run until SIGINT/SIGTERM, then give close() at most ``shutdown_timeout`` seconds."""

        async def main() -> None:
            stop = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, stop.set)

            async with self:
                runner = asyncio.create_task(self.start(token))
                waiter = asyncio.create_task(stop.wait())
                await asyncio.wait({runner, waiter}, return_when=asyncio.FIRST_COMPLETED)
                waiter.cancel()

                if runner.done():
                    runner.result()
                    return
                try:
                    await asyncio.wait_for(self.close(), timeout=shutdown_timeout)
                except TimeoutError:
                    logger.warning(LogTemplates.BOT_SHUTDOWN_TIMEOUT, shutdown_timeout)
                runner.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await runner

        asyncio.run(main())


def create_bot(container: Container, settings: Settings) -> LyreBot:
    return LyreBot(container=container, settings=settings)
