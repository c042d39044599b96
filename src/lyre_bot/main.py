#!/usr/bin/env python3
"""Start Lyre Bot: read settings, configure logging, wire the container, run."""

from __future__ import annotations

import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import Any

from lyre_bot.domain.shared.messages import ErrorMessages, LogTemplates

# Repository root when running from a checkout.
DEFAULT_LOGGING_CONFIG = Path(__file__).resolve().parents[2] / "logging_config.json"
FALLBACK_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def _read_logging_config(path: Path) -> dict[str, Any] | None:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None


def setup_logging(log_level: str = "INFO", config_path: Path | None = None) -> None:
    """Apply the JSON dictConfig if it loads, else a plain console handler.

    ``log_level`` always wins for the root logger.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    path = config_path or DEFAULT_LOGGING_CONFIG

    config = _read_logging_config(path)
    applied = False
    if config is not None:
        try:
            logging.config.dictConfig(config)
            applied = True
        except (ValueError, TypeError, AttributeError, ImportError):
            applied = False

    if not applied:
        logging.basicConfig(level=level, format=FALLBACK_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        logging.getLogger(__name__).warning("Logging config %s unusable; using basicConfig", path)

    logging.getLogger().setLevel(level)


def main() -> int:
    from lyre_bot.config.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    token = settings.discord.token.get_secret_value()
    if not token:
        logger.error(ErrorMessages.DISCORD_TOKEN_REQUIRED)
        return 1

    from lyre_bot.config.container import create_container
    from lyre_bot.infrastructure.discord.bot import create_bot

    logger.info(LogTemplates.BOT_STARTING.format(environment=settings.environment))
    bot = create_bot(create_container(settings), settings)

    try:
        logger.info(LogTemplates.BOT_STARTING_RUN)
        bot.run_with_graceful_shutdown(token)
    except KeyboardInterrupt:
        logger.info(LogTemplates.BOT_KEYBOARD_INTERRUPT)
    except Exception as e:
        logger.exception(LogTemplates.BOT_FATAL_ERROR, e)
        return 1
    else:
        logger.info(LogTemplates.BOT_STOPPED)
    return 0


def cli() -> None:
    """Entry point for the ``lyre-bot`` console script."""
    sys.exit(main())


if __name__ == "__main__":
    cli()  # pragma: no cover
