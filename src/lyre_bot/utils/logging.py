"""Colored logging formatter for console output."""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Literal


class ColoredFormatter(logging.Formatter):
    """Logging formatter that applies ANSI color codes to the levelname field.

    With ``use_color="auto"`` colors are disabled when the ``NO_COLOR``
    environment variable is set or when the stream is not a TTY (e.g.
    redirected to a file). ``True``/``False`` force the choice.
    """

    COLORS: dict[int, str] = {
        logging.DEBUG: "\033[36m",     # cyan
        logging.INFO: "\033[32m",      # green
        logging.WARNING: "\033[33m",   # yellow
        logging.ERROR: "\033[31m",     # red
        logging.CRITICAL: "\033[1;31m",  # bold red
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: Literal["%", "{", "$"] = "%",
        use_color: bool | Literal["auto"] = "auto",
        stream: IO[str] | None = None,
    ) -> None:
        super().__init__(fmt, datefmt, style)
        self._use_color_setting = use_color
        self._stream = stream

    def _use_color(self) -> bool:
        if self._use_color_setting != "auto":
            return bool(self._use_color_setting)
        if os.environ.get("NO_COLOR") is not None:
            return False
        stream = self._stream or sys.stdout
        return hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if self._use_color():
            color = self.COLORS.get(record.levelno, "")
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)
