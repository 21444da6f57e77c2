"""Console log formatting."""

from __future__ import annotations

import logging
import os
import sys
from typing import IO


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when writing to a terminal.

    Color is off when ``NO_COLOR`` is set, when ``force_color`` is False, or
    when the target stream is not a TTY. ffmpeg lines relayed from the
    transcoder's stderr are dimmed so they stand apart from our own output.
    """

    COLORS: dict[int, str] = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    DIM = "\033[2m"
    RESET = "\033[0m"
    RELAYED_PREFIX = "ffmpeg["

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        *,
        stream: IO[str] | None = None,
        force_color: bool | None = None,
    ) -> None:
        super().__init__(fmt, datefmt)
        self._stream = stream
        self._force_color = force_color

    def _use_color(self) -> bool:
        if os.environ.get("NO_COLOR") is not None:
            return False
        if self._force_color is not None:
            return self._force_color
        stream = self._stream or sys.stdout
        return hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self._use_color():
            return super().format(record)

        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelno, "")
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        text = super().format(record)
        if record.getMessage().startswith(self.RELAYED_PREFIX):
            return f"{self.DIM}{text}{self.RESET}"
        return text
