"""Logging setup: key=value text records to app.log and stdout."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

LOGGER_NAME = "iqfetch"
DEFAULT_LOG_FILE = Path("app.log")

_HANDLER_MARKER = "_iqfetch_handler"

# Attributes every LogRecord carries; anything else arrived via ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}


class KeyValueFormatter(logging.Formatter):
    """Render ``extra`` fields after the message as ``key=value`` pairs."""

    def __init__(self) -> None:
        super().__init__("time=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)r")

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = [
            f"{key}={_render_value(value)}"
            for key, value in sorted(vars(record).items())
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        ]
        if not fields:
            return base
        return f"{base} {' '.join(fields)}"


def _render_value(value: object) -> str:
    text = str(value)
    if not text or any(ch.isspace() for ch in text) or "=" in text or '"' in text:
        return repr(text)
    return text


def configure_logging(
    log_file: Path | None = DEFAULT_LOG_FILE,
    *,
    level: int = logging.DEBUG,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Attach file and stream handlers to the package logger.

    Safe to call repeatedly; handlers installed by a previous call are replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = KeyValueFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARKER, True)
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False
    return logger
