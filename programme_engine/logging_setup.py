"""Logging for the progression engine.

Everything goes through one named logger with a size-rotated file handler
(and optionally stderr). Lines look like::

    [2024-01-01T09:00:00Z] [INFO] [DAY] Day 1 complete for u1:renewal-14 (1/14).

The tag names the area of the engine that wrote the line and is inferred
from the calling module when not given.
"""

from __future__ import annotations

import inspect
import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from programme_engine.config import get_env, settings

LOGGER_NAME = "programme_engine.history"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 7

# Module keyword -> tag; first match wins.
TAG_MAP = {
    "enrollment": "ENROL",
    "completion": "DAY",
    "navigation": "DAY",
    "fasting": "FAST",
    "store": "STORE",
    "decorators": "STORE",
    "event": "EVENT",
    "engine": "ENGINE",
    "api": "API",
    "cli": "CLI",
}

_configured = False


class TaggedLogger(logging.LoggerAdapter):
    """Adds the ``tag`` field the formatter expects."""

    def process(self, msg, kwargs):
        extra = kwargs.setdefault("extra", {})
        extra.setdefault("tag", self.extra.get("tag", "GEN"))
        return msg, kwargs


def _level_from(name: Optional[str]) -> int:
    candidate = str(name or get_env("ENGINE_LOG_LEVEL", default=settings.ENGINE_LOG_LEVEL)).upper()
    level = logging.getLevelName(candidate)
    if isinstance(level, int):
        return level
    print(f"programme_engine logger: unknown log level '{candidate}', using INFO.", file=sys.stderr)
    return logging.INFO


def configure_logging(
    *,
    log_path: Optional[Path] = None,
    level: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
    force: bool = False,
) -> logging.Logger:
    """Attach the rotating file handler (once, unless ``force``) and return the logger."""
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    if _configured and not force:
        return logger
    reset_logging()

    logger.setLevel(_level_from(level))
    logger.propagate = False
    formatter = logging.Formatter("[%(asctime)s] [%(levelname)s] [%(tag)s] %(message)s", "%Y-%m-%dT%H:%M:%SZ")
    formatter.converter = time.gmtime

    path = Path(log_path) if log_path is not None else settings.log_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes or DEFAULT_MAX_BYTES,
            backupCount=backup_count or DEFAULT_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as exc:
        # Keep running without a file; stderr may still be attached below.
        print(f"programme_engine logger: cannot open {path}: {exc}", file=sys.stderr)
    else:
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if get_env("ENGINE_LOG_TO_CONSOLE", default=settings.ENGINE_LOG_TO_CONSOLE):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    _configured = True
    return logger


def get_tag_for_module(module_name: str) -> str:
    name = module_name.lower()
    if name.startswith("programme_engine."):
        name = name[len("programme_engine."):]
    return next((tag for key, tag in TAG_MAP.items() if key in name), "GEN")


def get_logger(tag: str | None = None) -> TaggedLogger:
    """Tagged adapter over the engine logger; the tag defaults to the caller's area."""
    if tag is None:
        caller = inspect.getmodule(inspect.stack()[1].frame)
        tag = get_tag_for_module(getattr(caller, "__name__", "unknown"))
    return TaggedLogger(configure_logging(), {"tag": tag})


def reset_logging() -> None:
    """Close and detach all handlers so the next call reconfigures from scratch."""
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    _configured = False
