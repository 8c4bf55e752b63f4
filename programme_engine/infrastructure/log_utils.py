"""Tagged log helpers used by services, stores and the outer surfaces."""

from __future__ import annotations

import inspect
import logging

from programme_engine.logging_setup import get_logger, get_tag_for_module


def _caller_tag() -> str:
    # First frame outside this module decides the tag.
    for frame_info in inspect.stack()[1:]:
        module = inspect.getmodule(frame_info.frame)
        module_name = getattr(module, "__name__", "unknown")
        if module_name != __name__:
            return get_tag_for_module(module_name)
    return "GEN"


def log_message(msg: str, level: int = logging.INFO, tag: str | None = None, **kwargs) -> None:
    """Write ``msg`` to the engine log; ``kwargs`` go to ``Logger.log`` (e.g. ``exc_info``)."""
    get_logger(tag or _caller_tag()).log(level, msg, **kwargs)


def debug(msg: str, tag: str | None = None, **kwargs):
    log_message(msg, logging.DEBUG, tag, **kwargs)


def info(msg: str, tag: str | None = None, **kwargs):
    log_message(msg, logging.INFO, tag, **kwargs)


def warn(msg: str, tag: str | None = None, **kwargs):
    log_message(msg, logging.WARNING, tag, **kwargs)


def error(msg: str, tag: str | None = None, **kwargs):
    log_message(msg, logging.ERROR, tag, **kwargs)
