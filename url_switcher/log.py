from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any

from .config import SwitcherConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_LOGGER = logging.getLogger("url_switcher")


def configure_logging(config: SwitcherConfig) -> None:
    """Route `url_switcher.*` logs to stderr (and `log_file` when set). stdout stays untouched."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)
    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if config.log_file:
        try:
            file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        except OSError as exc:
            _LOGGER.warning("cannot open log file %s: %s", config.log_file, exc)
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    root.setLevel(getattr(logging, config.log_level, logging.INFO))
    for name in ("websockets", "websockets.server", "websockets.client"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    exc = context.get("exception")
    message = context.get("message") or "unhandled error in event loop"
    if exc is not None:
        _LOGGER.error("%s", message, exc_info=exc)
    else:
        _LOGGER.error("%s: %s", message, context)


def install_loop_exception_handler(loop: asyncio.AbstractEventLoop | None = None) -> None:
    """Log uncaught task failures with their traceback; the process keeps running."""
    (loop or asyncio.get_running_loop()).set_exception_handler(_loop_exception_handler)


__all__ = ["LOG_FORMAT", "configure_logging", "install_loop_exception_handler"]
