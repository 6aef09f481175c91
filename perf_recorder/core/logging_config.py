"""Handler setup for perf recorder entry points.

The command line prints the archive path on stdout, so console records go to
stderr. Handlers installed here are tagged and replaced on reconfiguration;
handlers installed by anyone else (pytest, an embedding application) are
left alone.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .logging_utils import LOGGER_NAMESPACE

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s %(message)s"
LOG_DATEFMT = "%H:%M:%S"
LOG_FILE_MAX_BYTES = 2 * 1024 * 1024  # tool output is chatty at DEBUG
LOG_FILE_BACKUPS = 2

_OWNED_ATTR = "_perf_recorder_owned"


def coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level '{level}'")
    return resolved


def _build_handlers(console: bool, log_file: Optional[Union[str, Path]]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )
    return handlers


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    quiet_loggers: Iterable[str] = ("asyncio",),
) -> List[logging.Handler]:
    """Install console and/or rotating file handlers on the root logger.

    ``quiet_loggers`` never go below WARNING, whatever ``level`` is.

    Returns:
        The handlers that were installed
    """
    numeric_level = coerce_level(level)
    root = logging.getLogger()

    for handler in list(root.handlers):
        if getattr(handler, _OWNED_ATTR, False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers = _build_handlers(console, log_file)
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _OWNED_ATTR, True)
        root.addHandler(handler)

    root.setLevel(numeric_level)
    logging.getLogger(LOGGER_NAMESPACE).setLevel(numeric_level)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    return handlers


__all__ = ["configure_logging", "coerce_level", "LOG_FORMAT", "LOG_DATEFMT"]
