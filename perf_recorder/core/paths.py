"""Centralized path constants for the perf recorder."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

# User-specific state (allows running from read-only checkouts)
_USER_STATE_ENV = os.environ.get("PERF_RECORDER_STATE_DIR")
USER_STATE_DIR = Path(_USER_STATE_ENV).expanduser() if _USER_STATE_ENV else (Path.home() / ".perf_recorder")

# Configuration
CONFIG_PATH = USER_STATE_DIR / "config.txt"

# Logging
LOGS_DIR = USER_STATE_DIR / "logs"
RECORDER_LOG_FILE = LOGS_DIR / "perf_recorder.log"

# Raw reports are scratch data; they are archived and then removed
DEFAULT_REPORT_DIR = Path(tempfile.gettempdir())


__all__ = [
    'USER_STATE_DIR',
    'CONFIG_PATH',
    'LOGS_DIR',
    'RECORDER_LOG_FILE',
    'DEFAULT_REPORT_DIR',
]
