"""Supervised ``instruments`` performance recording sessions."""

from perf_recorder.core import (
    PerfRecorder,
    PerfRecorderRegistry,
    RecorderSettings,
    __version__,
)

__all__ = [
    "PerfRecorder",
    "PerfRecorderRegistry",
    "RecorderSettings",
    "__version__",
]
