"""Exception hierarchy for perf recording sessions."""

from __future__ import annotations


class PerfRecordError(RuntimeError):
    pass


class ToolNotFoundError(PerfRecordError):
    """The profiling binary could not be resolved on this host."""


class StartupTimeoutError(PerfRecordError):
    """No report appeared before the startup deadline (or the tool died first)."""


class GracefulStopTimeoutError(PerfRecordError):
    """The tool did not exit in time after the graceful stop signal."""


class ConditionTimeoutError(PerfRecordError):
    """A polled condition did not become true before its deadline."""


class RecordingNotFoundError(PerfRecordError):
    pass


class ArtifactNotFoundError(PerfRecordError):
    pass


__all__ = [
    "PerfRecordError",
    "ToolNotFoundError",
    "StartupTimeoutError",
    "GracefulStopTimeoutError",
    "ConditionTimeoutError",
    "RecordingNotFoundError",
    "ArtifactNotFoundError",
]
