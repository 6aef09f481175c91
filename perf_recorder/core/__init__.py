
from .errors import (
    ArtifactNotFoundError,
    ConditionTimeoutError,
    GracefulStopTimeoutError,
    PerfRecordError,
    RecordingNotFoundError,
    StartupTimeoutError,
    ToolNotFoundError,
)
from .perf_recorder import PerfRecorder, RecordingState
from .registry import PerfRecorderRegistry
from .settings import RecorderSettings, load_settings
from .supervised_process import SupervisedProcess

__version__ = "1.0.0"

__all__ = [
    'PerfRecorder',
    'RecordingState',
    'PerfRecorderRegistry',
    'RecorderSettings',
    'load_settings',
    'SupervisedProcess',
    'PerfRecordError',
    'ToolNotFoundError',
    'StartupTimeoutError',
    'GracefulStopTimeoutError',
    'ConditionTimeoutError',
    'RecordingNotFoundError',
    'ArtifactNotFoundError',
    '__version__',
]
