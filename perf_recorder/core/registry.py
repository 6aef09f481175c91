"""
Perf Recorder Registry - tracks the recordings started for one device.

Recordings are keyed by profile name: starting a profile that is already
being recorded is a no-op, and stopping looks the recording up by the same
name. The registry only relies on ``PerfRecorder.profile_name`` and
``PerfRecorder.is_running()``.
"""

import re
import uuid
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .errors import ArtifactNotFoundError, RecordingNotFoundError
from .file_utils import exists
from .logging_utils import get_module_logger
from .perf_recorder import DEFAULT_EXT, PerfRecorder
from .settings import RecorderSettings

RecorderFactory = Callable[..., PerfRecorder]


class PerfRecorderRegistry:
    """
    Owns every perf recording session started against a single device.

    Responsibilities:
    - Deduplicate recordings by profile name
    - Allocate unique report paths
    - Translate "stopped but nothing produced" into a descriptive error
    """

    def __init__(
        self,
        udid: str,
        *,
        settings: Optional[RecorderSettings] = None,
        recorder_factory: RecorderFactory = PerfRecorder,
    ):
        self.udid = udid
        self.settings = settings or RecorderSettings()
        self.recorder_factory = recorder_factory
        self.logger = get_module_logger("PerfRecorderRegistry")
        self._recorders: List[PerfRecorder] = []

    def __len__(self) -> int:
        return len(self._recorders)

    @property
    def recorders(self) -> Tuple[PerfRecorder, ...]:
        return tuple(self._recorders)

    def find(self, profile_name: str) -> List[PerfRecorder]:
        return [r for r in self._recorders if r.profile_name == profile_name]

    def make_report_path(self, profile_name: str) -> Path:
        safe_name = re.sub(r'\W', '_', profile_name)
        return Path(self.settings.report_dir).resolve() / (
            f"perf_{safe_name}_{uuid.uuid4().hex[:8]}.{DEFAULT_EXT}"
        )

    async def start_recording(
        self,
        profile_name: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        pid: Optional[int] = None,
    ) -> PerfRecorder:
        """
        Start recording ``profile_name`` unless it is already being recorded.

        Finished recordings of the same profile are dropped and their
        artifacts removed before the new recording starts.

        Returns:
            The running recorder for this profile
        """
        profile_name = profile_name or self.settings.default_profile_name

        for recorder in self.find(profile_name):
            if recorder.is_running():
                self.logger.debug(
                    "Performance recorder for '%s' on device '%s' is already running. Doing nothing",
                    profile_name, self.udid,
                )
                return recorder
            self._recorders.remove(recorder)
            await recorder.stop(force=True)

        recorder = self.recorder_factory(
            self.make_report_path(profile_name),
            self.udid,
            timeout_ms=timeout_ms,
            profile_name=profile_name,
            pid=pid,
            settings=self.settings,
        )
        await recorder.start()
        self._recorders.append(recorder)
        return recorder

    async def stop_recording(self, profile_name: Optional[str] = None) -> str:
        """
        Gracefully stop the recording of ``profile_name``.

        Returns:
            Path to the archived report, or '' when nothing was ever started

        Raises:
            RecordingNotFoundError: no recording exists for the profile
            ArtifactNotFoundError: the recording left no archive behind
        """
        if not self._recorders:
            self.logger.info("No performance recorders have been started. Doing nothing")
            return ''

        profile_name = profile_name or self.settings.default_profile_name
        recorders = self.find(profile_name)
        if not recorders:
            raise RecordingNotFoundError(
                f"There are no records for performance profile '{profile_name}' "
                f"and device {self.udid}. Have you started the profiling before?"
            )

        result_path = await recorders[0].stop()
        if not await exists(result_path):
            raise ArtifactNotFoundError(
                f"There is no .{DEFAULT_EXT} file found for performance profile '{profile_name}' "
                f"and device {self.udid}. Make sure the profile is supported on this device. "
                f"You could use '{self.settings.binary} -s' command to see the list of all available profiles."
            )
        return result_path

    async def cleanup(self) -> None:
        """Force-stop every recorder and forget about it."""
        recorders, self._recorders = self._recorders, []
        for recorder in recorders:
            try:
                await recorder.stop(force=True)
            except Exception as e:
                self.logger.error("Error cleaning up recorder '%s': %s", recorder.profile_name, e)
        if recorders:
            self.logger.info("Cleaned up %d performance recorder(s)", len(recorders))


__all__ = ["PerfRecorderRegistry"]
