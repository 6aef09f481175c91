"""
Perf Recorder - one supervised ``instruments`` recording session.

A session owns a single profiling process, the raw ``.trace`` report that
process writes and the ``.zip`` archive made from that report. The process
can end three ways (natural exit, graceful stop, forced termination); all of
them converge on the same artifact bookkeeping.

The archive is produced at most once per raw report: the first caller
creates a shared task and every other caller, including the exit observer,
awaits that same task.
"""

import asyncio
import contextlib
import signal
from enum import Enum
from pathlib import Path
from typing import Optional, Set, Union

from .asyncio_utils import create_logged_task, wait_for_condition
from .errors import (
    GracefulStopTimeoutError,
    PerfRecordError,
    StartupTimeoutError,
    ToolNotFoundError,
)
from .file_utils import exists, rimraf, to_archive, which
from .logging_utils import get_session_logger
from .settings import RecorderSettings
from .supervised_process import SupervisedProcess

DEFAULT_EXT = "trace"
ARCHIVE_EXT = "zip"
KILL_TIMEOUT = 10.0


class RecordingState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED_STARTUP = "failed_startup"
    FORCE_TERMINATED = "force_terminated"


class ProcessDiedError(PerfRecordError):
    pass


def archive_path_for(report_path: Union[str, Path]) -> Path:
    path = Path(report_path)
    if path.suffix == f".{DEFAULT_EXT}":
        return path.with_suffix(f".{ARCHIVE_EXT}")
    return path.with_name(f"{path.name}.{ARCHIVE_EXT}")


async def require_tool(binary: str) -> str:
    resolved = await which(binary)
    if not resolved:
        raise ToolNotFoundError(
            f"{binary} has not been found in PATH. "
            f"Please make sure Xcode development tools are installed"
        )
    return resolved


class PerfRecorder:

    def __init__(
        self,
        report_path: Union[str, Path],
        udid: str,
        *,
        timeout_ms: Optional[int] = None,
        profile_name: Optional[str] = None,
        pid: Optional[int] = None,
        settings: Optional[RecorderSettings] = None,
    ):
        self.settings = settings or RecorderSettings()
        self._report_path = Path(report_path)
        self._zipped_report_path: Optional[Path] = None
        self._timeout_ms = timeout_ms if timeout_ms and timeout_ms > 0 else self.settings.default_timeout_ms
        self._profile_name = profile_name or self.settings.default_profile_name
        self._pid = pid
        self._udid = udid
        self.logger = get_session_logger(self._profile_name, self._udid)

        self._process: Optional[SupervisedProcess] = None
        self._archive_task: Optional[asyncio.Task] = None
        self._background_tasks: Set[asyncio.Task] = set()
        self.state = RecordingState.IDLE

    @property
    def profile_name(self) -> str:
        return self._profile_name

    @property
    def udid(self) -> str:
        return self._udid

    @property
    def report_path(self) -> Path:
        return self._report_path

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    def is_running(self) -> bool:
        return self._process is not None and self._process.is_running

    def build_args(self) -> list[str]:
        # https://help.apple.com/instruments/mac/current/#/devb14ffaa5
        args = [
            '-w', self._udid,
            '-t', self._profile_name,
            '-D', str(self._report_path),
            '-l', str(self._timeout_ms),
        ]
        if self._pid:
            args.extend(['-p', str(self._pid)])
        return args

    # ------------------------------------------------------------------
    # Artifacts

    async def get_original_report_path(self) -> str:
        return str(self._report_path) if await exists(self._report_path) else ''

    async def get_zipped_report_path(self) -> str:
        if self._zipped_report_path and await exists(self._zipped_report_path):
            return str(self._zipped_report_path)

        original_report_path = await self.get_original_report_path()
        if not original_report_path:
            return ''

        zipped_report_path = archive_path_for(original_report_path)
        # No await between the check and the assignment: every concurrent
        # caller ends up awaiting this one task
        if self._archive_task is None:
            self._archive_task = asyncio.ensure_future(to_archive(zipped_report_path, original_report_path))
        await asyncio.shield(self._archive_task)
        self._zipped_report_path = zipped_report_path
        return str(self._zipped_report_path)

    async def _cache_zipped_report(self) -> None:
        try:
            await self.get_zipped_report_path()
        except Exception as e:
            self.logger.warning("Failed to archive the performance report: %s", e)

    # ------------------------------------------------------------------
    # Process observers

    def _on_output(self, stdout: Optional[str], stderr: Optional[str]) -> None:
        line = stdout or stderr
        if line and line.strip():
            self.logger.debug("[%s] %s", self.settings.binary, line)

    def _make_exit_observer(self, process: SupervisedProcess):
        async def _on_exit(code: Optional[int], sig: Optional[str]) -> None:
            if self._process is not process:
                self.logger.debug("Exit of %s already handled", self.settings.binary)
                return
            self._process = None
            if code == 0:
                self.logger.debug("Performance recording exited without errors")
                self.state = RecordingState.COMPLETED
                create_logged_task(
                    self._cache_zipped_report(),
                    logger=self.logger,
                    context="report archive warm-up",
                    pending=self._background_tasks,
                )
            else:
                await self._enforce_termination()
                self.logger.warning(
                    "Performance recording exited with error code %s, signal %s", code, sig
                )

        return _on_exit

    # ------------------------------------------------------------------
    # Termination

    async def _enforce_termination(self) -> str:
        process, self._process = self._process, None
        if process is not None and process.is_running:
            self.logger.debug("Force-stopping the currently running perf recording")
            try:
                await process.stop(signal.SIGKILL, timeout=KILL_TIMEOUT)
            except Exception as e:
                self.logger.debug("Ignoring kill failure: %s", e)

        if self.state is not RecordingState.FAILED_STARTUP:
            self.state = RecordingState.FORCE_TERMINATED

        if self._background_tasks:
            await asyncio.gather(*tuple(self._background_tasks), return_exceptions=True)
        zipped_report_path = self._zipped_report_path or archive_path_for(self._report_path)
        if self._archive_task is not None:
            # Never delete the archive while it is still being written
            with contextlib.suppress(Exception):
                await asyncio.shield(self._archive_task)
        await rimraf(zipped_report_path)
        self._archive_task = None
        self._zipped_report_path = None

        await rimraf(self._report_path)
        return ''

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> None:
        if self.is_running():
            self.logger.warning("Performance recording is already running")
            return
        if self.state is not RecordingState.IDLE:
            # Artifacts of the previous run would satisfy the readiness check
            self.logger.debug("Discarding the artifacts of the previous recording")
            await self._enforce_termination()

        binary = await require_tool(self.settings.binary)
        process = SupervisedProcess(binary, self.build_args(), logger=self.logger)
        self._process = process
        self._archive_task = None
        self._zipped_report_path = None
        self.state = RecordingState.STARTING

        self.logger.debug("Starting %s: %s", self.settings.binary, process.command_line)
        process.on_output(self._on_output)
        process.on_exit(self._make_exit_observer(process))
        try:
            await process.start()
        except OSError as e:
            self._process = None
            self.state = RecordingState.FAILED_STARTUP
            raise PerfRecordError(
                f"Cannot launch {self.settings.binary} for performance profile "
                f"'{self._profile_name}' on device {self._udid}: {e}"
            ) from e

        async def _report_is_ready() -> bool:
            if await self.get_original_report_path():
                return True
            if self._process is not process:
                raise ProcessDiedError(f"{self.settings.binary} process died unexpectedly")
            return False

        try:
            await wait_for_condition(
                _report_is_ready,
                timeout=self.settings.startup_timeout,
                interval=self.settings.poll_interval,
            )
        except asyncio.CancelledError:
            self.state = RecordingState.FAILED_STARTUP
            await self._enforce_termination()
            raise
        except Exception as e:
            self.state = RecordingState.FAILED_STARTUP
            await self._enforce_termination()
            raise StartupTimeoutError(
                f"There is no .{DEFAULT_EXT} file found for performance profile "
                f"'{self._profile_name}' on device {self._udid}. "
                f"Make sure the profile is supported on this device. "
                f"You could use '{self.settings.binary} -s' command to see the list of all available profiles. "
                f"Check the server log for more details"
            ) from e

        if self._process is not process or self.state is not RecordingState.STARTING:
            # Exited (or was force-stopped) between two readiness polls
            self.logger.debug(
                "%s is no longer running after startup; state: %s", self.settings.binary, self.state.value
            )
            return
        self.state = RecordingState.RUNNING
        self.logger.info("The performance recording has started. Will timeout in %dms", self._timeout_ms)

    async def stop(self, force: bool = False) -> str:
        if force:
            return await self._enforce_termination()

        if not self.is_running():
            self.logger.debug("Performance recording is not running. Returning the recent result")
            return await self.get_zipped_report_path()

        try:
            await self._process.stop(signal.SIGINT, timeout=self.settings.stop_timeout)
        except asyncio.TimeoutError as e:
            raise GracefulStopTimeoutError(
                f"Performance recording of '{self._profile_name}' on device {self._udid} "
                f"has failed to exit after {self.settings.stop_timeout_ms}ms"
            ) from e
        return await self.get_zipped_report_path()


__all__ = [
    "PerfRecorder",
    "RecordingState",
    "archive_path_for",
    "require_tool",
    "DEFAULT_EXT",
    "ARCHIVE_EXT",
]
