"""Supervision of a single long-running external tool process.

The process is launched with ``asyncio.create_subprocess_exec``; stdout and
stderr are drained line by line by reader tasks and a monitor task waits for
the exit. Interested parties register plain callbacks instead of polling:

* output observers: ``callback(stdout_line, stderr_line)``, one slot is None.
  Called synchronously from the reader tasks.
* exit observers: ``callback(code, signal_name)``, called once after exit.
  ``code`` is None when the process was ended by a signal. Coroutine
  functions are awaited by the monitor task, in registration order.
"""

from __future__ import annotations

import asyncio
import inspect
import shlex
import signal
from typing import Any, Callable, List, Optional, Sequence, Tuple

import psutil

from .asyncio_utils import create_logged_task
from .errors import PerfRecordError
from .logging_utils import LoggerLike, ensure_structured_logger

OutputObserver = Callable[[Optional[str], Optional[str]], Any]
ExitObserver = Callable[[Optional[int], Optional[str]], Any]

STREAM_LIMIT = 1024 * 1024
READER_DRAIN_TIMEOUT = 1.0


def split_returncode(returncode: int) -> Tuple[Optional[int], Optional[str]]:
    """Translate an asyncio return code into ``(exit_code, signal_name)``."""
    if returncode >= 0:
        return returncode, None
    try:
        return None, signal.Signals(-returncode).name
    except ValueError:
        return None, f"SIG{-returncode}"


class SupervisedProcess:

    def __init__(
        self,
        executable: str,
        args: Sequence[object] = (),
        *,
        logger: LoggerLike = None,
    ):
        self.executable = str(executable)
        self.args = [str(arg) for arg in args]
        self.logger = ensure_structured_logger(logger, fallback_name="SupervisedProcess")

        self.process: Optional[asyncio.subprocess.Process] = None
        self.exit_code: Optional[int] = None
        self.exit_signal: Optional[str] = None

        self.stdout_task: Optional[asyncio.Task] = None
        self.stderr_task: Optional[asyncio.Task] = None
        self.monitor_task: Optional[asyncio.Task] = None

        self._output_observers: List[OutputObserver] = []
        self._exit_observers: List[ExitObserver] = []
        self._exited = asyncio.Event()

    # ------------------------------------------------------------------
    # Observer registration

    def on_output(self, callback: OutputObserver) -> None:
        self._output_observers.append(callback)

    def on_exit(self, callback: ExitObserver) -> None:
        self._exit_observers.append(callback)

    # ------------------------------------------------------------------
    # Introspection

    @property
    def command_line(self) -> str:
        return shlex.join([self.executable, *self.args])

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode if self.process else None

    @property
    def is_running(self) -> bool:
        return self.process is not None and not self._exited.is_set()

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> None:
        if self.process is not None:
            raise PerfRecordError(f"Process already started: {self.command_line}")

        self.process = await asyncio.create_subprocess_exec(
            self.executable,
            *self.args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LIMIT,
            start_new_session=True,
        )
        self.logger.debug("Process started with PID: %d", self.process.pid)

        self.stdout_task = create_logged_task(
            self._stream_reader(self.process.stdout, is_stderr=False),
            logger=self.logger,
            context="stdout reader",
        )
        self.stderr_task = create_logged_task(
            self._stream_reader(self.process.stderr, is_stderr=True),
            logger=self.logger,
            context="stderr reader",
        )
        self.monitor_task = create_logged_task(
            self._process_monitor(),
            logger=self.logger,
            context="process monitor",
        )

    async def stop(self, sig: int = signal.SIGTERM, timeout: Optional[float] = None) -> None:
        """Send ``sig`` and optionally wait up to ``timeout`` seconds for exit.

        Raises:
            asyncio.TimeoutError: the process is still alive after ``timeout``.
        """
        if not self.is_running:
            return

        if sig == signal.SIGKILL:
            self._kill_descendants()
        try:
            self.process.send_signal(sig)
        except ProcessLookupError:
            self.logger.debug("Process %d already gone", self.process.pid)

        if timeout is None:
            return
        await asyncio.wait_for(self._exited.wait(), timeout=timeout)

    async def wait(self) -> None:
        """Wait until the process exited and every exit observer has run."""
        if self.monitor_task is None:
            return
        await asyncio.shield(self.monitor_task)

    # ------------------------------------------------------------------
    # Background tasks

    async def _stream_reader(self, stream: Optional[asyncio.StreamReader], *, is_stderr: bool) -> None:
        if stream is None:
            return

        while True:
            line = await stream.readline()
            if not line:
                break
            text = line.decode(errors="replace").rstrip("\r\n")
            if is_stderr:
                self._notify_output(None, text)
            else:
                self._notify_output(text, None)

    def _notify_output(self, stdout: Optional[str], stderr: Optional[str]) -> None:
        for observer in list(self._output_observers):
            try:
                observer(stdout, stderr)
            except Exception as e:
                self.logger.error("Output observer error: %s", e, exc_info=True)

    async def _process_monitor(self) -> None:
        returncode = await self.process.wait()

        readers = [task for task in (self.stdout_task, self.stderr_task) if task]
        if readers:
            _, still_reading = await asyncio.wait(readers, timeout=READER_DRAIN_TIMEOUT)
            for task in still_reading:
                task.cancel()

        self.exit_code, self.exit_signal = split_returncode(returncode)
        self._exited.set()
        self.logger.debug(
            "Process %d exited (code=%s, signal=%s)",
            self.process.pid,
            self.exit_code,
            self.exit_signal,
        )

        for observer in list(self._exit_observers):
            try:
                result = observer(self.exit_code, self.exit_signal)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error("Exit observer error: %s", e, exc_info=True)

    def _kill_descendants(self) -> None:
        # Helper processes spawned by the tool keep our pipes open otherwise
        try:
            children = psutil.Process(self.process.pid).children(recursive=True)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return

        for child in children:
            try:
                self.logger.debug("Killing helper process: pid=%d", child.pid)
                child.kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue


__all__ = ["SupervisedProcess", "split_returncode", "OutputObserver", "ExitObserver"]
