"""Standalone runner: record one performance trace and hand back the archive."""

from __future__ import annotations

import argparse
import asyncio
import shutil
from pathlib import Path
from typing import Optional, Sequence

from perf_recorder.cli.common import (
    add_common_cli_arguments,
    install_exception_handlers,
    install_signal_handlers,
    positive_float,
    positive_int,
    setup_cli_logging,
)
from perf_recorder.core.asyncio_utils import wait_for_condition
from perf_recorder.core.errors import ConditionTimeoutError, PerfRecordError
from perf_recorder.core.logging_utils import get_module_logger
from perf_recorder.core.perf_recorder import PerfRecorder
from perf_recorder.core.registry import PerfRecorderRegistry
from perf_recorder.core.settings import load_settings

logger = get_module_logger("PerfRecorderCLI")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perf_recorder",
        description="Record an instruments performance trace for a device",
    )
    parser.add_argument("--udid", required=True, help="Identifier of the device to record")
    parser.add_argument(
        "--profile",
        dest="profile_name",
        default=None,
        help="Instruments template name or path (see 'instruments -s')",
    )
    parser.add_argument(
        "--duration",
        type=positive_float,
        default=None,
        help="Seconds to record before stopping (default: until SIGINT/SIGTERM or tool timeout)",
    )
    parser.add_argument(
        "--timeout-ms",
        dest="timeout_ms",
        type=positive_int,
        default=None,
        help="Maximum recording length passed to the tool",
    )
    parser.add_argument("--pid", type=positive_int, default=None, help="Only record this process")
    parser.add_argument("--output", type=Path, default=None, help="Copy the zipped trace here")
    parser.add_argument("--binary", default=None, help="Profiling tool to invoke")
    parser.add_argument("--report-dir", dest="report_dir", type=Path, default=None,
                        help="Directory for the raw trace and its archive")
    parser.add_argument("--startup-timeout-ms", dest="startup_timeout_ms", type=positive_int, default=None)
    parser.add_argument("--stop-timeout-ms", dest="stop_timeout_ms", type=positive_int, default=None)
    add_common_cli_arguments(parser)
    return parser


async def _wait_for_end(
    recorder: PerfRecorder,
    shutdown_event: asyncio.Event,
    duration: Optional[float],
) -> None:
    if duration is None:
        # The tool ends itself once its own timeout elapses
        duration = (recorder.timeout_ms + recorder.settings.stop_timeout_ms) / 1000

    try:
        await wait_for_condition(
            lambda: shutdown_event.is_set() or not recorder.is_running(),
            timeout=duration,
            interval=recorder.settings.poll_interval,
        )
    except ConditionTimeoutError:
        logger.info("Recording duration of %.1fs elapsed", duration)


async def run(args: argparse.Namespace) -> int:
    settings = await load_settings(args.config, args)
    registry = PerfRecorderRegistry(args.udid, settings=settings)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()
    install_exception_handlers(logger.logger, loop)
    install_signal_handlers(shutdown_event, loop)

    keep_artifacts = False
    try:
        recorder = await registry.start_recording(args.profile_name, args.timeout_ms, args.pid)
        await _wait_for_end(recorder, shutdown_event, args.duration)
        result_path = await registry.stop_recording(recorder.profile_name)

        if args.output:
            await asyncio.to_thread(shutil.copyfile, result_path, args.output)
            result_path = str(args.output)
        else:
            keep_artifacts = True
        logger.info("Performance trace is available at %s", result_path)
        print(result_path)
        return 0
    except PerfRecordError as e:
        logger.error("%s", e)
        return 1
    finally:
        if not keep_artifacts:
            await registry.cleanup()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_cli_logging(args)
    return asyncio.run(run(args))


__all__ = ["build_parser", "run", "main"]
