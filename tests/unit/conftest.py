"""Unit test fixtures for perf recording sessions.

This file provides:
- A factory for fake profiling tools (see tests.infrastructure.fake_tool)
- Settings with short, test-friendly deadlines
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Union

import pytest

from perf_recorder.core.settings import RecorderSettings
from tests.infrastructure.fake_tool import write_fake_tool


@pytest.fixture
def fake_tool(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing an executable stand-in for the profiling tool."""

    def _make(body: str, name: str = "fake_instruments") -> Path:
        return write_fake_tool(tmp_path / "bin", body, name)

    return _make


@pytest.fixture
def report_dir(tmp_path: Path) -> Path:
    path = tmp_path / "reports"
    path.mkdir()
    return path


@pytest.fixture
def make_settings(report_dir: Path) -> Callable[..., RecorderSettings]:
    """Factory for settings with short deadlines and a fast poll interval."""

    def _make(binary: Union[Path, str] = "instruments", **overrides) -> RecorderSettings:
        values = dict(
            binary=str(binary),
            startup_timeout_ms=3000,
            stop_timeout_ms=3000,
            poll_interval_ms=50,
            report_dir=report_dir,
        )
        values.update(overrides)
        return RecorderSettings(**values)

    return _make
