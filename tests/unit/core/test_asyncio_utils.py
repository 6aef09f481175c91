"""Unit tests for asyncio_utils."""

import asyncio
import logging

import pytest

from perf_recorder.core.asyncio_utils import create_logged_task, wait_for_condition
from perf_recorder.core.errors import ConditionTimeoutError


class TestWaitForCondition:
    """Test wait_for_condition polling."""

    @pytest.mark.asyncio
    async def test_returns_immediately_when_true(self):
        calls = []

        def condition():
            calls.append(1)
            return "ready"

        result = await wait_for_condition(condition, timeout=1.0, interval=0.5)

        assert result == "ready"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_async_condition_polled_until_true(self):
        attempts = 0

        async def condition():
            nonlocal attempts
            attempts += 1
            return attempts >= 3

        assert await wait_for_condition(condition, timeout=2.0, interval=0.01) is True
        assert attempts == 3

    @pytest.mark.asyncio
    async def test_timeout(self):
        loop = asyncio.get_running_loop()
        started = loop.time()

        with pytest.raises(ConditionTimeoutError, match="not ready"):
            await wait_for_condition(lambda: False, timeout=0.2, interval=0.05, error_message="not ready")

        assert 0.15 <= loop.time() - started < 1.0

    @pytest.mark.asyncio
    async def test_condition_error_aborts_early(self):
        attempts = 0

        def condition():
            nonlocal attempts
            attempts += 1
            if attempts == 2:
                raise RuntimeError("process died")
            return False

        with pytest.raises(RuntimeError, match="process died"):
            await wait_for_condition(condition, timeout=5.0, interval=0.01)

        assert attempts == 2


class TestCreateLoggedTask:
    """Test create_logged_task bookkeeping."""

    @pytest.mark.asyncio
    async def test_exception_is_logged(self, caplog):
        async def boom():
            raise ValueError("background failure")

        with caplog.at_level(logging.ERROR):
            task = create_logged_task(boom(), context="warm-up")
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)

        assert "Unhandled exception in warm-up" in caplog.text

    @pytest.mark.asyncio
    async def test_pending_set_tracks_task(self):
        pending = set()
        release = asyncio.Event()

        async def work():
            await release.wait()
            return "done"

        task = create_logged_task(work(), pending=pending)
        assert task in pending

        release.set()
        assert await task == "done"
        await asyncio.sleep(0)
        assert task not in pending
