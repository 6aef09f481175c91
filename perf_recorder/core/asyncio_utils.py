"""Asyncio helpers for polling and fire-and-forget work."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from .errors import ConditionTimeoutError
from .logging_utils import LoggerLike, ensure_structured_logger

Condition = Callable[[], Union[Any, Awaitable[Any]]]


def _task_label(task: asyncio.Task[Any], context: Optional[str]) -> str:
    if context:
        return context
    name = task.get_name()
    return name or "background task"


def add_task_exception_logger(
    task: asyncio.Task[Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
) -> asyncio.Task[Any]:
    """Ensure task exceptions are retrieved and logged.

    Without this, exceptions in fire-and-forget tasks surface as
    "Task exception was never retrieved" warnings long after the
    original failure.
    """
    task_logger = ensure_structured_logger(logger, fallback_name="asyncio")

    def _done(done_task: asyncio.Task[Any]) -> None:
        if done_task.cancelled():
            return
        exc = done_task.exception()
        if exc is not None:
            task_logger.error(
                "Unhandled exception in %s",
                _task_label(done_task, context),
                exc_info=exc,
            )

    task.add_done_callback(_done)
    return task


def create_logged_task(
    coro: Awaitable[Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
    pending: Optional[set[asyncio.Task[Any]]] = None,
) -> asyncio.Task[Any]:
    """Create a task that won't lose exceptions, optionally tracking it."""
    task = asyncio.ensure_future(coro)
    if context:
        with contextlib.suppress(Exception):  # pragma: no cover - best effort
            task.set_name(context)

    add_task_exception_logger(task, logger=logger, context=context)

    if pending is not None:
        pending.add(task)
        task.add_done_callback(pending.discard)

    return task


async def wait_for_condition(
    condition: Condition,
    *,
    timeout: float,
    interval: float = 0.5,
    error_message: Optional[str] = None,
) -> Any:
    """Poll ``condition`` until it returns a truthy value.

    The condition is checked immediately, then every ``interval`` seconds.
    It may be a plain callable or a coroutine function. Anything it raises
    aborts the wait and propagates to the caller unchanged.

    Returns:
        The first truthy value produced by ``condition``.

    Raises:
        ConditionTimeoutError: ``timeout`` seconds elapsed first.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while True:
        result = condition()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return result

        remaining = deadline - loop.time()
        if remaining <= 0:
            raise ConditionTimeoutError(
                error_message or f"Condition was not met within {timeout:.3f}s"
            )
        await asyncio.sleep(min(interval, remaining))


__all__ = [
    "add_task_exception_logger",
    "create_logged_task",
    "wait_for_condition",
]
