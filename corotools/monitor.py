"""A supervisor that runs a task with start and exit hooks and a stop signal."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Optional

logger = logging.getLogger(__name__)

Hook = Callable[[], Awaitable[None]]


def _report(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("background task failed", exc_info=task.exception())


def _spawn(tasks: set[asyncio.Task], coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
    """Start ``coro`` in the background, keeping a reference in ``tasks``."""
    task = asyncio.ensure_future(coro)
    tasks.add(task)
    task.add_done_callback(tasks.discard)
    task.add_done_callback(_report)
    return task


async def _fire(hook: Optional[Hook], fallback_message: str) -> None:
    """Await ``hook``, or log ``fallback_message`` when no hook was given."""
    if hook is None:
        logger.debug("%s", fallback_message)
    else:
        await hook()


class Monitor:
    """Runs a task in the background and tells it when to stop.

    The start hook runs once, before the first task starts; the exit hook
    runs once, after the stop signal arrives. Without hooks, both events
    are logged.
    """

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._on_start: Optional[Hook] = None
        self._on_exit: Optional[Hook] = None
        self._started = False
        self._exited = False
        self._close = asyncio.Event()
        self._closed = False
        self._tasks: set[asyncio.Task] = set()

    def with_trigger(self, trigger: asyncio.Event) -> Monitor:
        """Use a shared stop event, so several monitors stop together."""
        self._close = trigger
        return self

    def with_on_start(self, task: Hook) -> Monitor:
        self._on_start = task
        return self

    def with_on_exit(self, task: Hook) -> Monitor:
        self._on_exit = task
        return self

    async def run(self, task: Callable[[asyncio.Event], Awaitable[None]]) -> None:
        """Run the start hook, then start ``task`` with its own stop event."""
        if not self._started:
            self._started = True
            await _fire(self._on_start, f"MONITOR START - {self.name}")

        task_done = asyncio.Event()
        _spawn(self._tasks, self._watch(task_done))
        _spawn(self._tasks, task(task_done))

    async def _watch(self, task_done: asyncio.Event) -> None:
        await self._close.wait()
        self._closed = True
        task_done.set()
        if not self._exited:
            self._exited = True
            await _fire(self._on_exit, f"MONITOR STOP - {self.name}")

    async def stop(self) -> None:
        """Signal the running task to stop.

        Raises RuntimeError if the monitor has already been stopped.
        """
        if self._closed:
            raise RuntimeError(f"monitor {self.name!r} is already stopped")
        self._close.set()