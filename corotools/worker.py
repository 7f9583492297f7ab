"""A queue-fed worker that hands each job to an async handler."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from .monitor import Hook, Monitor

logger = logging.getLogger(__name__)

J = TypeVar("J")


async def _call(how: Callable[[J], Awaitable[None]], item: J) -> None:
    try:
        await how(item)
    except Exception:
        logger.exception("worker handler failed")


async def _serve(
    queue: asyncio.Queue, done: asyncio.Event, how: Callable[[J], Awaitable[None]]
) -> None:
    while not done.is_set():
        getter = asyncio.ensure_future(queue.get())
        stopper = asyncio.ensure_future(done.wait())
        await asyncio.wait({getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
        stopper.cancel()
        if getter.done() and not getter.cancelled():
            await _call(how, getter.result())
        else:
            getter.cancel()


class Worker(Generic[J]):
    """Takes jobs from a bounded queue and handles them one at a time.

    A graceful worker finishes the jobs already queued when stopped; otherwise
    it stops after the job in hand.
    """

    def __init__(self, name: str, buf: int = 1) -> None:
        if buf < 1:
            raise ValueError("worker buffer size must be at least 1")
        self.name = name
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=buf)
        self.graceful = False
        self._monitor = Monitor(name)

    def with_on_start(self, task: Hook) -> Worker[J]:
        self._monitor.with_on_start(task)
        return self

    def with_on_exit(self, task: Hook) -> Worker[J]:
        self._monitor.with_on_exit(task)
        return self

    def with_graceful(self, graceful: bool) -> Worker[J]:
        self.graceful = graceful
        return self

    def with_trigger(self, queue: asyncio.Queue) -> Worker[J]:
        """Take jobs from a shared queue instead of the worker's own."""
        self.queue = queue
        return self

    async def send(self, job: J) -> None:
        """Queue a job, waiting while the queue is full."""
        await self.queue.put(job)

    async def stop(self) -> None:
        """Stop the worker; raises RuntimeError if it is already stopped."""
        await self._monitor.stop()

    async def run(self, how: Callable[[J], Awaitable[None]]) -> None:
        """Start handling jobs with ``how`` in the background."""
        logger.debug("WORKER START - %s", self.name)
        queue = self.queue
        graceful = self.graceful

        async def task(done: asyncio.Event) -> None:
            await _serve(queue, done, how)
            if graceful:
                while not queue.empty():
                    await _call(how, queue.get_nowait())

        await self._monitor.run(task)