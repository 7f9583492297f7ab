"""A periodic job runner built on workers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .worker import Worker

logger = logging.getLogger(__name__)

_UNITS = {
    "ns": 1e-9,
    "nano": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "micro": 1e-6,
    "ms": 1e-3,
    "milli": 1e-3,
    "": 1.0,
    "s": 1.0,
    "sec": 1.0,
    "secs": 1.0,
    "second": 1.0,
    "seconds": 1.0,
    "m": 60.0,
    "min": 60.0,
    "mins": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "h": 3600.0,
    "hour": 3600.0,
    "hours": 3600.0,
    "d": 86400.0,
    "day": 86400.0,
    "days": 86400.0,
    "w": 604800.0,
    "week": 604800.0,
    "weeks": 604800.0,
    "y": 31536000.0,
    "year": 31536000.0,
    "years": 31536000.0,
}

_TERM = re.compile(r"\s*(\d+)\s*([a-zA-Zµ]*)\s*")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``"10ms"``, ``"1m"`` or ``"1h 30m"`` into seconds."""
    if not text or not text.strip():
        raise ValueError("empty duration")
    total = 0.0
    pos = 0
    while pos < len(text):
        match = _TERM.match(text, pos)
        if match is None or match.end() == pos:
            raise ValueError(f"invalid duration: {text!r}")
        unit = match.group(2).lower()
        if unit not in _UNITS:
            raise ValueError(f"unknown duration unit {match.group(2)!r} in {text!r}")
        total += int(match.group(1)) * _UNITS[unit]
        pos = match.end()
    return total


@dataclass
class CronConfig:
    """When a cron job first runs, how often, and whether to wait for it."""

    run_after_start: str = "0s"
    interval: str = "1m"
    interval_after_finish: bool = True


class Cron:
    """Runs a job repeatedly at a fixed interval until stopped.

    With ``interval_after_finish`` the interval is counted from the end of each
    run; otherwise runs are scheduled at a fixed rate.
    """

    def __init__(self, name: str, cfg: CronConfig) -> None:
        self.name = name
        self.run_after_start = parse_duration(cfg.run_after_start)
        self.interval = parse_duration(cfg.interval)
        self.interval_after_finish = cfg.interval_after_finish
        self._worker: Worker[None] = Worker(name, 1)
        self._close = asyncio.Event()
        self._stopped = False
        self._tasks: set[asyncio.Task] = set()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, how: Callable[[], Awaitable[None]]) -> None:
        """Start running ``how`` on schedule in the background."""
        loop = asyncio.get_running_loop()
        interval = self.interval
        wait = self.interval_after_finish
        worker = self._worker
        ticker: Worker[float] = Worker("Ticker", 1)

        async def tick(deadline: float) -> None:
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            await worker.send(None)

        await ticker.run(tick)

        async def handle(_: None) -> None:
            await how()
            if wait:
                await ticker.send(loop.time() + interval)

        async def schedule() -> None:
            logger.debug("CRON START - %s", self.name)
            await asyncio.sleep(self.run_after_start)
            await worker.send(None)
            deadline = loop.time()
            while not wait:
                deadline += interval
                await ticker.send(deadline)

        scheduler = self._spawn(schedule())
        await worker.run(handle)

        async def finish() -> None:
            await self._close.wait()
            self._stopped = True
            scheduler.cancel()
            for each in (worker, ticker):
                with contextlib.suppress(RuntimeError):
                    await each.stop()
            logger.debug("CRON STOP - %s", self.name)

        self._spawn(finish())

    async def stop(self) -> None:
        """Stop the schedule; raises RuntimeError if already stopped."""
        if self._stopped:
            raise RuntimeError(f"cron {self.name!r} is already stopped")
        self._close.set()