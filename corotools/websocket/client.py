"""A reconnecting WebSocket client with a periodic ping."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosedOK

from ..cron import Cron, CronConfig

logger = logging.getLogger(__name__)

_Message = Union[str, bytes]
_MessageHandler = Callable[[_Message], Awaitable[Optional[_Message]]]
_ErrorHandler = Callable[[BaseException], Awaitable[None]]
_PayloadFactory = Callable[[], Awaitable[bytes]]

_RECONNECT_DELAY = 1.0


@dataclass
class WebSocketClientConfig:
    """Where to connect, whether to reconnect and how often to ping."""

    addr: str = "ws://localhost:8080/ws"
    reconnect: bool = True
    ping_interval: str = "3s"


@dataclass(frozen=True)
class _Ping:
    payload: bytes


async def _log_message(msg: _Message) -> Optional[_Message]:
    if isinstance(msg, str):
        logger.debug("Received text: %s", msg)
    else:
        logger.debug("Received binary: %r", msg)
    return None


async def _log_error(exc: BaseException) -> None:
    logger.error("Received error: %s", exc)


async def _timestamp_payload() -> bytes:
    return str(int(time.time())).encode()


class WebSocketClient:
    """Keeps a connection to a WebSocket server, pinging it and passing
    incoming messages to a handler whose replies are sent back."""

    def __init__(self, name: str, cfg: WebSocketClientConfig) -> None:
        self.name = name
        self.addr = cfg.addr
        self.reconnect = cfg.reconnect
        self.ping_interval = cfg.ping_interval
        self._message_handler: _MessageHandler = _log_message
        self._error_handler: _ErrorHandler = _log_error
        self._ping_payload: _PayloadFactory = _timestamp_payload
        self._outgoing: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._reconnects: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._close = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()

    def with_message_handler(self, handler: _MessageHandler) -> WebSocketClient:
        self._message_handler = handler
        return self

    def with_error_handler(self, handler: _ErrorHandler) -> WebSocketClient:
        self._error_handler = handler
        return self

    def with_ping_payload(self, handler: _PayloadFactory) -> WebSocketClient:
        self._ping_payload = handler
        return self

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _request_reconnect(self) -> None:
        with contextlib.suppress(asyncio.QueueFull):
            self._reconnects.put_nowait(None)

    async def send_message(self, msg: _Message) -> None:
        """Queue a message for the connection, waiting while one is pending."""
        await self._outgoing.put(msg)

    async def stop(self) -> None:
        """Close the connection and stop reconnecting.

        Raises RuntimeError if the client has already been stopped.
        """
        if self._close.is_set():
            raise RuntimeError(f"client {self.name!r} is already stopped")
        self._close.set()
        self._request_reconnect()

    async def run(self) -> None:
        """Connect, and keep reconnecting in the background if configured to."""
        await self._connect()
        if self.reconnect:
            self._spawn(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        while True:
            await self._reconnects.get()
            if self._close.is_set():
                return
            await asyncio.sleep(_RECONNECT_DELAY)
            if self._close.is_set():
                return
            await self._connect()

    async def _connect(self) -> None:
        try:
            ws = await websockets.connect(self.addr)
        except Exception as exc:
            logger.error("[%s] connect to %s failed: %s", self.name, self.addr, exc)
            self._request_reconnect()
            return

        cron = Cron(
            "PING",
            CronConfig(
                run_after_start=self.ping_interval,
                interval=self.ping_interval,
                interval_after_finish=False,
            ),
        )

        async def ping() -> None:
            payload = await self._ping_payload()
            await self._outgoing.put(_Ping(payload))

        await cron.run(ping)
        self._spawn(self._serve(ws, cron))

    async def _deliver(self, ws: Any, msg: Any) -> bool:
        try:
            if isinstance(msg, _Ping):
                await ws.ping(msg.payload)
            else:
                await ws.send(msg)
        except Exception as exc:
            await self._error_handler(exc)
            return False
        return True

    async def _serve(self, ws: Any, cron: Cron) -> None:
        closing = asyncio.ensure_future(self._close.wait())
        outgoing = asyncio.ensure_future(self._outgoing.get())
        incoming = asyncio.ensure_future(ws.recv())
        reconnect = True
        try:
            while True:
                done, _ = await asyncio.wait(
                    {closing, outgoing, incoming}, return_when=asyncio.FIRST_COMPLETED
                )
                if closing in done:
                    logger.warning("Conn Exit with done")
                    reconnect = False
                    return
                if outgoing in done:
                    msg = outgoing.result()
                    logger.debug("msg_receiver receive: %r", msg)
                    if not await self._deliver(ws, msg):
                        return
                    outgoing = asyncio.ensure_future(self._outgoing.get())
                if incoming in done:
                    try:
                        msg = incoming.result()
                    except ConnectionClosedOK:
                        return
                    except Exception as exc:
                        await self._error_handler(exc)
                        return
                    logger.debug("stream receive: %r", msg)
                    reply = await self._message_handler(msg)
                    if reply is not None and not await self._deliver(ws, reply):
                        return
                    incoming = asyncio.ensure_future(ws.recv())
        finally:
            for task in (closing, outgoing, incoming):
                task.cancel()
            with contextlib.suppress(RuntimeError):
                await cron.stop()
            with contextlib.suppress(Exception):
                await ws.close()
            if reconnect:
                self._request_reconnect()