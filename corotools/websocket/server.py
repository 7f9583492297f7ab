"""A WebSocket server that answers messages and broadcasts to all connections."""

from __future__ import annotations

import asyncio
import contextlib
import ipaddress
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from corotools.monitor import _spawn

logger = logging.getLogger(__name__)

_Message = Union[str, bytes]
_MessageHandler = Callable[[_Message], Awaitable[Optional[_Message]]]
_ErrorHandler = Callable[[BaseException], Awaitable[None]]

_BROADCAST_CAPACITY = 1000


@dataclass
class WebSocketServerConfig:
    """Listening address, or router mode where connections are handed in."""

    is_router: bool = False
    host: str = "127.0.0.1"
    port: int = 8080
    msg_buf: int = 100


class _Lagged(Exception):
    """A connection fell behind the broadcast stream and lost messages."""

    def __init__(self, skipped: int) -> None:
        super().__init__(f"connection lagged behind by {skipped} broadcast messages")
        self.skipped = skipped


class _Subscription:
    """A bounded per-connection broadcast buffer that drops the oldest on overflow."""

    def __init__(self, capacity: int) -> None:
        self._items: deque = deque()
        self._capacity = capacity
        self._skipped = 0
        self._ready = asyncio.Event()

    def push(self, msg: _Message) -> None:
        if len(self._items) >= self._capacity:
            self._items.popleft()
            self._skipped += 1
        self._items.append(msg)
        self._ready.set()

    async def get(self) -> _Message:
        while True:
            if self._skipped:
                skipped, self._skipped = self._skipped, 0
                raise _Lagged(skipped)
            if self._items:
                return self._items.popleft()
            self._ready.clear()
            await self._ready.wait()


class WebSocketServer:
    """Serves WebSocket connections, either on its own listener or, in router
    mode, on connections passed to ``handle_stream`` by another server.

    Without a message handler nothing is sent back; without an error
    handler errors are only logged.
    """

    def __init__(self, cfg: WebSocketServerConfig) -> None:
        self._address: Optional[tuple[str, int]] = None
        if not cfg.is_router:
            try:
                ipaddress.IPv4Address(cfg.host)
            except ValueError:
                raise ValueError(f"invalid ws server host: {cfg.host!r}") from None
            self._address = (cfg.host, cfg.port)
        self._message_handler: Optional[_MessageHandler] = None
        self._error_handler: Optional[_ErrorHandler] = None
        self._next_id = 0
        self._close = asyncio.Event()
        self._subscribers: set[_Subscription] = set()
        self._tasks: set[asyncio.Task] = set()

    def with_message_handler(self, handler: _MessageHandler) -> WebSocketServer:
        self._message_handler = handler
        return self

    def with_error_handler(self, handler: _ErrorHandler) -> WebSocketServer:
        self._error_handler = handler
        return self

    async def _reply_to(self, msg: _Message) -> Optional[_Message]:
        if self._message_handler is None:
            return None
        return await self._message_handler(msg)

    async def _report_error(self, exc: BaseException) -> None:
        if self._error_handler is None:
            logger.debug("connection error: %s", exc)
        else:
            await self._error_handler(exc)

    async def stop(self) -> None:
        """Close the listener and every connection.

        Raises RuntimeError if the server has already been stopped.
        """
        if self._close.is_set():
            raise RuntimeError("websocket server is already stopped")
        self._close.set()

    async def broadcast(self, msg: _Message) -> int:
        """Send ``msg`` to every open connection and return how many there are.

        Raises RuntimeError when no connection is open.
        """
        if not self._subscribers:
            raise RuntimeError("no open connections to broadcast to")
        for subscriber in self._subscribers:
            subscriber.push(msg)
        return len(self._subscribers)

    async def handle_stream(self, stream: Any) -> asyncio.Task:
        """Serve a connection in the background and return the serving task.

        ``stream`` needs async ``recv``, ``send`` and ``close`` methods.
        """
        conn_id = self._next_id
        self._next_id += 1
        subscription = _Subscription(_BROADCAST_CAPACITY)
        self._subscribers.add(subscription)
        return _spawn(self._tasks, self._serve(conn_id, stream, subscription))

    async def _serve(self, conn_id: int, stream: Any, subscription: _Subscription) -> None:
        closing = asyncio.ensure_future(self._close.wait())
        pushed = asyncio.ensure_future(subscription.get())
        incoming = asyncio.ensure_future(stream.recv())
        try:
            while True:
                done, _ = await asyncio.wait(
                    {closing, pushed, incoming}, return_when=asyncio.FIRST_COMPLETED
                )
                if closing in done:
                    logger.warning("Conn %d Exit with done", conn_id)
                    return
                if pushed in done:
                    try:
                        await stream.send(pushed.result())
                    except Exception as exc:
                        await self._report_error(exc)
                        return
                    pushed = asyncio.ensure_future(subscription.get())
                if incoming in done:
                    try:
                        msg = incoming.result()
                    except ConnectionClosedOK:
                        return
                    except ConnectionClosed as exc:
                        await self._report_error(exc)
                        return
                    except Exception as exc:
                        await self._report_error(exc)
                        incoming = asyncio.ensure_future(stream.recv())
                        continue
                    reply = await self._reply_to(msg)
                    if reply is not None:
                        try:
                            await stream.send(reply)
                        except Exception as exc:
                            await self._report_error(exc)
                    incoming = asyncio.ensure_future(stream.recv())
        finally:
            for task in (closing, pushed, incoming):
                task.cancel()
            self._subscribers.discard(subscription)
            with contextlib.suppress(Exception):
                await stream.close()

    async def run(self) -> None:
        """Start listening in the background.

        Raises RuntimeError in router mode and OSError if binding fails.
        """
        if self._address is None:
            raise RuntimeError("a router-mode server has no listener; use handle_stream")
        host, port = self._address

        async def accept(ws: Any) -> None:
            task = await self.handle_stream(ws)
            await task

        try:
            server = await websockets.serve(accept, host, port)
        except OSError as exc:
            logger.error("bind listener failed: %s", exc)
            raise
        logger.info("Websocket Server host on: %s:%d", host, port)
        _spawn(self._tasks, self._shutdown(server))

    async def _shutdown(self, server: Any) -> None:
        await self._close.wait()
        server.close()
        await server.wait_closed()