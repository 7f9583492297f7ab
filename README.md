# corotools

Small asyncio building blocks for long-running services.

| Module | What it gives you |
| --- | --- |
| `corotools.log` | `LogConfig`, `init`, `init_default`: one-call setup of the root logger |
| `corotools.monitor` | `Monitor`: runs a task in the background with start/exit hooks and a stop signal |
| `corotools.worker` | `Worker`: a bounded job queue drained by an async handler |
| `corotools.cron` | `Cron`, `CronConfig`, `parse_duration`: run a coroutine on a schedule |
| `corotools.websocket.client` | `WebSocketClient`, `WebSocketClientConfig`: a pinging, reconnecting client |
| `corotools.websocket.server` | `WebSocketServer`, `WebSocketServerConfig`: a server with reply handlers and broadcast |

## Install

```
pip install corotools
```

To run the tests:

```
pip install "corotools[test]"
pytest
```

## Logging

```python
from corotools.log import LogConfig, init, init_default

init_default()                                   # DEBUG, line numbers, plain text
init(LogConfig(level="INFO", console=False))     # one JSON object per line
```

`level` accepts `TRACE`, `DEBUG`, `INFO`, `WARN`, `ERROR` (any case) or
`5`..`1`; anything else raises `ValueError`. `with_line` adds the line
number to each record. `init` installs a handler on the root logger and
returns it; calling it again replaces the handler it installed before.

## Monitor

`Monitor(name)` runs a coroutine function in the background. `run(task)` first
awaits the start hook (once per monitor), then calls `task(done)` where `done`
is an `asyncio.Event` that is set when `stop()` is called; after that the exit
hook runs once. Without hooks, start and stop are logged at debug level.

```python
import asyncio
from corotools.monitor import Monitor

async def main():
    async def task(done: asyncio.Event):
        n = 0
        while not done.is_set():
            n += 1
            await asyncio.sleep(0.1)

    monitor = Monitor("example")
    await monitor.run(task)
    await asyncio.sleep(1)
    await monitor.stop()

asyncio.run(main())
```

`with_on_start(hook)` and `with_on_exit(hook)` take zero-argument coroutine
functions; `with_trigger(event)` shares a stop event between monitors. A second
`stop()` raises `RuntimeError`.

## Worker

`Worker(name, buf)` owns an `asyncio.Queue` of size `buf` (at least 1, else
`ValueError`). `run(how)` starts handling jobs one at a time in the background;
`send(job)` waits while the queue is full. Exceptions from `how` are logged and
do not stop the worker. A graceful worker (`with_graceful(True)`) handles the
jobs still queued after `stop()`; otherwise it stops after the job in hand.
`with_trigger(queue)` makes the worker take jobs from a shared queue.

```python
import asyncio
from corotools.worker import Worker

async def main():
    worker = Worker("jobs", 10).with_graceful(True)

    async def handle(i):
        print("job", i)

    await worker.run(handle)
    for i in range(10):
        await worker.send(i)
    await asyncio.sleep(1)
    await worker.stop()

asyncio.run(main())
```

## Cron

```python
import asyncio
from corotools.cron import Cron, CronConfig

async def main():
    cfg = CronConfig(run_after_start="10ms", interval="1s", interval_after_finish=False)
    cron = Cron("tick", cfg)

    async def job():
        print("tick")

    await cron.run(job)
    await asyncio.sleep(5)
    await cron.stop()

asyncio.run(main())
```

`CronConfig` defaults to `run_after_start="0s"`, `interval="1m"`,
`interval_after_finish=True`. With `interval_after_finish` the interval is
counted from the end of each run; without it, runs are scheduled at a fixed
rate. Durations are parsed by `parse_duration`, which returns seconds and
accepts terms such as `"10ms"`, `"3s"`, `"1m"`, `"1h 30m"`, with units from
`ns` up to `y` (a bare number means seconds). Bad input raises `ValueError`.

## WebSocket server and client

```python
import asyncio
from corotools.websocket.server import WebSocketServer, WebSocketServerConfig
from corotools.websocket.client import WebSocketClient, WebSocketClientConfig

async def main():
    async def echo(msg):
        return msg

    server = WebSocketServer(WebSocketServerConfig(port=18080)).with_message_handler(echo)
    await server.run()

    client = WebSocketClient(
        "client", WebSocketClientConfig(addr="ws://localhost:18080", ping_interval="30s")
    )
    await client.run()
    await client.send_message("hi!")
    await asyncio.sleep(1)

    await client.stop()
    await server.stop()

asyncio.run(main())
```

Messages are `str` (text frames) or `bytes` (binary frames). A message
handler is a coroutine function taking a message and returning a reply or
`None`; an error handler is a coroutine function taking the exception.

Server:

- `WebSocketServerConfig` defaults: `host="127.0.0.1"`, `port=8080`,
  `is_router=False`, `msg_buf=100`. `host` must be an IPv4 address
  (`ValueError` otherwise).
- `run()` starts listening in the background; a bind failure raises `OSError`.
- `broadcast(msg)` queues `msg` for every open connection and returns how many
  there are; with none open it raises `RuntimeError`. A connection that falls
  more than 1000 broadcast messages behind has the error reported and is closed.
- `handle_stream(stream)` serves any object with async `recv`, `send` and
  `close` methods and returns the serving task. In router mode
  (`is_router=True`) this is the only way in: `run()` raises `RuntimeError`.
- `stop()` closes the listener and every connection; a second call raises
  `RuntimeError`.

Client:

- `WebSocketClientConfig` defaults: `addr="ws://localhost:8080/ws"`,
  `reconnect=True`, `ping_interval="3s"`.
- Incoming messages go to the message handler (the default logs them) and
  non-`None` replies are sent back. `send_message` waits while a message is
  already pending.
- A ping frame is sent every `ping_interval`; its payload comes from
  `with_ping_payload(factory)` (default: the current Unix time in seconds, as
  bytes).
- When a connection fails or closes and `reconnect` is set, the client
  reconnects after one second. `stop()` closes the connection and ends
  reconnecting; a second call raises `RuntimeError`.

## What it does not do

- There is no command-line tool; everything here is a library.
- Router mode is not tied to any web framework: accepting connections is up to
  your own server, which passes each one to `handle_stream`.
- `WebSocketServerConfig.msg_buf` is accepted but not used.