import asyncio

import pytest

from corotools.worker import Worker

_NEVER = object()


def collector(fail_on=_NEVER, delay=0.0):
    seen = []

    async def handle(item):
        if delay:
            await asyncio.sleep(delay)
        if item == fail_on:
            raise ValueError("bad job")
        seen.append(item)

    return seen, handle


async def stop_for_good(*workers):
    for worker in workers:
        await worker.stop()
    await asyncio.sleep(0.02)
    for worker in workers:
        with pytest.raises(RuntimeError):
            await worker.stop()


@pytest.mark.asyncio
async def test_graceful_worker_handles_all_jobs():
    seen, handle = collector()
    worker = Worker("TestWorker", 10).with_graceful(True)
    await worker.run(handle)

    for i in range(10):
        await worker.send(i)
        await asyncio.sleep(0.005)

    await asyncio.sleep(0.05)
    assert seen == list(range(10))
    assert worker.queue.empty()
    await stop_for_good(worker)


@pytest.mark.asyncio
async def test_stopped_worker_ignores_new_jobs():
    seen, handle = collector()
    worker = Worker("stopper", 10)
    await worker.run(handle)
    await worker.send(1)
    await asyncio.sleep(0.02)
    await stop_for_good(worker)
    worker.queue.put_nowait(2)
    await asyncio.sleep(0.02)
    assert seen == [1]


@pytest.mark.asyncio
async def test_graceful_worker_drains_queue_on_stop():
    seen, handle = collector(delay=0.005)
    worker = Worker("drain", 10).with_graceful(True)
    for i in range(3):
        await worker.send(i)
    assert worker.queue.qsize() == 3
    await worker.run(handle)
    await stop_for_good(worker)
    await asyncio.sleep(0.1)
    assert seen == [0, 1, 2]
    assert worker.queue.empty()


@pytest.mark.asyncio
async def test_hooks_are_called():
    calls = []

    def record(label):
        async def hook(*_):
            calls.append(label)

        return hook

    worker = Worker("hooks", 1).with_on_start(record("start")).with_on_exit(record("exit"))
    await worker.run(record("job"))
    await worker.send(None)
    await asyncio.sleep(0.02)
    await stop_for_good(worker)
    assert calls == ["start", "job", "exit"]


@pytest.mark.asyncio
async def test_shared_queue_split_between_workers():
    queue = asyncio.Queue(maxsize=20)
    seen, handle = collector(delay=0.001)

    first = Worker("one", 1).with_trigger(queue)
    second = Worker("two", 1).with_trigger(queue)
    assert first.queue is queue
    assert second.queue is queue
    await first.run(handle)
    await second.run(handle)
    for i in range(8):
        await first.send(i)
    await asyncio.sleep(0.1)
    assert sorted(seen) == list(range(8))
    assert first.queue.empty()
    await stop_for_good(first, second)


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_worker():
    seen, handle = collector(fail_on=0)
    worker = Worker("robust", 5)
    await worker.run(handle)
    await worker.send(0)
    await worker.send(1)
    await asyncio.sleep(0.02)
    assert seen == [1]
    assert worker.queue.empty()
    await stop_for_good(worker)


def test_zero_buffer_rejected():
    with pytest.raises(ValueError):
        Worker("empty", 0)