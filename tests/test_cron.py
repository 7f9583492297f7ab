import asyncio

import pytest

from corotools.cron import Cron, CronConfig, parse_duration


def recorder(duration=0.0):
    starts = []

    async def job():
        starts.append(asyncio.get_running_loop().time())
        if duration:
            await asyncio.sleep(duration)

    return starts, job


async def stop_for_good(cron):
    await cron.stop()
    await asyncio.sleep(0.02)
    with pytest.raises(RuntimeError):
        await cron.stop()


@pytest.mark.parametrize(
    "text, seconds",
    [("1m", 60), ("1s", 1), ("0s", 0), ("3s", 3), ("10ms", 0.01)],
)
def test_parse_duration_values_from_config(text, seconds):
    assert parse_duration(text) == pytest.approx(seconds)


def test_parse_duration_combined_terms():
    assert parse_duration("1m 30s") == parse_duration("1m") + parse_duration("30s")
    assert parse_duration("1h") == 60 * parse_duration("1m")


@pytest.mark.parametrize("text", ["", "   ", "abc", "5 parsecs", "1.5.s"])
def test_parse_duration_rejects_bad_input(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_cron_config_defaults():
    cfg = CronConfig()
    assert (cfg.run_after_start, cfg.interval, cfg.interval_after_finish) == ("0s", "1m", True)


def test_cron_rejects_invalid_interval():
    with pytest.raises(ValueError):
        Cron("bad", CronConfig(interval="often"))


@pytest.mark.asyncio
async def test_cron_fixed_rate_runs_repeatedly():
    cfg = CronConfig(interval="100ms", run_after_start="10ms", interval_after_finish=False)
    runs, job = recorder()
    cron = Cron("TestCron", cfg)
    await cron.run(job)
    await asyncio.sleep(0.55)
    await stop_for_good(cron)
    await asyncio.sleep(0.03)
    count = len(runs)
    assert count >= 3
    await asyncio.sleep(0.3)
    assert len(runs) == count


@pytest.mark.asyncio
async def test_cron_waits_for_job_before_counting_interval():
    cfg = CronConfig(interval="50ms", run_after_start="0s", interval_after_finish=True)
    starts, job = recorder(duration=0.05)
    cron = Cron("Waiting", cfg)
    await cron.run(job)
    await asyncio.sleep(0.45)
    await stop_for_good(cron)
    assert len(starts) >= 2
    gaps = [b - a for a, b in zip(starts, starts[1:])]
    assert min(gaps) >= 0.09


@pytest.mark.asyncio
async def test_cron_first_run_is_delayed():
    cfg = CronConfig(interval="1s", run_after_start="100ms", interval_after_finish=False)
    runs, job = recorder()
    cron = Cron("Delayed", cfg)
    await cron.run(job)
    await asyncio.sleep(0.03)
    assert runs == []
    await asyncio.sleep(0.15)
    assert len(runs) == 1
    await stop_for_good(cron)


@pytest.mark.asyncio
async def test_cron_stop_twice_raises():
    _, job = recorder()
    cron = Cron("Twice", CronConfig(interval="1s"))
    await cron.run(job)
    await stop_for_good(cron)