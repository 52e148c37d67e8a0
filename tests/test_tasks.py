import asyncio

import pytest

from wallet_sso.core.tasks import PeriodicTask


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        PeriodicTask("bad", 0, lambda: None)


@pytest.mark.asyncio
async def test_runs_until_stopped():
    calls = 0

    async def tick() -> None:
        nonlocal calls
        calls += 1

    task = PeriodicTask("tick", 0.01, tick)
    await task.start()
    assert task.running
    await asyncio.sleep(0.05)
    await task.stop()

    assert not task.running
    assert calls >= 2
    assert task.runs == calls


@pytest.mark.asyncio
async def test_failures_are_logged_and_loop_continues(caplog):
    calls = 0

    async def flaky() -> None:
        nonlocal calls
        calls += 1
        raise RuntimeError("boom")

    task = PeriodicTask("flaky", 0.01, flaky)
    await task.start()
    await asyncio.sleep(0.05)
    await task.stop()

    assert calls >= 2
    assert "Periodic task flaky failed" in caplog.text


@pytest.mark.asyncio
async def test_stop_without_start_is_noop():
    task = PeriodicTask("idle", 1.0, asyncio.sleep)
    await task.stop()
    assert not task.running
