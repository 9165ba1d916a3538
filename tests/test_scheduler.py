import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from animuse.airing.poller import PollCycleReport
from animuse.airing.scheduler import AiringScheduler


class BlockingPoller:
    """Poller whose cycle waits until released, to hold the cycle lock."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def run_poll_cycle(self) -> PollCycleReport:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return PollCycleReport(due=1)


@pytest.mark.asyncio
async def test_run_once_records_report() -> None:
    poller = MagicMock()
    poller.run_poll_cycle = AsyncMock(return_value=PollCycleReport(due=3, dispatched=1))
    scheduler = AiringScheduler(poller)

    report = await scheduler.run_once()

    assert report is not None and report.due == 3
    assert scheduler.last_report is report
    assert scheduler.last_run_at is not None
    assert scheduler.cycles_run == 1


@pytest.mark.asyncio
async def test_overlapping_cycle_is_skipped() -> None:
    poller = BlockingPoller()
    scheduler = AiringScheduler(poller)

    first = asyncio.create_task(scheduler.run_once())
    await poller.started.wait()

    assert scheduler.cycle_in_flight is True
    assert await scheduler.run_once() is None
    assert scheduler.cycles_skipped == 1

    poller.release.set()
    assert (await first) is not None
    assert poller.calls == 1


@pytest.mark.asyncio
async def test_loop_waits_for_warmup_then_runs_every_interval() -> None:
    sleeps: list[float] = []
    done = asyncio.Event()

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        if len(sleeps) >= 3:
            done.set()
            await asyncio.Event().wait()

    poller = MagicMock()
    poller.run_poll_cycle = AsyncMock(return_value=PollCycleReport())
    scheduler = AiringScheduler(poller, interval_seconds=600, warmup_seconds=30, sleep=fake_sleep)

    scheduler.start()
    await asyncio.wait_for(done.wait(), timeout=1)
    await scheduler.stop()

    assert sleeps == [30, 600, 600]
    assert poller.run_poll_cycle.await_count == 2
    assert scheduler.is_running is False


@pytest.mark.asyncio
async def test_loop_survives_cycle_errors() -> None:
    calls = 0
    done = asyncio.Event()

    async def fake_sleep(seconds: float) -> None:
        if calls >= 2:
            done.set()
            await asyncio.Event().wait()

    async def flaky_cycle() -> PollCycleReport:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("unexpected")
        return PollCycleReport()

    poller = MagicMock()
    poller.run_poll_cycle = flaky_cycle
    scheduler = AiringScheduler(poller, sleep=fake_sleep)

    scheduler.start()
    await asyncio.wait_for(done.wait(), timeout=1)
    await scheduler.stop()

    assert calls == 2


@pytest.mark.asyncio
async def test_start_twice_keeps_single_task() -> None:
    async def fake_sleep(seconds: float) -> None:
        await asyncio.Event().wait()

    scheduler = AiringScheduler(MagicMock(), sleep=fake_sleep)
    scheduler.start()
    task = scheduler._task
    scheduler.start()

    assert scheduler._task is task
    await scheduler.stop()
    assert task.cancelled()


@pytest.mark.asyncio
async def test_cancel_requests_stop_without_awaiting() -> None:
    async def fake_sleep(seconds: float) -> None:
        await asyncio.Event().wait()

    scheduler = AiringScheduler(MagicMock(), sleep=fake_sleep)
    scheduler.start()
    task = scheduler._task
    await asyncio.sleep(0)

    scheduler.cancel()
    await asyncio.sleep(0)

    assert task.cancelled()
    assert scheduler.is_running is False
    await scheduler.stop()
