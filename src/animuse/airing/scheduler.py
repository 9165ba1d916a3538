"""Periodic runner for the airing poll cycle."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from animuse.airing.poller import BatchPoller, PollCycleReport
from animuse.util.logger import get_logger

logger = get_logger("airing_scheduler")

DEFAULT_INTERVAL_SECONDS = 10 * 60
DEFAULT_WARMUP_SECONDS = 30


class AiringScheduler:
    """
    Runs :meth:`BatchPoller.run_poll_cycle` on a fixed interval.

    The first cycle runs after a short warm-up so the bot can finish
    connecting. At most one cycle is in flight at any time: a cycle requested
    while another is still running is skipped, not queued.

    Args:
        poller: The poller whose cycle is run.
        interval_seconds: Pause between the end of one cycle and the start of the next.
        warmup_seconds: Delay before the first cycle.
    """

    def __init__(
        self,
        poller: BatchPoller,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        warmup_seconds: float = DEFAULT_WARMUP_SECONDS,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._poller = poller
        self.interval_seconds = interval_seconds
        self.warmup_seconds = warmup_seconds
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._cycle_lock = asyncio.Lock()
        self.last_report: Optional[PollCycleReport] = None
        self.last_run_at: Optional[float] = None
        self.cycles_run = 0
        self.cycles_skipped = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cycle_in_flight(self) -> bool:
        return self._cycle_lock.locked()

    async def run_once(self) -> Optional[PollCycleReport]:
        """Run one cycle now. Returns None if a cycle is already running."""
        if self._cycle_lock.locked():
            self.cycles_skipped += 1
            logger.warning("[AIRING SCHEDULER] Previous poll cycle still running, skipping this one")
            return None

        async with self._cycle_lock:
            report = await self._poller.run_poll_cycle()
            self.last_report = report
            self.last_run_at = time.time()
            self.cycles_run += 1
            return report

    async def _run_loop(self) -> None:
        logger.info(
            "[AIRING SCHEDULER] Starting (warm-up=%.0fs, interval=%.0fs)",
            self.warmup_seconds, self.interval_seconds,
        )
        try:
            await self._sleep(self.warmup_seconds)
            while True:
                try:
                    await self.run_once()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[AIRING SCHEDULER] Unexpected error during poll cycle: %s", exc)
                await self._sleep(self.interval_seconds)
        except asyncio.CancelledError:
            logger.info("[AIRING SCHEDULER] Polling cancelled")
            raise

    def start(self) -> None:
        """Start the background loop if it is not already running."""
        if self.is_running:
            logger.warning("[AIRING SCHEDULER] Already running")
            return
        self._task = asyncio.create_task(self._run_loop(), name="airing-scheduler")

    def cancel(self) -> None:
        """Request cancellation of the background loop without waiting for it."""
        if self._task and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[AIRING SCHEDULER] Stopped")
