"""
Batch poller: one pass over the due set.

For every due title the poller asks AniList for the next airing episode and
decides between three outcomes:

- no upcoming episode (finished or unannounced): nothing is written, the
  title stays due and is looked at again next cycle;
- the episode airs later than the due window: only ``next_airing_at`` is
  refreshed so the title drops out of the due set until it gets close;
- the episode is inside the window and newer than the last announced one:
  subscribers are notified, then the episode is recorded as announced.

The strict ``episode > last_notified_episode`` check is what keeps a title
from being announced twice, across cycles and across restarts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Iterable, List, Optional, Protocol, Sequence

from animuse.airing.due_set import DUE_WINDOW_SECONDS, DueSetSelector
from animuse.datatypes.media_datatypes import AiringEpisode, Media
from animuse.services.tracking_store import TrackingStore
from animuse.util.logger import get_logger

logger = get_logger("airing_poller")

DEFAULT_BATCH_SIZE = 50


class AiringLookup(Protocol):
    def fetch_airing_batch(self, ids: Sequence[int]) -> Awaitable[List[Media]]: ...


class EpisodeDispatcher(Protocol):
    def dispatch(self, media: Media, episode: AiringEpisode) -> Awaitable[object]: ...


@dataclass(slots=True)
class PollCycleReport:
    """Counters describing one poll cycle."""
    due: int = 0
    chunks: int = 0
    failed_chunks: int = 0
    looked_up: int = 0
    dispatched: int = 0
    state_writes: int = 0
    failed_records: int = 0

    def summary(self) -> str:
        return (
            f"due={self.due} chunks={self.chunks} failed_chunks={self.failed_chunks} "
            f"looked_up={self.looked_up} dispatched={self.dispatched} "
            f"state_writes={self.state_writes} failed_records={self.failed_records}"
        )


def chunked(ids: Sequence[int], size: int) -> List[List[int]]:
    """Split ``ids`` into consecutive lists of at most ``size`` items."""
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    return [list(ids[i:i + size]) for i in range(0, len(ids), size)]


def dedupe(ids: Iterable[int]) -> List[int]:
    """Drop repeated IDs, keeping first-seen order."""
    return list(dict.fromkeys(ids))


class BatchPoller:
    """Runs poll cycles against AniList and records per-title progress."""

    def __init__(
        self,
        lookup: AiringLookup,
        store: TrackingStore,
        dispatcher: EpisodeDispatcher,
        selector: Optional[DueSetSelector] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        due_window_seconds: int = DUE_WINDOW_SECONDS,
    ) -> None:
        self._lookup = lookup
        self._store = store
        self._dispatcher = dispatcher
        self._selector = selector or DueSetSelector(store, due_window_seconds)
        self.batch_size = batch_size
        self.due_window_seconds = due_window_seconds

    async def run_poll_cycle(self) -> PollCycleReport:
        """Poll every due title once. Never raises except on cancellation."""
        report = PollCycleReport()

        due_ids = dedupe(await self._selector.select_due_titles())
        report.due = len(due_ids)
        if not due_ids:
            logger.debug("[AIRING POLLER] Nothing due this cycle")
            return report

        batches = chunked(due_ids, self.batch_size)
        report.chunks = len(batches)
        logger.info("[AIRING POLLER] Checking %d title(s) in %d batch(es)", report.due, report.chunks)

        for index, batch in enumerate(batches, start=1):
            try:
                media_list = await self._lookup.fetch_airing_batch(batch)
            except Exception as exc:
                report.failed_chunks += 1
                logger.error(
                    "[AIRING POLLER] Lookup failed for batch %d/%d (%d ids, first=%s): %s",
                    index, len(batches), len(batch), batch[0], exc,
                )
                continue

            report.looked_up += len(media_list)
            for media in media_list:
                try:
                    await self._process_media(media, report)
                except Exception as exc:
                    report.failed_records += 1
                    logger.error("[AIRING POLLER] Failed to process title %s: %s", media.id, exc)

        logger.info("[AIRING POLLER] Cycle finished: %s", report.summary())
        return report

    async def _process_media(self, media: Media, report: PollCycleReport) -> None:
        state = await self._store.get_state(media.id)
        last_notified = state.last_notified_episode if state is not None else 0

        next_episode = media.next_airing_episode
        if next_episode is None:
            return

        if next_episode.time_until_airing > self.due_window_seconds:
            if await self._store.upsert_state(media.id, last_notified, next_episode.airing_at):
                report.state_writes += 1
            return

        if next_episode.episode <= last_notified:
            return

        logger.info(
            "[AIRING POLLER] Episode %d of %s (%s) is airing",
            next_episode.episode, media.display_title, media.id,
        )
        await self._dispatcher.dispatch(media, next_episode)
        report.dispatched += 1

        if await self._store.upsert_state(media.id, next_episode.episode, next_episode.airing_at):
            report.state_writes += 1
