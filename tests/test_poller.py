from typing import List, Sequence
from unittest.mock import AsyncMock

import pytest

from animuse.airing.poller import BatchPoller, chunked, dedupe
from animuse.anilist.client import AniListError
from animuse.datatypes.media_datatypes import AiringEpisode, Media, MediaTitle
from animuse.datatypes.tracking_datatypes import TrackedTitle


def make_media(media_id: int, episode: int | None = None, until: int = 0, airing_at: int = 1_700_000_000) -> Media:
    next_episode = None
    if episode is not None:
        next_episode = AiringEpisode(episode=episode, airing_at=airing_at, time_until_airing=until)
    return Media(id=media_id, title=MediaTitle(romaji=f"Title {media_id}"), next_airing_episode=next_episode)


class FakeLookup:
    """Returns canned media per ID and records every batch it is asked for."""

    def __init__(self, media: dict[int, Media] | None = None, fail_on_call: int | None = None) -> None:
        self.media = media or {}
        self.fail_on_call = fail_on_call
        self.calls: List[List[int]] = []

    async def fetch_airing_batch(self, ids: Sequence[int]) -> List[Media]:
        self.calls.append(list(ids))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise AniListError(503, "unavailable")
        return [self.media[i] for i in ids if i in self.media]


class FakeStore:
    """In-memory stand-in for TrackingStore with the same error policy."""

    def __init__(self, states: dict[int, TrackedTitle] | None = None) -> None:
        self.states = states or {}
        self.writes: list[tuple[int, int, int | None]] = []

    async def get_due_title_ids(self, window_seconds: int, now: int | None = None) -> List[int]:
        return sorted(self.states)

    async def get_state(self, title_id: int) -> TrackedTitle | None:
        return self.states.get(title_id)

    async def upsert_state(self, title_id: int, last: int, next_airing_at: int | None) -> bool:
        self.writes.append((title_id, last, next_airing_at))
        previous = self.states.get(title_id)
        floor = previous.last_notified_episode if previous else 0
        self.states[title_id] = TrackedTitle(title_id, max(floor, last), next_airing_at)
        return True


def make_poller(lookup, store, dispatcher=None, batch_size: int = 50) -> BatchPoller:
    return BatchPoller(lookup, store, dispatcher or AsyncMock(), batch_size=batch_size, due_window_seconds=1200)


def test_chunked_splits_into_fixed_sizes() -> None:
    chunks = chunked(list(range(130)), 50)
    assert [len(c) for c in chunks] == [50, 50, 30]
    assert chunks[2][0] == 100


def test_chunked_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        chunked([1], 0)


def test_dedupe_keeps_first_seen_order() -> None:
    assert dedupe([3, 1, 3, 2, 1]) == [3, 1, 2]


@pytest.mark.asyncio
async def test_empty_due_set_skips_lookup() -> None:
    lookup = FakeLookup()
    report = await make_poller(lookup, FakeStore()).run_poll_cycle()
    assert report.due == 0
    assert lookup.calls == []


@pytest.mark.asyncio
async def test_failing_chunk_does_not_stop_later_chunks() -> None:
    store = FakeStore({i: TrackedTitle(i) for i in range(1, 131)})
    lookup = FakeLookup(fail_on_call=2)

    report = await make_poller(lookup, store).run_poll_cycle()

    assert [len(c) for c in lookup.calls] == [50, 50, 30]
    assert report.chunks == 3
    assert report.failed_chunks == 1
    assert report.due == 130


@pytest.mark.asyncio
async def test_new_episode_in_window_dispatches_then_records() -> None:
    store = FakeStore({7: TrackedTitle(7, last_notified_episode=4)})
    media = make_media(7, episode=5, until=300, airing_at=1_700_000_300)
    dispatcher = AsyncMock()

    report = await make_poller(FakeLookup({7: media}), store, dispatcher).run_poll_cycle()

    dispatcher.dispatch.assert_awaited_once_with(media, media.next_airing_episode)
    assert store.writes == [(7, 5, 1_700_000_300)]
    assert report.dispatched == 1
    assert report.state_writes == 1


@pytest.mark.asyncio
async def test_far_future_episode_only_refreshes_airing_time() -> None:
    store = FakeStore({7: TrackedTitle(7, last_notified_episode=4)})
    media = make_media(7, episode=5, until=3 * 86400, airing_at=1_700_259_200)
    dispatcher = AsyncMock()

    await make_poller(FakeLookup({7: media}), store, dispatcher).run_poll_cycle()

    dispatcher.dispatch.assert_not_awaited()
    assert store.writes == [(7, 4, 1_700_259_200)]


@pytest.mark.asyncio
async def test_finished_series_is_not_written() -> None:
    store = FakeStore({7: TrackedTitle(7, last_notified_episode=12, next_airing_at=1_600_000_000)})
    dispatcher = AsyncMock()

    await make_poller(FakeLookup({7: make_media(7)}), store, dispatcher).run_poll_cycle()

    dispatcher.dispatch.assert_not_awaited()
    assert store.writes == []
    assert store.states[7].next_airing_at == 1_600_000_000


@pytest.mark.asyncio
async def test_already_announced_episode_is_skipped() -> None:
    store = FakeStore({7: TrackedTitle(7, last_notified_episode=5)})
    dispatcher = AsyncMock()

    await make_poller(FakeLookup({7: make_media(7, episode=5, until=-60)}), store, dispatcher).run_poll_cycle()

    dispatcher.dispatch.assert_not_awaited()
    assert store.writes == []


@pytest.mark.asyncio
async def test_no_double_send_across_cycles() -> None:
    store = FakeStore({7: TrackedTitle(7, last_notified_episode=0)})
    lookup = FakeLookup({7: make_media(7, episode=1, until=120)})
    dispatcher = AsyncMock()
    poller = make_poller(lookup, store, dispatcher)

    await poller.run_poll_cycle()
    await poller.run_poll_cycle()

    assert dispatcher.dispatch.await_count == 1
    assert store.states[7].last_notified_episode == 1


@pytest.mark.asyncio
async def test_last_notified_episode_never_decreases() -> None:
    store = FakeStore({7: TrackedTitle(7, last_notified_episode=0)})
    lookup = FakeLookup({7: make_media(7, episode=3, until=0)})
    poller = make_poller(lookup, store)

    seen = []
    for episode in (3, 2, 4, 1):
        lookup.media[7] = make_media(7, episode=episode, until=0)
        await poller.run_poll_cycle()
        seen.append(store.states[7].last_notified_episode)

    assert seen == [3, 3, 4, 4]


@pytest.mark.asyncio
async def test_record_failure_moves_on_to_next_title() -> None:
    store = FakeStore({1: TrackedTitle(1), 2: TrackedTitle(2)})
    lookup = FakeLookup({1: make_media(1, episode=1), 2: make_media(2, episode=1)})
    dispatcher = AsyncMock()
    dispatcher.dispatch.side_effect = [RuntimeError("subscribers unreadable"), None]

    report = await make_poller(lookup, store, dispatcher).run_poll_cycle()

    assert report.failed_records == 1
    assert report.dispatched == 1
    # the failed title is not recorded as notified and is retried next cycle
    assert store.writes == [(2, 1, 1_700_000_000)]


@pytest.mark.asyncio
async def test_missing_state_defaults_to_episode_zero() -> None:
    store = FakeStore({})
    store.get_due_title_ids = AsyncMock(return_value=[9, 9])  # type: ignore[method-assign]
    lookup = FakeLookup({9: make_media(9, episode=1, until=10)})
    dispatcher = AsyncMock()

    report = await make_poller(lookup, store, dispatcher).run_poll_cycle()

    assert lookup.calls == [[9]]
    assert report.due == 1
    dispatcher.dispatch.assert_awaited_once()
