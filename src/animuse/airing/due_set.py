"""Selection of the titles worth polling in a cycle."""

from __future__ import annotations

import time
from typing import Callable, List

from animuse.services.tracking_store import TrackingStore
from animuse.util.logger import get_logger

logger = get_logger("due_set")

DUE_WINDOW_SECONDS = 20 * 60


class DueSetSelector:
    """
    Picks tracked titles whose next episode is unknown or airs within the window.

    Titles with ``next_airing_at`` far in the future are left out so a cycle
    only spends AniList requests on titles that can actually produce an
    announcement (or that have never been looked up).
    """

    def __init__(
        self,
        store: TrackingStore,
        window_seconds: int = DUE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.window_seconds = window_seconds
        self._clock = clock

    async def select_due_titles(self) -> List[int]:
        """Return the due title IDs in ascending order, or ``[]`` if the store is unavailable."""
        title_ids = await self._store.get_due_title_ids(self.window_seconds, now=int(self._clock()))
        logger.debug("[DUE SET] %d title(s) due within %ds", len(title_ids), self.window_seconds)
        return title_ids
