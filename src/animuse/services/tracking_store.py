"""
Tracking store: the airing subsystem's view of the database.

Wraps the ``tracked_titles`` and ``subscriptions`` repositories over the
shared connection and applies the error policy of the poll loop:

- the due-set query never raises; a failing database yields ``[]`` so the
  cycle is a no-op and the next tick retries;
- state writes never raise; failures are logged and reported as ``False``;
- ``get_state`` and ``get_subscribers`` raise, so the poller can skip a title
  without recording it as notified.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional

from animuse.database.db_connection import ConnectionManager
from animuse.datatypes.discord_datatypes import GuildID, UserID
from animuse.datatypes.tracking_datatypes import (
    Subscriber,
    Subscription,
    SubscriptionResult,
    TrackedTitle,
)
from animuse.repositories.subscriptions_repo import subscriptions_repo
from animuse.repositories.tracked_titles_repo import tracked_titles_repo
from animuse.util.logger import get_logger

logger = get_logger("tracking_store")


class TrackingStore:
    """Record store for title polling state and user subscriptions."""

    def __init__(self, connection: ConnectionManager, clock: Callable[[], float] = time.time) -> None:
        self._connection = connection
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------
    # Polling state
    # ------------------------------------------------------------------

    async def get_due_title_ids(self, window_seconds: int, now: Optional[int] = None) -> List[int]:
        """Return titles with an unknown next airing or one within ``window_seconds``.

        Returns an empty list if the database cannot be read.
        """
        horizon = (self._now() if now is None else now) + window_seconds
        try:
            async with self._connection.read() as conn:
                return await tracked_titles_repo.get_due_ids(conn, horizon)
        except Exception as exc:
            logger.error("[TRACKING STORE] Due-title query failed: %s", exc)
            return []

    async def get_state(self, title_id: int) -> Optional[TrackedTitle]:
        """Return the polling state of a title, or None if it has never been tracked."""
        async with self._connection.read() as conn:
            return await tracked_titles_repo.get(conn, title_id)

    async def upsert_state(
        self, title_id: int, last_notified_episode: int, next_airing_at: Optional[int]
    ) -> bool:
        """Persist a title's polling state. Returns False (and logs) on failure."""
        try:
            async with self._connection.transaction() as conn:
                await tracked_titles_repo.upsert(
                    conn, title_id, last_notified_episode, next_airing_at, self._now()
                )
            return True
        except Exception as exc:
            logger.error(
                "[TRACKING STORE] Failed to write state for title %s (episode=%s, next_airing_at=%s): %s",
                title_id, last_notified_episode, next_airing_at, exc,
            )
            return False

    async def count_tracked_titles(self) -> int:
        async with self._connection.read() as conn:
            return await tracked_titles_repo.count(conn)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def get_subscribers(self, title_id: int) -> List[Subscriber]:
        """Return every (guild, user) pair tracking ``title_id``."""
        async with self._connection.read() as conn:
            return await subscriptions_repo.list_for_title(conn, title_id)

    async def add_subscription(
        self, guild_id: GuildID, user_id: UserID, title_id: int, title: str
    ) -> SubscriptionResult:
        """Start tracking a title for a user and make sure its polling state exists.

        Repeated calls for the same (guild, user, title) never create a second row.
        """
        try:
            async with self._connection.transaction() as conn:
                added = await subscriptions_repo.add(conn, guild_id, user_id, title_id, title, self._now())
                await tracked_titles_repo.ensure(conn, title_id, self._now())
        except Exception as exc:
            logger.error(
                "[TRACKING STORE] Failed to add subscription guild=%s user=%s title=%s: %s",
                guild_id, user_id, title_id, exc,
            )
            return SubscriptionResult.FAILED

        if not added:
            return SubscriptionResult.ALREADY_TRACKING
        logger.debug("[TRACKING STORE] User %s in guild %s now tracks title %s", user_id, guild_id, title_id)
        return SubscriptionResult.ADDED

    async def remove_subscription(self, guild_id: GuildID, user_id: UserID, title_id: int) -> bool:
        """Stop tracking. The title's polling state is left alone."""
        async with self._connection.transaction() as conn:
            return await subscriptions_repo.delete(conn, guild_id, user_id, title_id)

    async def list_user_subscriptions(self, guild_id: GuildID, user_id: UserID) -> List[Subscription]:
        async with self._connection.read() as conn:
            return await subscriptions_repo.list_for_user(conn, guild_id, user_id)
