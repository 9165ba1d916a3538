"""
Persistent polling state for tracked AniList titles.

Timestamps are INTEGER unix seconds so the due-window comparison is a
plain integer compare with no timezone handling.
"""

from __future__ import annotations

from typing import List, Optional

import aiosqlite

from animuse.datatypes.tracking_datatypes import TrackedTitle
from animuse.util.logger import get_logger

logger = get_logger("tracked_titles_repo")


class TrackedTitlesRepository:
    """Low-level CRUD for the ``tracked_titles`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def ensure(conn: aiosqlite.Connection, title_id: int, now: int) -> None:
        """Create an empty state row for a title unless one already exists."""
        await conn.execute(
            "INSERT OR IGNORE INTO tracked_titles (title_id, last_notified_episode, next_airing_at, updated_at) "
            "VALUES (?, 0, NULL, ?)",
            (title_id, now),
        )

    @staticmethod
    async def upsert(
        conn: aiosqlite.Connection,
        title_id: int,
        last_notified_episode: int,
        next_airing_at: Optional[int],
        now: int,
    ) -> None:
        """Insert or update a title's polling state.

        ``last_notified_episode`` only ever moves forward: a stale caller
        writing a lower number keeps the stored value.
        """
        await conn.execute(
            """
            INSERT INTO tracked_titles (title_id, last_notified_episode, next_airing_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(title_id) DO UPDATE SET
                last_notified_episode = MAX(tracked_titles.last_notified_episode, excluded.last_notified_episode),
                next_airing_at        = excluded.next_airing_at,
                updated_at            = excluded.updated_at
            """,
            (title_id, max(0, last_notified_episode), next_airing_at, now),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get_due_ids(conn: aiosqlite.Connection, horizon: int) -> List[int]:
        """Return IDs whose next airing is unknown or at or before ``horizon`` (unix seconds)."""
        cursor = await conn.execute(
            "SELECT title_id FROM tracked_titles "
            "WHERE next_airing_at IS NULL OR next_airing_at <= ? "
            "ORDER BY title_id",
            (horizon,),
        )
        rows = await cursor.fetchall()
        return [int(row[0]) for row in rows]

    @staticmethod
    async def get(conn: aiosqlite.Connection, title_id: int) -> Optional[TrackedTitle]:
        cursor = await conn.execute(
            "SELECT title_id, last_notified_episode, next_airing_at, updated_at "
            "FROM tracked_titles WHERE title_id = ?",
            (title_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return TrackedTitle(
            title_id=int(row[0]),
            last_notified_episode=int(row[1] or 0),
            next_airing_at=int(row[2]) if row[2] is not None else None,
            updated_at=int(row[3] or 0),
        )

    @staticmethod
    async def count(conn: aiosqlite.Connection) -> int:
        cursor = await conn.execute("SELECT COUNT(*) FROM tracked_titles")
        row = await cursor.fetchone()
        return int(row[0]) if row else 0


# Module-level singleton
tracked_titles_repo = TrackedTitlesRepository()
