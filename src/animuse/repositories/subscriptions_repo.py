"""
Repository for the subscriptions table.
"""

from __future__ import annotations

from typing import List

import aiosqlite

from animuse.datatypes.discord_datatypes import GuildID, UserID
from animuse.datatypes.tracking_datatypes import Subscriber, Subscription
from animuse.util.logger import get_logger

logger = get_logger("subscriptions_repo")


class SubscriptionsRepository:
    """CRUD for the subscriptions table. (guild_id, user_id, title_id) is the primary key."""

    async def add(
        self,
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        user_id: UserID,
        title_id: int,
        title_display_name: str,
        now: int,
    ) -> bool:
        """Insert a subscription. Returns False when the user already tracks the title."""
        cursor = await conn.execute(
            """
            INSERT INTO subscriptions (guild_id, user_id, title_id, title_display_name, created_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(guild_id, user_id, title_id) DO NOTHING
            """,
            (guild_id.to_int(), user_id.to_int(), title_id, title_display_name, now),
        )
        return cursor.rowcount == 1

    async def delete(
        self, conn: aiosqlite.Connection, guild_id: GuildID, user_id: UserID, title_id: int
    ) -> bool:
        """Remove a subscription. Returns True if a row was deleted."""
        cursor = await conn.execute(
            "DELETE FROM subscriptions WHERE guild_id = ? AND user_id = ? AND title_id = ?",
            (guild_id.to_int(), user_id.to_int(), title_id),
        )
        return cursor.rowcount > 0

    async def list_for_user(
        self, conn: aiosqlite.Connection, guild_id: GuildID, user_id: UserID
    ) -> List[Subscription]:
        """Return a user's subscriptions in one guild, sorted by title."""
        async with conn.execute(
            "SELECT guild_id, user_id, title_id, title_display_name, created_at FROM subscriptions "
            "WHERE guild_id = ? AND user_id = ? ORDER BY title_display_name COLLATE NOCASE",
            (guild_id.to_int(), user_id.to_int()),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            Subscription(
                guild_id=GuildID.from_int(row[0]),
                user_id=UserID.from_int(row[1]),
                title_id=int(row[2]),
                title_display_name=str(row[3]),
                created_at=int(row[4] or 0),
            )
            for row in rows
        ]

    async def list_for_title(self, conn: aiosqlite.Connection, title_id: int) -> List[Subscriber]:
        """Return every (guild, user) pair tracking a title, oldest subscription first."""
        async with conn.execute(
            "SELECT guild_id, user_id FROM subscriptions WHERE title_id = ? ORDER BY created_at, rowid",
            (title_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [Subscriber(guild_id=GuildID.from_int(g), user_id=UserID.from_int(u)) for g, u in rows]


# Module-level singleton
subscriptions_repo = SubscriptionsRepository()
