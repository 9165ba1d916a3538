"""
Repository for the guild_settings table.
"""

from __future__ import annotations

from typing import Optional

import aiosqlite

from animuse.datatypes.discord_datatypes import ChannelID, GuildID


class GuildSettingsRepository:
    """CRUD for the per-guild airing channel."""

    async def get_airing_channel(self, conn: aiosqlite.Connection, guild_id: GuildID) -> Optional[ChannelID]:
        async with conn.execute(
            "SELECT airing_channel_id FROM guild_settings WHERE guild_id = ?",
            (guild_id.to_int(),),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None or row[0] is None:
            return None
        return ChannelID.from_int(row[0])

    async def set_airing_channel(
        self,
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        channel_id: Optional[ChannelID],
        now: int,
    ) -> None:
        """Set or clear (``channel_id=None``) the airing channel for a guild."""
        await conn.execute(
            """
            INSERT INTO guild_settings (guild_id, airing_channel_id, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET
                airing_channel_id = excluded.airing_channel_id,
                updated_at        = excluded.updated_at
            """,
            (guild_id.to_int(), channel_id.to_int() if channel_id else None, now),
        )


# Module-level singleton
guild_settings_repo = GuildSettingsRepository()
