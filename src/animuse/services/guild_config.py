"""
Per-guild notification config (the airing announcement channel).

Reads go through a short-lived in-memory cache because every dispatch
looks up the channel of every subscribed guild.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Tuple

from animuse.database.db_connection import ConnectionManager
from animuse.datatypes.discord_datatypes import ChannelID, GuildID
from animuse.repositories.guild_settings_repo import guild_settings_repo
from animuse.util.logger import get_logger

logger = get_logger("guild_config")

CONFIG_CACHE_TTL_SECONDS = 5 * 60


class GuildConfigService:
    """Cached access to the per-guild airing channel."""

    def __init__(
        self,
        connection: ConnectionManager,
        ttl_seconds: float = CONFIG_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._connection = connection
        self._ttl = ttl_seconds
        self._clock = clock
        self._cache: Dict[GuildID, Tuple[Optional[ChannelID], float]] = {}

    async def get_announcement_channel(self, guild_id: GuildID) -> Optional[ChannelID]:
        """Return the configured airing channel, or None if unset or unreadable."""
        cached = self._cache.get(guild_id)
        if cached is not None:
            channel_id, stored_at = cached
            if self._clock() - stored_at < self._ttl:
                return channel_id
            del self._cache[guild_id]

        try:
            async with self._connection.read() as conn:
                channel_id = await guild_settings_repo.get_airing_channel(conn, guild_id)
        except Exception as exc:
            logger.error("[GUILD CONFIG] Failed to read airing channel for guild %s: %s", guild_id, exc)
            return None

        self._cache[guild_id] = (channel_id, self._clock())
        return channel_id

    async def set_announcement_channel(self, guild_id: GuildID, channel_id: Optional[ChannelID]) -> None:
        """Set or clear the airing channel. Raises on database failure."""
        async with self._connection.transaction() as conn:
            await guild_settings_repo.set_airing_channel(conn, guild_id, channel_id, int(time.time()))
        self._cache[guild_id] = (channel_id, self._clock())
        logger.info("[GUILD CONFIG] Airing channel for guild %s set to %s", guild_id, channel_id)

    def invalidate(self, guild_id: Optional[GuildID] = None) -> None:
        if guild_id is None:
            self._cache.clear()
        else:
            self._cache.pop(guild_id, None)
