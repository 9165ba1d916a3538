"""
Database schema initialization and version tracking.

Creates the airing tables:

- ``tracked_titles``: polling state per AniList title
- ``subscriptions``: which (guild, user) pairs track which title
- ``guild_settings``: per-guild airing channel
"""

import aiosqlite
from animuse.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates tables and indexes and records the schema version."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create or update all database tables and indexes.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create all required database tables."""
        # Timestamps are unix seconds so due-window comparisons stay integer math
        await db.execute("""
            CREATE TABLE IF NOT EXISTS tracked_titles (
                title_id INTEGER PRIMARY KEY,
                last_notified_episode INTEGER NOT NULL DEFAULT 0,
                next_airing_at INTEGER,
                updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS subscriptions (
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                title_id INTEGER NOT NULL,
                title_display_name TEXT NOT NULL DEFAULT '',
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now')),
                PRIMARY KEY (guild_id, user_id, title_id)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS guild_settings (
                guild_id INTEGER PRIMARY KEY,
                airing_channel_id INTEGER,
                updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        """Create the indexes used by the poll loop."""
        await db.execute("CREATE INDEX IF NOT EXISTS idx_tracked_titles_next_airing ON tracked_titles(next_airing_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_subscriptions_title ON subscriptions(title_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_subscriptions_user ON subscriptions(guild_id, user_id)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
