"""
Database connection management with a single long-lived connection.

SQLite runs best on one connection kept open for the bot's lifetime:
pragmas are applied once, the page cache stays warm, and WAL mode lets the
poll loop read while a "Track +" click writes.

SQLite allows a single writer, so writes are queued behind ``_write_sem``
instead of racing SQLite's busy-timeout. Reads need no semaphore in WAL mode.

Usage
-----
    await db_connection.open(DB_PATH)

    async with db_connection.read() as conn:
        rows = await conn.execute_fetchall("SELECT ...")

    async with db_connection.transaction() as conn:
        await conn.execute("INSERT ...")
        # commits on clean exit, rolls back on exception

    await db_connection.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from animuse.database.db_schema import SchemaManager
from animuse.util.logger import get_logger

logger = get_logger("database_connection")

_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 5000",
]


class ConnectionManager:
    """
    Wrapper around the single aiosqlite connection shared by the bot.

    * Reads  - ``async with read()`` or ``connection``; WAL allows concurrent reads.
    * Writes - ``async with transaction()``; serialised by ``_write_sem``.
    """

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)
        self._path: Path | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, path: Path) -> None:
        """
        Open the database, apply pragmas and create the schema.

        Must run once at startup before any repository is used.

        Args:
            path: Path to the SQLite database file.
        """
        if self._conn is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists, ignoring")
            return

        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row

        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)
        await SchemaManager.initialize_schema(self._conn)

        logger.info("[DB CONNECTION] Opened connection to %s", path)

    async def close(self) -> None:
        """Flush the WAL and close the connection."""
        if self._conn is None:
            return

        try:
            await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await self._conn.commit()
        except Exception:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._conn.close()
            self._conn = None
            logger.info("[DB CONNECTION] Connection closed")

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Connection access
    # ------------------------------------------------------------------

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The raw aiosqlite connection.

        Raises:
            RuntimeError: If the connection has not been opened yet.
        """
        if self._conn is None:
            raise RuntimeError(
                "ConnectionManager: connection is not open. "
                "Call await db_connection.open(path) at startup."
            )
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Serialised write transaction.

        Commits on clean exit and rolls back if the body raises.

        Raises:
            RuntimeError: If the connection is not open.
        """
        conn = self.connection

        async with self._write_sem:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Read access, symmetrical with :meth:`transaction`. No semaphore is taken."""
        yield self.connection


# Module-level singleton
db_connection = ConnectionManager()
