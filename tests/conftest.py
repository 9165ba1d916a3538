"""
Pytest configuration and fixtures for Animuse tests.
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from animuse.database.db_connection import ConnectionManager  # noqa: E402
from animuse.services.tracking_store import TrackingStore  # noqa: E402


class FakeClock:
    """Settable clock for code that takes a ``clock`` callable."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest_asyncio.fixture
async def db(tmp_path: Path):
    """A ConnectionManager opened on a throwaway SQLite file."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "test.db")
    yield manager
    await manager.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def store(db, clock):
    return TrackingStore(db, clock=clock)
