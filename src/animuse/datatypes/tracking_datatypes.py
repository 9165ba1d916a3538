"""
Records persisted by the tracking store.

- ``TrackedTitle``: polling state for one AniList title.
- ``Subscription``: one user tracking one title in one guild.
- ``Subscriber``: the (guild, user) pair the dispatcher fans out to.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from animuse.datatypes.discord_datatypes import GuildID, UserID


class SubscriptionResult(Enum):
    """Outcome of adding a subscription."""

    ADDED = "added"
    ALREADY_TRACKING = "already_tracking"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class TrackedTitle:
    """A row from the ``tracked_titles`` table.

    Attributes:
        title_id: AniList media ID.
        last_notified_episode: Highest episode already announced; 0 when never announced.
        next_airing_at: Unix seconds of the next unseen episode, None when unknown or finished.
        updated_at: Unix seconds of the last write.
    """
    title_id: int
    last_notified_episode: int = 0
    next_airing_at: Optional[int] = None
    updated_at: int = 0


@dataclass(slots=True, frozen=True)
class Subscriber:
    guild_id: GuildID
    user_id: Optional[UserID]


@dataclass(slots=True)
class Subscription:
    """A row from the ``subscriptions`` table."""
    guild_id: GuildID
    user_id: UserID
    title_id: int
    title_display_name: str
    created_at: int = 0
