"""Repository layer for tracking and guild settings database access."""
from animuse.repositories.guild_settings_repo import GuildSettingsRepository
from animuse.repositories.subscriptions_repo import SubscriptionsRepository
from animuse.repositories.tracked_titles_repo import TrackedTitlesRepository

__all__ = [
    "GuildSettingsRepository",
    "SubscriptionsRepository",
    "TrackedTitlesRepository",
]
