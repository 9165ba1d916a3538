"""
Track list panel: the user's subscriptions with a dropdown to untrack them.

Shown ephemerally by ``/track list``. Picking a title from the dropdown
removes the subscription and redraws the panel in place. The panel stops
listening after a minute and drops the dropdown.
"""

from __future__ import annotations

from typing import List, Optional

import discord

from animuse.datatypes.discord_datatypes import GuildID, UserID
from animuse.datatypes.tracking_datatypes import Subscription
from animuse.services.tracking_store import TrackingStore
from animuse.util.logger import get_logger

logger = get_logger("track_list_ui")

UNTRACK_SELECT_ID = "untrack_select"
MAX_SELECT_OPTIONS = 25
PANEL_TIMEOUT_SECONDS = 60
EMBED_DESCRIPTION_LIMIT = 4000


def build_track_list_embed(subscriptions: List[Subscription]) -> discord.Embed:
    lines = [f"• **{sub.title_display_name}** (`{sub.title_id}`)" for sub in subscriptions]
    description = "\n".join(lines)
    if len(description) > EMBED_DESCRIPTION_LIMIT:
        description = description[:EMBED_DESCRIPTION_LIMIT].rsplit("\n", 1)[0] + "\n…"

    embed = discord.Embed(
        title=f"📺 Tracked anime ({len(subscriptions)})",
        description=description,
        color=discord.Color.blurple(),
    )
    embed.set_footer(text="Use the dropdown below to stop tracking an anime.")
    return embed


def build_untrack_options(subscriptions: List[Subscription]) -> List[discord.SelectOption]:
    """Dropdown entries; Discord allows at most 25 with labels up to 100 chars."""
    return [
        discord.SelectOption(label=sub.title_display_name[:100], value=str(sub.title_id))
        for sub in subscriptions[:MAX_SELECT_OPTIONS]
    ]


class TrackListView(discord.ui.View):
    """Ephemeral panel listing one user's subscriptions in one guild."""

    def __init__(
        self,
        store: TrackingStore,
        guild_id: GuildID,
        user_id: UserID,
        subscriptions: List[Subscription],
        *,
        origin: Optional[discord.Interaction] = None,
        timeout_seconds: float = PANEL_TIMEOUT_SECONDS,
    ):
        super().__init__(timeout=timeout_seconds)
        self.store = store
        self.guild_id = guild_id
        self.user_id = user_id
        self.subscriptions = list(subscriptions)
        self.origin = origin
        self.refresh_items()

    def refresh_items(self) -> None:
        self.clear_items()
        if self.subscriptions:
            custom_id = f"{UNTRACK_SELECT_ID}:{self.guild_id}:{self.user_id}"
            self.add_item(UntrackSelect(build_untrack_options(self.subscriptions), custom_id))

    def find(self, title_id: int) -> Optional[Subscription]:
        for sub in self.subscriptions:
            if sub.title_id == title_id:
                return sub
        return None

    async def untrack(self, interaction: discord.Interaction, title_id: int) -> bool:
        """Remove ``title_id`` for the panel's user and redraw the panel."""
        selected = self.find(title_id)
        if selected is None:
            await interaction.response.send_message(
                "❌ That anime is no longer on your list.", ephemeral=True
            )
            return False

        try:
            await self.store.remove_subscription(self.guild_id, self.user_id, title_id)
        except Exception as exc:
            logger.error("[TRACK LIST] Failed to untrack %s for user %s: %s", title_id, self.user_id, exc)
            await interaction.response.send_message("❌ Failed to stop tracking.", ephemeral=True)
            return False

        self.subscriptions.remove(selected)
        if not self.subscriptions:
            self.stop()
            await interaction.response.edit_message(
                content="You are no longer tracking any anime.", embed=None, view=None
            )
            return True

        self.refresh_items()
        await interaction.response.edit_message(
            content=f"✅ Untracked **{selected.title_display_name}**",
            embed=build_track_list_embed(self.subscriptions),
            view=self,
        )
        return True

    async def on_timeout(self) -> None:  # pragma: no cover - relies on Discord timers
        if self.origin is None:
            return
        try:
            await self.origin.edit_original_response(view=None)
        except discord.HTTPException:
            pass


class UntrackSelect(discord.ui.Select):
    """Dropdown of tracked titles; picking one untracks it."""

    def __init__(self, options: List[discord.SelectOption], custom_id: str = UNTRACK_SELECT_ID):
        super().__init__(
            custom_id=custom_id,
            placeholder="Select to untrack",
            min_values=1,
            max_values=1,
            options=options,
        )

    async def callback(self, interaction: discord.Interaction) -> None:  # pragma: no cover - requires Discord runtime
        view: TrackListView = self.view  # type: ignore[assignment]
        await view.untrack(interaction, int(self.values[0]))
