"""
Notification dispatcher: fans one airing episode out to every subscribed guild.

Each guild gets a single message in its configured airing channel that pings
the guild's subscribers, carries the airing card and offers two buttons:
a link to the AniList page and a short-lived "Track +" button that lets
anyone in the channel start tracking the title.

Guilds are isolated from each other: a missing channel, a permission error
or any other failure in one guild is logged and the next guild is served.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from io import BytesIO
from typing import Awaitable, Callable, Dict, List, Optional

import discord

from animuse.datatypes.discord_datatypes import GuildID, UserID
from animuse.datatypes.media_datatypes import AiringEpisode, Media
from animuse.datatypes.tracking_datatypes import Subscriber, SubscriptionResult
from animuse.services.guild_config import GuildConfigService
from animuse.services.tracking_store import TrackingStore
from animuse.ui.airing_card import render_airing_card
from animuse.util.interaction_watcher import InteractionWatcher, WatcherState, watch_interaction
from animuse.util.logger import get_logger

logger = get_logger("dispatcher")

TRACK_BUTTON_TIMEOUT_SECONDS = 10 * 60
NOTIFICATION_HEADER = "🔔 **New Episode detected!**"

TRACK_REPLIES: Dict[SubscriptionResult, str] = {
    SubscriptionResult.ADDED: "✅ You are now tracking **{title}**!",
    SubscriptionResult.ALREADY_TRACKING: "ℹ️ You are already tracking **{title}**.",
    SubscriptionResult.FAILED: "❌ Failed to start tracking.",
}

CardRenderer = Callable[[Media, AiringEpisode], Awaitable[bytes]]
WatcherFactory = Callable[..., InteractionWatcher]


def track_custom_id(title_id: int) -> str:
    return f"track_add_{title_id}"


def group_by_guild(subscribers: List[Subscriber]) -> Dict[GuildID, List[UserID]]:
    """Group subscribers by guild in first-seen order.

    A subscriber without a user (forced dispatch) still registers its guild.
    """
    groups: Dict[GuildID, List[UserID]] = {}
    for subscriber in subscribers:
        users = groups.setdefault(subscriber.guild_id, [])
        if subscriber.user_id is not None and subscriber.user_id not in users:
            users.append(subscriber.user_id)
    return groups


def build_content(user_ids: List[UserID]) -> str:
    if not user_ids:
        return NOTIFICATION_HEADER
    return f"{NOTIFICATION_HEADER} " + " ".join(user.mention for user in user_ids)


def build_notification_view(media: Media, timeout: Optional[float] = None) -> discord.ui.View:
    view = discord.ui.View(timeout=timeout)
    view.add_item(discord.ui.Button(
        label="View on AniList",
        style=discord.ButtonStyle.link,
        url=media.page_url,
    ))
    view.add_item(discord.ui.Button(
        label="Track +",
        style=discord.ButtonStyle.primary,
        custom_id=track_custom_id(media.id),
    ))
    return view


@dataclass(slots=True)
class DispatchReport:
    """Outcome of one dispatch, per guild."""
    title_id: int
    guilds: int = 0
    sent: List[GuildID] = field(default_factory=list)
    skipped: List[GuildID] = field(default_factory=list)
    failed: List[GuildID] = field(default_factory=list)
    card_rendered: bool = False


class NotificationDispatcher:
    """Sends airing notifications and handles the "Track +" button on them."""

    def __init__(
        self,
        bot: discord.Client,
        store: TrackingStore,
        guild_config: GuildConfigService,
        renderer: CardRenderer = render_airing_card,
        watch_timeout: float = TRACK_BUTTON_TIMEOUT_SECONDS,
        watcher_factory: WatcherFactory = watch_interaction,
    ) -> None:
        self._bot = bot
        self._store = store
        self._guild_config = guild_config
        self._renderer = renderer
        self._watch_timeout = watch_timeout
        self._watcher_factory = watcher_factory
        self.watchers: List[InteractionWatcher] = []

    async def dispatch(
        self,
        media: Media,
        episode: AiringEpisode,
        *,
        force_guild_id: Optional[GuildID] = None,
    ) -> DispatchReport:
        """
        Announce ``episode`` of ``media`` to its subscribers.

        With ``force_guild_id`` only that guild is notified, without pings.

        Raises:
            Exception: If the subscriber list cannot be read; the poller then
                leaves the episode unannounced and retries next cycle.
        """
        report = DispatchReport(title_id=media.id)

        if force_guild_id is not None:
            subscribers = [Subscriber(GuildID(force_guild_id), None)]
        else:
            subscribers = await self._store.get_subscribers(media.id)

        groups = group_by_guild(subscribers)
        report.guilds = len(groups)
        if not groups:
            logger.debug("[DISPATCH] No subscribers for title %s", media.id)
            return report

        card: Optional[bytes] = None
        try:
            card = await self._renderer(media, episode)
            report.card_rendered = True
        except Exception as exc:
            logger.error("[DISPATCH] Failed to render airing card for title %s: %s", media.id, exc)

        for guild_id, user_ids in groups.items():
            channel = await self._resolve_channel(guild_id)
            if channel is None:
                report.skipped.append(guild_id)
                continue

            view = build_notification_view(media, timeout=self._watch_timeout)
            send_kwargs = {"content": build_content(user_ids), "view": view}
            if card is not None:
                send_kwargs["file"] = discord.File(BytesIO(card), filename=f"airing-{media.id}.png")

            try:
                message = await channel.send(**send_kwargs)
            except discord.Forbidden as exc:
                logger.warning("[DISPATCH] Missing permissions in guild %s channel %s: %s", guild_id, channel.id, exc)
                report.failed.append(guild_id)
                continue
            except discord.HTTPException as exc:
                logger.error("[DISPATCH] Discord rejected notification for guild %s: %s", guild_id, exc)
                report.failed.append(guild_id)
                continue
            except Exception as exc:
                logger.error("[DISPATCH] Failed to notify guild %s: %s", guild_id, exc)
                report.failed.append(guild_id)
                continue

            report.sent.append(guild_id)
            self._watch(message, media, view)

        logger.info(
            "[DISPATCH] Title %s episode %d: sent=%d skipped=%d failed=%d",
            media.id, episode.episode, len(report.sent), len(report.skipped), len(report.failed),
        )
        return report

    async def _resolve_channel(self, guild_id: GuildID) -> Optional[discord.abc.Messageable]:
        channel_id = await self._guild_config.get_announcement_channel(guild_id)
        if channel_id is None:
            logger.debug("[DISPATCH] Guild %s has no airing channel configured", guild_id)
            return None

        channel = self._bot.get_channel(channel_id.to_int())
        if channel is not None:
            return channel
        try:
            return await self._bot.fetch_channel(channel_id.to_int())
        except Exception as exc:
            logger.warning("[DISPATCH] Could not resolve channel %s for guild %s: %s", channel_id, guild_id, exc)
            return None

    def _watch(self, message: discord.Message, media: Media, view: discord.ui.View) -> None:
        self.watchers = [w for w in self.watchers if w.state is not WatcherState.DONE]

        async def on_activate(interaction: discord.Interaction) -> None:
            if interaction.custom_id == track_custom_id(media.id):
                await self.handle_track_click(interaction, media)

        try:
            watcher = self._watcher_factory(
                self._bot,
                message,
                self._watch_timeout,
                on_activate,
                ephemeral_ids=(track_custom_id(media.id),),
                view=view,
            )
        except Exception as exc:
            logger.warning("[DISPATCH] Could not watch message %s: %s", getattr(message, "id", None), exc)
            view.stop()
            return
        self.watchers.append(watcher)

    async def handle_track_click(self, interaction: discord.Interaction, media: Media) -> SubscriptionResult:
        """Subscribe the clicking user to ``media`` and reply ephemerally."""
        await interaction.response.defer(ephemeral=True)

        if interaction.guild_id is None or interaction.user is None:
            result = SubscriptionResult.FAILED
        else:
            result = await self._store.add_subscription(
                GuildID(interaction.guild_id),
                UserID.from_user(interaction.user),
                media.id,
                media.display_title,
            )

        await interaction.followup.send(TRACK_REPLIES[result].format(title=media.display_title), ephemeral=True)
        return result

    def cancel_watchers(self) -> None:
        for watcher in self.watchers:
            watcher.cancel()
        self.watchers.clear()
