"""
Airing cog: slash commands and lifecycle for episode notifications.

Commands:
- /track add | remove | list: per-user subscriptions within a guild
- /airing channel: choose where notifications are posted (Manage Server)
- /airing status: channel, scheduler state and the last poll cycle (Manage Server)
- /airing test: send a notification for one title to this guild right now (Manage Server)

The cog also owns the airing scheduler: it is started on ``on_ready`` and
stopped when the cog unloads.
"""

import time
from typing import List, Optional

import discord
from discord.ext import commands

from animuse.airing.dispatcher import NotificationDispatcher
from animuse.airing.scheduler import AiringScheduler
from animuse.anilist.client import AniListClient, AniListError
from animuse.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from animuse.datatypes.media_datatypes import AiringEpisode
from animuse.datatypes.tracking_datatypes import SubscriptionResult
from animuse.services.guild_config import GuildConfigService
from animuse.services.tracking_store import TrackingStore
from animuse.ui.track_list_ui import TrackListView, build_track_list_embed
from animuse.util.logger import get_logger

logger = get_logger("airing_cog")

AUTOCOMPLETE_LIMIT = 25
MIN_SEARCH_LENGTH = 2


def parse_title_id(value: str | int | None) -> Optional[int]:
    """Autocomplete values arrive as text; anything that is not a positive int is rejected."""
    try:
        title_id = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return title_id if title_id > 0 else None


async def search_anime_choices(ctx: discord.AutocompleteContext) -> List[discord.OptionChoice]:
    """Autocomplete for /track add: AniList search results."""
    query = (ctx.value or "").strip()
    cog = ctx.cog
    if len(query) < MIN_SEARCH_LENGTH or cog is None:
        return []
    try:
        results = await cog.anilist.search_media(query)
    except AniListError as exc:
        logger.warning("[AIRING COG] Autocomplete search for %r failed: %s", query, exc)
        return []
    return [
        discord.OptionChoice(name=media.display_title[:100], value=str(media.id))
        for media in results[:AUTOCOMPLETE_LIMIT]
    ]


async def tracked_anime_choices(ctx: discord.AutocompleteContext) -> List[discord.OptionChoice]:
    """Autocomplete for /track remove: the caller's own subscriptions."""
    cog = ctx.cog
    interaction = ctx.interaction
    if cog is None or interaction.guild_id is None:
        return []
    query = (ctx.value or "").strip().lower()
    try:
        subscriptions = await cog.store.list_user_subscriptions(
            GuildID(interaction.guild_id), UserID.from_user(interaction.user)
        )
    except Exception as exc:
        logger.warning("[AIRING COG] Autocomplete of tracked titles failed: %s", exc)
        return []
    return [
        discord.OptionChoice(name=sub.title_display_name[:100], value=str(sub.title_id))
        for sub in subscriptions
        if query in sub.title_display_name.lower()
    ][:AUTOCOMPLETE_LIMIT]


class AiringCog(commands.Cog):
    """Tracking commands and the background airing scheduler."""

    track = discord.SlashCommandGroup("track", "Manage your personal anime airing notifications")
    airing = discord.SlashCommandGroup("airing", "Configure airing notifications for this server")

    def __init__(
        self,
        bot: discord.Bot,
        anilist: AniListClient,
        store: TrackingStore,
        guild_config: GuildConfigService,
        dispatcher: NotificationDispatcher,
        scheduler: AiringScheduler,
    ) -> None:
        self.bot = bot
        self.anilist = anilist
        self.store = store
        self.guild_config = guild_config
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        logger.info("Airing cog loaded")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if not self.scheduler.is_running:
            self.scheduler.start()
            logger.info("[AIRING COG] Scheduler started")

    def cog_unload(self) -> None:
        self.dispatcher.cancel_watchers()
        self.scheduler.cancel()
        logger.info("[AIRING COG] Stopped")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _ensure_guild_context(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return False
        return True

    def _has_manage_permission(self, ctx: discord.ApplicationContext) -> bool:
        permissions = getattr(ctx.user, "guild_permissions", None)
        return bool(getattr(permissions, "manage_guild", False))

    async def _check_manager(self, ctx: discord.ApplicationContext) -> bool:
        if not await self._ensure_guild_context(ctx):
            return False
        if not self._has_manage_permission(ctx):
            await ctx.respond("You need the Manage Server permission to configure airing notifications.", ephemeral=True)
            return False
        return True

    # ------------------------------------------------------------------
    # /track
    # ------------------------------------------------------------------

    @track.command(name="add", description="Track an anime for airing alerts")
    async def track_add(
        self,
        ctx: discord.ApplicationContext,
        anime: discord.Option(str, "Search for an anime", autocomplete=search_anime_choices),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        await ctx.defer(ephemeral=True)

        title_id = parse_title_id(anime)
        if title_id is None:
            await ctx.send_followup("❌ Please pick an anime from the suggestions.", ephemeral=True)
            return

        try:
            media = await self.anilist.get_media(title_id)
        except AniListError as exc:
            logger.error("[AIRING COG] Lookup of title %s failed: %s", title_id, exc)
            await ctx.send_followup("❌ AniList is not answering right now. Try again later.", ephemeral=True)
            return
        if media is None:
            await ctx.send_followup("❌ I could not find that anime on AniList.", ephemeral=True)
            return

        result = await self.store.add_subscription(
            GuildID(ctx.guild_id), UserID.from_user(ctx.user), media.id, media.display_title
        )
        if result is SubscriptionResult.ADDED:
            await ctx.send_followup(f"✅ You are now tracking **{media.display_title}**!", ephemeral=True)
        elif result is SubscriptionResult.ALREADY_TRACKING:
            await ctx.send_followup(f"ℹ️ You are already tracking **{media.display_title}**.", ephemeral=True)
        else:
            await ctx.send_followup("❌ Failed to start tracking.", ephemeral=True)

    @track.command(name="remove", description="Stop tracking an anime")
    async def track_remove(
        self,
        ctx: discord.ApplicationContext,
        anime: discord.Option(str, "Search your tracking list", autocomplete=tracked_anime_choices),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        title_id = parse_title_id(anime)
        if title_id is None:
            await ctx.respond("❌ Please pick an anime from your tracking list.", ephemeral=True)
            return

        try:
            removed = await self.store.remove_subscription(GuildID(ctx.guild_id), UserID.from_user(ctx.user), title_id)
        except Exception as exc:
            logger.error("[AIRING COG] Failed to remove subscription to %s: %s", title_id, exc)
            await ctx.respond("❌ Failed to stop tracking.", ephemeral=True)
            return

        if removed:
            await ctx.respond("🗑️ You will no longer be notified about that anime.", ephemeral=True)
        else:
            await ctx.respond("You were not tracking that anime.", ephemeral=True)

    @track.command(name="list", description="View your currently tracked anime")
    async def track_list(self, ctx: discord.ApplicationContext) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        user_id = UserID.from_user(ctx.user)
        subscriptions = await self.store.list_user_subscriptions(guild_id, user_id)
        if not subscriptions:
            await ctx.respond("You are not tracking anything yet. Use `/track add` to start.", ephemeral=True)
            return

        view = TrackListView(self.store, guild_id, user_id, subscriptions, origin=ctx.interaction)
        await ctx.respond(embed=build_track_list_embed(subscriptions), view=view, ephemeral=True)

    # ------------------------------------------------------------------
    # /airing
    # ------------------------------------------------------------------

    @airing.command(name="channel", description="Set the channel where new episodes are announced")
    async def airing_channel(self, ctx: discord.ApplicationContext, channel: discord.TextChannel) -> None:
        if not await self._check_manager(ctx):
            return
        try:
            await self.guild_config.set_announcement_channel(GuildID(ctx.guild_id), ChannelID.from_channel(channel))
        except Exception as exc:
            logger.error("[AIRING COG] Failed to set airing channel for guild %s: %s", ctx.guild_id, exc)
            await ctx.respond("❌ Failed to save the airing channel.", ephemeral=True)
            return
        await ctx.respond(f"✅ New episodes will be announced in {channel.mention}.", ephemeral=True)

    @airing.command(name="status", description="Show the airing notification status for this server")
    async def airing_status(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_manager(ctx):
            return

        channel_id = await self.guild_config.get_announcement_channel(GuildID(ctx.guild_id))
        embed = discord.Embed(title="Airing notifications", color=discord.Color.blurple())
        embed.add_field(name="Channel", value=f"<#{channel_id.to_int()}>" if channel_id else "Not set", inline=False)
        embed.add_field(name="Scheduler", value="running" if self.scheduler.is_running else "stopped", inline=True)
        embed.add_field(name="Interval", value=f"{self.scheduler.interval_seconds:.0f}s", inline=True)

        report = self.scheduler.last_report
        if report is None or self.scheduler.last_run_at is None:
            embed.add_field(name="Last cycle", value="No cycle has run yet", inline=False)
        else:
            ago = int(time.time() - self.scheduler.last_run_at)
            embed.add_field(name="Last cycle", value=f"{ago}s ago\n`{report.summary()}`", inline=False)
        await ctx.respond(embed=embed, ephemeral=True)

    @airing.command(name="test", description="Send a test notification for one anime to this server")
    async def airing_test(
        self,
        ctx: discord.ApplicationContext,
        anime_id: discord.Option(int, "AniList ID of the anime", min_value=1),  # type: ignore
    ) -> None:
        if not await self._check_manager(ctx):
            return
        await ctx.defer(ephemeral=True)

        guild_id = GuildID(ctx.guild_id)
        if await self.guild_config.get_announcement_channel(guild_id) is None:
            await ctx.send_followup(
                "⚠️ No airing channel is set for this server. Use `/airing channel` first.", ephemeral=True
            )
            return

        try:
            media = await self.anilist.get_media(anime_id)
        except AniListError as exc:
            logger.error("[AIRING COG] Lookup of title %s failed: %s", anime_id, exc)
            await ctx.send_followup("❌ AniList is not answering right now. Try again later.", ephemeral=True)
            return
        if media is None:
            await ctx.send_followup("❌ Media not found on AniList.", ephemeral=True)
            return

        upcoming = media.next_airing_episode
        episode = AiringEpisode(
            episode=upcoming.episode if upcoming is not None else 1,
            airing_at=int(time.time()),
            time_until_airing=0,
        )

        try:
            report = await self.dispatcher.dispatch(media, episode, force_guild_id=guild_id)
        except Exception as exc:
            logger.error("[AIRING COG] Test dispatch for guild %s failed: %s", guild_id, exc)
            await ctx.send_followup("❌ Error while sending the test notification.", ephemeral=True)
            return

        if report.sent:
            await ctx.send_followup(
                f"✅ Test notification for **{media.display_title}** sent. Check your airing channel.", ephemeral=True
            )
        else:
            await ctx.send_followup(
                "❌ The test notification could not be delivered. Check the channel permissions.", ephemeral=True
            )


def setup(
    bot: discord.Bot,
    anilist: AniListClient,
    store: TrackingStore,
    guild_config: GuildConfigService,
    dispatcher: NotificationDispatcher,
    scheduler: AiringScheduler,
) -> AiringCog:
    """Register the airing cog with the bot and return it."""
    cog = AiringCog(bot, anilist, store, guild_config, dispatcher, scheduler)
    bot.add_cog(cog)
    return cog
