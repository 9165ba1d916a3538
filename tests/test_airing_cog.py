from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from animuse.airing.dispatcher import DispatchReport
from animuse.airing.poller import PollCycleReport
from animuse.anilist.client import AniListError
from animuse.cogs import airing as airing_cog
from animuse.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from animuse.datatypes.media_datatypes import AiringEpisode, Media, MediaTitle
from animuse.datatypes.tracking_datatypes import Subscription, SubscriptionResult
from animuse.ui.track_list_ui import TrackListView

MEDIA = Media(
    id=154587,
    title=MediaTitle(english="Frieren"),
    next_airing_episode=AiringEpisode(episode=9, airing_at=1, time_until_airing=1),
)


class Ctx:
    def __init__(self, guild_id: int | None = 1, user_id: int = 77, manage: bool = False) -> None:
        self.guild_id = guild_id
        self.user = SimpleNamespace(id=user_id, guild_permissions=SimpleNamespace(manage_guild=manage))
        self.respond = AsyncMock()
        self.defer = AsyncMock()
        self.send_followup = AsyncMock()
        self.interaction = SimpleNamespace(edit_original_response=AsyncMock())


def make_cog() -> airing_cog.AiringCog:
    scheduler = MagicMock()
    scheduler.is_running = False
    scheduler.interval_seconds = 600
    scheduler.last_report = None
    scheduler.last_run_at = None
    return airing_cog.AiringCog(
        bot=MagicMock(),
        anilist=AsyncMock(),
        store=AsyncMock(),
        guild_config=AsyncMock(),
        dispatcher=MagicMock(dispatch=AsyncMock()),
        scheduler=scheduler,
    )


def callback(command):
    return getattr(command, "callback", command)


def test_parse_title_id() -> None:
    assert airing_cog.parse_title_id("154587") == 154587
    assert airing_cog.parse_title_id(" 12 ") == 12
    assert airing_cog.parse_title_id("Frieren") is None
    assert airing_cog.parse_title_id("0") is None
    assert airing_cog.parse_title_id(None) is None


@pytest.mark.asyncio
async def test_on_ready_starts_scheduler_once() -> None:
    cog = make_cog()
    await cog.on_ready()
    cog.scheduler.start.assert_called_once()

    cog.scheduler.is_running = True
    await cog.on_ready()
    cog.scheduler.start.assert_called_once()


def test_cog_unload_cancels_watchers_and_scheduler() -> None:
    cog = make_cog()

    cog.cog_unload()

    cog.dispatcher.cancel_watchers.assert_called_once()
    cog.scheduler.cancel.assert_called_once()
    cog.scheduler.stop.assert_not_called()


@pytest.mark.asyncio
async def test_track_add_subscribes_user() -> None:
    cog = make_cog()
    cog.anilist.get_media.return_value = MEDIA
    cog.store.add_subscription.return_value = SubscriptionResult.ADDED
    ctx = Ctx()

    await callback(airing_cog.AiringCog.track_add)(cog, ctx, "154587")

    cog.store.add_subscription.assert_awaited_once_with(GuildID(1), UserID(77), 154587, "Frieren")
    ctx.send_followup.assert_awaited_once_with("✅ You are now tracking **Frieren**!", ephemeral=True)


@pytest.mark.asyncio
async def test_track_add_rejects_free_text() -> None:
    cog = make_cog()
    ctx = Ctx()

    await callback(airing_cog.AiringCog.track_add)(cog, ctx, "frieren")

    cog.anilist.get_media.assert_not_awaited()
    assert "suggestions" in ctx.send_followup.await_args.args[0]


@pytest.mark.asyncio
async def test_track_add_reports_anilist_outage() -> None:
    cog = make_cog()
    cog.anilist.get_media.side_effect = AniListError(503, "down")
    ctx = Ctx()

    await callback(airing_cog.AiringCog.track_add)(cog, ctx, "1")

    cog.store.add_subscription.assert_not_awaited()
    assert "AniList" in ctx.send_followup.await_args.args[0]


@pytest.mark.asyncio
async def test_track_add_requires_guild() -> None:
    cog = make_cog()
    ctx = Ctx(guild_id=None)

    await callback(airing_cog.AiringCog.track_add)(cog, ctx, "1")

    ctx.respond.assert_awaited_once()
    ctx.defer.assert_not_awaited()


@pytest.mark.asyncio
async def test_track_remove() -> None:
    cog = make_cog()
    cog.store.remove_subscription.return_value = True
    ctx = Ctx()

    await callback(airing_cog.AiringCog.track_remove)(cog, ctx, "42")

    cog.store.remove_subscription.assert_awaited_once_with(GuildID(1), UserID(77), 42)
    assert "no longer" in ctx.respond.await_args.args[0]


@pytest.mark.asyncio
async def test_track_list_builds_embed() -> None:
    cog = make_cog()
    cog.store.list_user_subscriptions.return_value = [
        Subscription(GuildID(1), UserID(77), 1, "Bocchi the Rock!"),
        Subscription(GuildID(1), UserID(77), 2, "Frieren"),
    ]
    ctx = Ctx()

    await callback(airing_cog.AiringCog.track_list)(cog, ctx)

    embed = ctx.respond.await_args.kwargs["embed"]
    assert "Bocchi the Rock!" in embed.description
    assert "(2)" in embed.title

    view = ctx.respond.await_args.kwargs["view"]
    assert isinstance(view, TrackListView)
    assert [option.value for option in view.children[0].options] == ["1", "2"]
    assert view.origin is ctx.interaction


@pytest.mark.asyncio
async def test_airing_channel_requires_manage_permission() -> None:
    cog = make_cog()
    ctx = Ctx(manage=False)

    await callback(airing_cog.AiringCog.airing_channel)(cog, ctx, SimpleNamespace(id=500, mention="#anime"))

    cog.guild_config.set_announcement_channel.assert_not_awaited()
    assert "Manage Server" in ctx.respond.await_args.args[0]


@pytest.mark.asyncio
async def test_airing_channel_sets_channel() -> None:
    cog = make_cog()
    ctx = Ctx(manage=True)

    await callback(airing_cog.AiringCog.airing_channel)(cog, ctx, SimpleNamespace(id=500, mention="#anime"))

    cog.guild_config.set_announcement_channel.assert_awaited_once_with(GuildID(1), ChannelID(500))


@pytest.mark.asyncio
async def test_airing_status_shows_last_cycle() -> None:
    cog = make_cog()
    cog.guild_config.get_announcement_channel.return_value = ChannelID(500)
    cog.scheduler.last_report = PollCycleReport(due=4, dispatched=1)
    cog.scheduler.last_run_at = 0.0
    ctx = Ctx(manage=True)

    await callback(airing_cog.AiringCog.airing_status)(cog, ctx)

    embed = ctx.respond.await_args.kwargs["embed"]
    values = [field.value for field in embed.fields]
    assert "<#500>" in values
    assert any("due=4" in value for value in values)


@pytest.mark.asyncio
async def test_airing_test_warns_without_channel() -> None:
    cog = make_cog()
    cog.guild_config.get_announcement_channel.return_value = None
    ctx = Ctx(manage=True)

    await callback(airing_cog.AiringCog.airing_test)(cog, ctx, 154587)

    cog.dispatcher.dispatch.assert_not_awaited()
    assert "No airing channel" in ctx.send_followup.await_args.args[0]


@pytest.mark.asyncio
async def test_airing_test_forces_single_guild_dispatch() -> None:
    cog = make_cog()
    cog.guild_config.get_announcement_channel.return_value = ChannelID(500)
    cog.anilist.get_media.return_value = MEDIA
    cog.dispatcher.dispatch.return_value = DispatchReport(title_id=MEDIA.id, sent=[GuildID(1)])
    ctx = Ctx(manage=True)

    await callback(airing_cog.AiringCog.airing_test)(cog, ctx, 154587)

    args = cog.dispatcher.dispatch.await_args
    assert args.args[0] is MEDIA
    assert args.args[1].episode == 9
    assert args.kwargs["force_guild_id"] == GuildID(1)
    assert "sent" in ctx.send_followup.await_args.args[0]


@pytest.mark.asyncio
async def test_search_autocomplete_maps_results() -> None:
    cog = make_cog()
    cog.anilist.search_media.return_value = [MEDIA]
    ctx = SimpleNamespace(value="fri", cog=cog)

    choices = await airing_cog.search_anime_choices(ctx)  # type: ignore[arg-type]

    assert [(c.name, c.value) for c in choices] == [("Frieren", "154587")]


@pytest.mark.asyncio
async def test_search_autocomplete_ignores_short_queries() -> None:
    cog = make_cog()
    ctx = SimpleNamespace(value="f", cog=cog)

    assert await airing_cog.search_anime_choices(ctx) == []  # type: ignore[arg-type]
    cog.anilist.search_media.assert_not_awaited()


@pytest.mark.asyncio
async def test_tracked_autocomplete_filters_user_list() -> None:
    cog = make_cog()
    cog.store.list_user_subscriptions.return_value = [
        Subscription(GuildID(1), UserID(77), 1, "Bocchi the Rock!"),
        Subscription(GuildID(1), UserID(77), 2, "Frieren"),
    ]
    ctx = SimpleNamespace(value="fri", cog=cog, interaction=SimpleNamespace(guild_id=1, user=SimpleNamespace(id=77)))

    choices = await airing_cog.tracked_anime_choices(ctx)  # type: ignore[arg-type]

    assert [c.value for c in choices] == ["2"]
