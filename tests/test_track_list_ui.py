from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from animuse.datatypes.discord_datatypes import GuildID, UserID
from animuse.datatypes.tracking_datatypes import Subscription
from animuse.ui.track_list_ui import (
    MAX_SELECT_OPTIONS,
    TrackListView,
    build_track_list_embed,
    build_untrack_options,
)

GUILD = GuildID(1)
USER = UserID(77)


def make_subscriptions(count: int) -> list[Subscription]:
    return [Subscription(GUILD, USER, title_id, f"Title {title_id}") for title_id in range(1, count + 1)]


def make_interaction() -> SimpleNamespace:
    return SimpleNamespace(response=SimpleNamespace(edit_message=AsyncMock(), send_message=AsyncMock()))


def test_untrack_options_are_capped_and_truncated() -> None:
    subscriptions = make_subscriptions(30)
    subscriptions[0] = Subscription(GUILD, USER, 1, "x" * 150)

    options = build_untrack_options(subscriptions)

    assert len(options) == MAX_SELECT_OPTIONS
    assert len(options[0].label) == 100
    assert options[1].value == "2"


def test_embed_lists_every_title_with_count() -> None:
    embed = build_track_list_embed(make_subscriptions(2))

    assert embed.title == "📺 Tracked anime (2)"
    assert "Title 2" in embed.description


@pytest.mark.asyncio
async def test_untrack_removes_title_and_redraws_panel() -> None:
    store = AsyncMock()
    view = TrackListView(store, GUILD, USER, make_subscriptions(2))
    interaction = make_interaction()

    assert await view.untrack(interaction, 1) is True

    store.remove_subscription.assert_awaited_once_with(GUILD, USER, 1)
    kwargs = interaction.response.edit_message.await_args.kwargs
    assert kwargs["content"] == "✅ Untracked **Title 1**"
    assert kwargs["view"] is view
    assert "(1)" in kwargs["embed"].title
    assert [option.value for option in view.children[0].options] == ["2"]


@pytest.mark.asyncio
async def test_untracking_the_last_title_closes_panel() -> None:
    store = AsyncMock()
    view = TrackListView(store, GUILD, USER, make_subscriptions(1))
    interaction = make_interaction()

    await view.untrack(interaction, 1)

    interaction.response.edit_message.assert_awaited_once_with(
        content="You are no longer tracking any anime.", embed=None, view=None
    )
    assert view.is_finished()


@pytest.mark.asyncio
async def test_untrack_unknown_title_replies_without_store_call() -> None:
    store = AsyncMock()
    view = TrackListView(store, GUILD, USER, make_subscriptions(1))
    interaction = make_interaction()

    assert await view.untrack(interaction, 99) is False

    store.remove_subscription.assert_not_awaited()
    interaction.response.send_message.assert_awaited_once()


@pytest.mark.asyncio
async def test_untrack_store_failure_keeps_list() -> None:
    store = AsyncMock()
    store.remove_subscription.side_effect = RuntimeError("db locked")
    view = TrackListView(store, GUILD, USER, make_subscriptions(2))
    interaction = make_interaction()

    assert await view.untrack(interaction, 1) is False

    assert len(view.subscriptions) == 2
    interaction.response.edit_message.assert_not_awaited()
    assert "Failed" in interaction.response.send_message.await_args.args[0]
