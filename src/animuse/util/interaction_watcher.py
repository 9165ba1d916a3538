"""
Short-lived listeners for buttons on already-sent messages.

A notification carries a button that only makes sense for a while. Rather
than registering a persistent view, the sender attaches an
:class:`InteractionWatcher` that waits for component interactions on that one
message, hands each to a callback, and once the deadline passes edits the
message to drop the buttons that no longer do anything.

``wait_for`` holds no queue, so every callback runs in its own task and the
listener is re-armed before the callback finishes. A click that arrives while
an earlier one is still being handled is not lost.

Lifecycle::

    ACTIVE --(deadline)--> EXPIRED --(cleanup finished)--> DONE
    ACTIVE --cancel()----------------------------------->  DONE
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, Collection, Optional, Set

import discord

from animuse.util.logger import get_logger

logger = get_logger("interaction_watcher")

HANDLER_ERROR_MESSAGE = "❌ Interaction Handler Error."


class WatcherState(Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    DONE = "done"


class InteractionWatcher:
    """
    Routes component interactions on one message to ``on_activate`` until a deadline.

    Args:
        bot: Client used for ``wait_for("interaction")``.
        message: The sent message to watch.
        timeout: Seconds to keep listening.
        on_activate: Coroutine called with every matching interaction.
        ephemeral_ids: ``custom_id`` values stripped from the message on expiry.
        view: The view the message was sent with. It is stopped when the
            watcher finishes so the client's view store lets go of it.
    """

    def __init__(
        self,
        bot: discord.Client,
        message: discord.Message,
        timeout: float,
        on_activate: Callable[[discord.Interaction], Awaitable[object]],
        ephemeral_ids: Collection[str] = (),
        clock: Callable[[], float] = time.monotonic,
        view: Optional[discord.ui.View] = None,
    ) -> None:
        self._bot = bot
        self._message = message
        self._timeout = timeout
        self._on_activate = on_activate
        self._ephemeral_ids = frozenset(ephemeral_ids)
        self._clock = clock
        self._view = view
        self._task: asyncio.Task | None = None
        self._handlers: Set[asyncio.Task] = set()
        self.state = WatcherState.ACTIVE
        self.activations = 0

    @property
    def message_id(self) -> int:
        return self._message.id

    def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name=f"interaction-watcher-{self._message.id}")

    def cancel(self) -> None:
        """Stop listening immediately. The message is left as it is."""
        if self._task and not self._task.done():
            self._task.cancel()
        for handler in list(self._handlers):
            handler.cancel()
        self._release_view()
        self.state = WatcherState.DONE

    async def wait(self) -> None:
        """Wait for the watcher to finish, including expiry cleanup."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    def matches(self, interaction: discord.Interaction) -> bool:
        """True for component interactions on the watched message."""
        if interaction.type != discord.InteractionType.component:
            return False
        message = interaction.message
        return message is not None and message.id == self._message.id

    async def _run(self) -> None:
        deadline = self._clock() + self._timeout
        try:
            while True:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    break
                try:
                    interaction = await self._bot.wait_for(
                        "interaction", check=self.matches, timeout=remaining
                    )
                except asyncio.TimeoutError:
                    break
                handler = asyncio.create_task(self._handle(interaction))
                self._handlers.add(handler)
                handler.add_done_callback(self._handlers.discard)

            self.state = WatcherState.EXPIRED
            if self._handlers:
                await asyncio.gather(*self._handlers, return_exceptions=True)
            await self._cleanup()
        finally:
            for handler in list(self._handlers):
                handler.cancel()
            self._release_view()
            self.state = WatcherState.DONE

    def _release_view(self) -> None:
        if self._view is not None:
            self._view.stop()
            self._view = None

    async def _handle(self, interaction: discord.Interaction) -> None:
        self.activations += 1
        try:
            await self._on_activate(interaction)
        except Exception as exc:
            logger.error(
                "[INTERACTION WATCHER] Handler failed on message %s (custom_id=%s): %s",
                self._message.id, interaction.custom_id, exc,
            )
            await self._report_failure(interaction)

    async def _report_failure(self, interaction: discord.Interaction) -> None:
        try:
            if interaction.response.is_done():
                await interaction.followup.send(HANDLER_ERROR_MESSAGE, ephemeral=True)
            else:
                await interaction.response.send_message(HANDLER_ERROR_MESSAGE, ephemeral=True)
        except Exception as exc:
            logger.debug("[INTERACTION WATCHER] Could not report handler failure: %s", exc)

    async def _cleanup(self) -> None:
        """Re-fetch the message and rebuild its view without the expired buttons."""
        if not self._ephemeral_ids:
            return
        try:
            fresh = await self._message.channel.fetch_message(self._message.id)
            view = discord.ui.View.from_message(fresh, timeout=None)
            for item in list(view.children):
                if getattr(item, "custom_id", None) in self._ephemeral_ids:
                    view.remove_item(item)
            await fresh.edit(view=view)
            logger.debug("[INTERACTION WATCHER] Removed expired buttons from message %s", fresh.id)
        except Exception as exc:
            logger.debug("[INTERACTION WATCHER] Cleanup of message %s failed: %s", self._message.id, exc)


def watch_interaction(
    bot: discord.Client,
    message: discord.Message,
    timeout: float,
    on_activate: Callable[[discord.Interaction], Awaitable[object]],
    ephemeral_ids: Collection[str] = (),
    clock: Optional[Callable[[], float]] = None,
    view: Optional[discord.ui.View] = None,
) -> InteractionWatcher:
    """Create and start a watcher for ``message``."""
    watcher = InteractionWatcher(
        bot, message, timeout, on_activate, ephemeral_ids, clock=clock or time.monotonic, view=view
    )
    watcher.start()
    return watcher
