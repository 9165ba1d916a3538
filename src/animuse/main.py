"""
Animuse
=======

A Discord bot that lets server members track airing anime and posts an
announcement, with an airing card and a "Track +" button, in each server's
airing channel when a tracked title gets a new episode.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. ANIMUSE_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of the ``src`` directory.
    """
    if env_home := os.getenv("ANIMUSE_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from animuse.airing.dispatcher import NotificationDispatcher
from animuse.airing.due_set import DueSetSelector
from animuse.airing.poller import BatchPoller
from animuse.airing.scheduler import AiringScheduler
from animuse.anilist.client import AniListClient
from animuse.cogs import airing as airing_cog
from animuse.configuration.app_configuration import app_config
from animuse.database.db_connection import db_connection
from animuse.services.guild_config import GuildConfigService
from animuse.services.tracking_store import TrackingStore
from animuse.util.logger import get_logger, handle_exception

logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Guild events are enough: the bot only uses slash commands and buttons."""
    intents = discord.Intents.default()
    intents.guilds = True
    return intents


class Runtime:
    """Everything built at startup that needs an orderly shutdown."""

    def __init__(self, bot: discord.Bot, anilist: AniListClient, scheduler: AiringScheduler,
                 dispatcher: NotificationDispatcher) -> None:
        self.bot = bot
        self.anilist = anilist
        self.scheduler = scheduler
        self.dispatcher = dispatcher


def create_runtime() -> Runtime:
    """Build the bot, the airing pipeline and register the cog."""
    settings = app_config.airing
    bot = discord.Bot(intents=build_intents())

    anilist = AniListClient(
        settings.anilist_url,
        retries=settings.anilist_retries,
        timeout_seconds=settings.request_timeout_seconds,
    )
    store = TrackingStore(db_connection)
    guild_config = GuildConfigService(db_connection)
    dispatcher = NotificationDispatcher(
        bot, store, guild_config, watch_timeout=settings.track_button_timeout_seconds
    )
    poller = BatchPoller(
        anilist,
        store,
        dispatcher,
        selector=DueSetSelector(store, settings.due_window_seconds),
        batch_size=settings.batch_size,
        due_window_seconds=settings.due_window_seconds,
    )
    scheduler = AiringScheduler(
        poller,
        interval_seconds=settings.interval_seconds,
        warmup_seconds=settings.warmup_seconds,
    )

    airing_cog.setup(bot, anilist, store, guild_config, dispatcher, scheduler)
    logger.info("All cogs loaded successfully.")
    return Runtime(bot, anilist, scheduler, dispatcher)


async def shutdown_runtime(runtime: Runtime | None) -> None:
    """Stop the scheduler, close the bot and the AniList session, then the database."""
    if runtime is not None:
        try:
            await runtime.scheduler.stop()
        except Exception as exc:
            logger.exception("Error while stopping the airing scheduler: %s", exc)

        runtime.dispatcher.cancel_watchers()

        if not runtime.bot.is_closed():
            try:
                await runtime.bot.close()
            except Exception as exc:
                logger.exception("Error while closing the Discord client: %s", exc)

        try:
            await runtime.anilist.close()
        except Exception as exc:
            logger.exception("Error while closing the AniList session: %s", exc)

    try:
        await db_connection.close()
    except Exception as exc:
        logger.exception("Error while closing the database: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Open the database, build the runtime and run the bot until it stops."""
    token = load_environment()

    try:
        logger.info("Opening database at %s", app_config.database_path)
        await db_connection.open(app_config.database_path)
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    runtime: Runtime | None = None
    exit_code = 0
    try:
        runtime = create_runtime()
        logger.info("Attempting to connect to Discord…")
        await runtime.bot.start(token)
    except asyncio.CancelledError:
        logger.info("Bot start cancelled; proceeding to shutdown")
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(runtime)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting Animuse…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
