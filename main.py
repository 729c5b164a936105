import sys
import asyncio

# --- Settings/Logging ---
from rankwatch.logging.setup import setup_logging
from rankwatch.config.settings import settings

setup_logging()

from loguru import logger

# --- End Settings/Logging ---

from rankwatch.commands.console import console_loop
from rankwatch.commands.handler import CommandHandler
from rankwatch.delivery.channel import OperatorReporter
from rankwatch.delivery.discord_channel import DiscordChannel
from rankwatch.dispatch.dispatcher import NotificationDispatcher
from rankwatch.rendering.messages import render_notice
from rankwatch.scrapers.leaderboard_scraper import LeaderboardScraper
from rankwatch.service.monitor import Monitor
from rankwatch.storage.json_store import PersistenceError
from rankwatch.storage.snapshot_store import SnapshotStore
from rankwatch.storage.subscriber_registry import SubscriberRegistry


async def main() -> None:
    """Main entry point for the application."""
    logger.info("Starting leaderboard monitor")

    if not settings.discord_bot_token:
        logger.critical("DISCORD_BOT_TOKEN is required. Exiting.")
        return

    store = SnapshotStore(settings.snapshot_path, settings.contests)
    registry = SubscriberRegistry(settings.subscribers_path)
    try:
        store.load()
        registry.load()
    except PersistenceError as e:
        logger.critical(f"Could not restore persisted state: {e}")
        return

    channel = DiscordChannel(settings.discord_bot_token)
    reporter = OperatorReporter(channel, settings.operator_id)
    scraper = LeaderboardScraper(
        str(settings.leaderboard_url),
        settings.contests,
        session_cookie=settings.session_cookie,
        fetch_timeout=settings.fetch_timeout_seconds,
    )
    dispatcher = NotificationDispatcher(
        registry,
        channel,
        reporter,
        top_n=settings.top_n,
        neighbor_window=settings.neighbor_window,
        report_disappearance=settings.report_team_disappearance,
    )
    monitor = Monitor(scraper, store, dispatcher, reporter)

    # The chat client feeds inbound messages to this handler
    commands = CommandHandler(
        registry,
        store,
        top_n=settings.top_n,
        neighbor_window=settings.neighbor_window,
    )
    logger.info(f"Command handler ready for {len(registry)} known subscribers")

    console_task = None
    if settings.console_commands and not settings.operator_id:
        logger.warning("Console commands need OPERATOR_ID to act on behalf of; disabled.")
    elif settings.console_commands:
        # Console commands act on the operator's own subscriptions
        console_task = asyncio.create_task(
            console_loop(commands, sender_id=settings.operator_id)
        )

    try:
        await reporter.notify(render_notice("Leaderboard Bot", "Hey there, I'm alive!"))
        await monitor.run_forever(settings.poll_interval_seconds)
    finally:
        if console_task:
            console_task.cancel()
        await scraper.close()
        await channel.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Unhandled exception in main execution: {e}")
        sys.exit(1)
