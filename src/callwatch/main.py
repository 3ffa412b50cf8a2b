"""
Process entry point.

Loads configuration, prepares the database, wires the object graph and runs
the scheduler alongside the Telegram command surface until SIGINT/SIGTERM.
SIGHUP re-reads the dynamic configuration keys.
``--once`` runs a single check and exits (non-zero on fetch failure).
"""

import argparse
import asyncio
import signal
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import structlog

from .config.manager import ConfigManager, initialize_config
from .gateway.broadcast import BroadcastDispatcher
from .gateway.commands import CommandService, CooldownRegistry
from .gateway.ntfy import NtfyPublisher
from .gateway.telegram_client import TelegramClient
from .monitor.pipeline import CheckPipeline, CheckStatus
from .monitor.scheduler import CheckScheduler
from .observability.logging_config import configure_logging, on_config_updated
from .persistence.db import DatabaseManager, set_db_manager
from .persistence.subscribers import SubscriberRegistry
from .sources.playwright_source import PlaywrightSnapshotSource

logger = structlog.get_logger(__name__)


def build_source(config: ConfigManager) -> PlaywrightSnapshotSource:
    return PlaywrightSnapshotSource(
        target_url=config.get("monitor.target_url"),
        target_text=config.get("monitor.target_text"),
        marker_selector=config.get("monitor.marker_selector"),
        base_url=config.get("monitor.base_url"),
        documents_url=config.get("monitor.documents_url"),
        documents_selector=config.get("monitor.documents_selector"),
        screenshot_path=config.get("monitor.screenshot_path"),
    )


def build_dispatcher(
    config: ConfigManager,
    registry: SubscriberRegistry,
    telegram: TelegramClient,
) -> BroadcastDispatcher:
    secondary = None
    if config.get("ntfy.enabled") and config.get("ntfy.topic"):
        secondary = NtfyPublisher(
            base_url=config.get("ntfy.base_url"),
            timeout_seconds=config.get("ntfy.timeout_seconds"),
        )
    return BroadcastDispatcher(
        registry=registry,
        transport=telegram,
        send_timeout_seconds=config.get("telegram.send_timeout_seconds"),
        secondary=secondary,
        secondary_topic=config.get("ntfy.topic"),
        secondary_priority=config.get("ntfy.priority"),
        secondary_tags=config.get("ntfy.tags"),
    )


def make_runtime_config_handler(
    pipeline: CheckPipeline,
    commands: CommandService,
    dispatcher: BroadcastDispatcher,
) -> Callable[[str, Any], None]:
    """ConfigManager subscriber applying hot-reloaded keys to the live objects."""

    def apply_runtime_config(key: str, value: Any) -> None:
        if key == "monitor.fetch_timeout_seconds":
            pipeline.fetch_timeout_seconds = value
            commands.fetch_timeout_seconds = value
        elif key == "commands.status_cooldown_seconds":
            commands.cooldown.window_seconds = value
        elif key == "telegram.send_timeout_seconds":
            dispatcher.send_timeout_seconds = value
        elif key == "ntfy.priority":
            dispatcher.secondary_priority = value
        elif key == "ntfy.tags":
            dispatcher.secondary_tags = list(value)
        elif key == "ntfy.timeout_seconds" and dispatcher.secondary is not None:
            dispatcher.secondary.timeout_seconds = value

    return apply_runtime_config


async def reload_config(config: ConfigManager) -> None:
    """SIGHUP handler body: re-read dynamic config, keeping current values on error."""
    try:
        await config.reload_dynamic_config()
    except (ValueError, OSError) as e:
        logger.error("config_reload_failed", error=str(e), error_type=type(e).__name__)


async def run(config: ConfigManager, once: bool = False) -> int:
    token = config.get("telegram.bot_token")
    admin_id = config.get("telegram.admin_chat_id")
    if not token or not admin_id:
        logger.error(
            "missing_required_config",
            required=["telegram.bot_token", "telegram.admin_chat_id"],
        )
        return 1

    db_manager = DatabaseManager(config.get("database.path"))
    await db_manager.init_db()
    set_db_manager(db_manager)

    registry = SubscriberRegistry(admin_id)
    await registry.load()

    source = build_source(config)
    fetch_timeout = config.get("monitor.fetch_timeout_seconds")
    commands = CommandService(
        source=source,
        registry=registry,
        cooldown=CooldownRegistry(config.get("commands.status_cooldown_seconds")),
        fetch_timeout_seconds=fetch_timeout,
    )
    telegram = TelegramClient(token, commands=None if once else commands)
    dispatcher = build_dispatcher(config, registry, telegram)
    pipeline = CheckPipeline(
        source=source,
        dispatcher=dispatcher,
        source_link=config.get("monitor.source_link"),
        fetch_timeout_seconds=fetch_timeout,
    )

    try:
        await telegram.start()
    except Exception as e:
        # Broadcast sends will fail per recipient; checks keep running
        logger.error("telegram_launch_failed", error=str(e), error_type=type(e).__name__)

    try:
        if once:
            outcome = await pipeline.run_check()
            return 1 if outcome.status is CheckStatus.ERROR else 0

        scheduler = CheckScheduler(
            pipeline.run_check,
            interval_seconds=config.get("scheduler.check_interval_minutes") * 60,
        )

        config.subscribe(scheduler.on_config_updated)
        config.subscribe(on_config_updated)
        config.subscribe(make_runtime_config_handler(pipeline, commands, dispatcher))

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                pass

        reload_tasks: set[asyncio.Task] = set()

        def _on_sighup():
            task = asyncio.create_task(reload_config(config), name="config-reload")
            reload_tasks.add(task)
            task.add_done_callback(reload_tasks.discard)

        if hasattr(signal, "SIGHUP"):
            loop.add_signal_handler(signal.SIGHUP, _on_sighup)

        await scheduler.start()
        logger.info(
            "callwatch_running",
            interval_minutes=config.get("scheduler.check_interval_minutes"),
            subscribers=registry.count(),
        )
        await stop_event.wait()
        logger.info("shutdown_requested")
        await scheduler.stop()
        return 0
    finally:
        await telegram.stop()
        await db_manager.close()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="callwatch", description="Watch a job listing and notify subscribers.")
    parser.add_argument("--config", type=Path, default=None, help="TOML config file (default: config/default.toml)")
    parser.add_argument("--env-file", type=Path, default=None, help=".env file (default: .env)")
    parser.add_argument("--once", action="store_true", help="run a single check and exit")
    args = parser.parse_args(argv)

    config = initialize_config(args.config, args.env_file)
    configure_logging(config.get("logging.level"), config.get("logging.file_path"))
    logger.info("config_loaded", config=config.redacted())

    return asyncio.run(run(config, once=args.once))


if __name__ == "__main__":
    sys.exit(main())
