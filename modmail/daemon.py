"""Modmail daemon - process entry point."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from modmail.adapters.discord_adapter import DiscordBot
from modmail.config import ModmailConfig, load_config, require_runtime
from modmail.core.errors import ConfigurationError
from modmail.core.task_registry import TaskRegistry
from modmail.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


class ModmailDaemon:
    """Runs the Discord bot until a shutdown signal arrives."""

    def __init__(self, config: ModmailConfig) -> None:
        self.config = config
        self.task_registry = TaskRegistry()
        self.bot = DiscordBot(config, task_registry=self.task_registry)
        self.shutdown_event = asyncio.Event()

    async def start(self) -> None:
        await self.bot.start()
        gateway_task = self.bot.gateway_task
        if gateway_task is not None:
            # A gateway that dies on its own (bad token, lost connection) ends the process
            gateway_task.add_done_callback(lambda _task: self.shutdown_event.set())
        logger.info("Modmail daemon started")

    async def stop(self) -> None:
        await self.bot.stop()
        await self.task_registry.shutdown(timeout=5.0)
        logger.info("Modmail daemon stopped")


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="modmail", description="Relay Discord DMs to staff forum threads")
    parser.add_argument("--config", type=Path, default=None, help="Path to modmail.yml")
    parser.add_argument("--log-level", default=None, help="Override MODMAIL_LOG_LEVEL")
    return parser.parse_args(argv)


async def run(config: ModmailConfig) -> None:
    daemon = ModmailDaemon(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, daemon.shutdown_event.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    try:
        await daemon.start()
        await daemon.shutdown_event.wait()
        logger.info("Shutting down...")
    finally:
        try:
            await daemon.stop()
        except Exception as e:  # noqa: BLE001
            logger.error("Error during daemon stop: %s", e)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    args = _parse_args(argv)
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        setup_logging(args.log_level)
        logger.error("%s", e)
        sys.exit(1)

    setup_logging(args.log_level or config.log_level)

    try:
        require_runtime(config)
        asyncio.run(run(config))
    except ConfigurationError as e:
        logger.error("%s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal...")
    except Exception as e:  # noqa: BLE001
        logger.error("Unexpected error: %s", e, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
