"""Application entry point and CLI for notification-queue.

Loads configuration, sets up logging, builds a notification manager with
the configured store, registers the bundled sinks and runs the dispatcher
until SIGINT or SIGTERM, then stops gracefully.

Bundled sinks:
- ``socket`` and ``stream``: in-process broadcast sinks
- ``webhook``: HTTP POST to ``webhook.urls`` (only when URLs are configured)
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import NoReturn

from notification_queue.channels.broadcast import BroadcastSink
from notification_queue.channels.webhook import WebhookSink
from notification_queue.config import ConfigurationError, EnvironmentVariableError, load_config
from notification_queue.manager.manager import NotificationManager
from notification_queue.models.enums import Channel
from notification_queue.utils.logging import configure_logging

__all__ = ["async_main", "main", "parse_arguments"]

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 1


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    CLI Arguments:
        --config, -c: Path to the YAML configuration file
        --log-level: Override log level from config
        --no-syslog: Disable syslog integration
    """
    parser = argparse.ArgumentParser(
        prog="notification-queue",
        description="Run a priority notification queue with retrying multi-channel delivery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  notification-queue
  notification-queue --config /etc/notification-queue.yaml
  notification-queue --log-level DEBUG --no-syslog

Environment overrides use NOTIFICATION_QUEUE__SECTION__FIELD, e.g.
  NOTIFICATION_QUEUE__REDIS__URL=redis://localhost:6379/0
        """,
    )

    _ = parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: built-in defaults plus environment)",
        metavar="PATH",
    )

    _ = parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration",
        metavar="LEVEL",
    )

    _ = parser.add_argument(
        "--no-syslog",
        action="store_true",
        help="Disable syslog integration (useful for development)",
    )

    return parser.parse_args(argv)


async def async_main(
    *,
    config_path: Path | None,
    log_level: str | None = None,
    enable_syslog: bool = True,
    shutdown_event: asyncio.Event | None = None,
) -> None:
    """Run the notification manager until shutdown is requested.

    Args:
        config_path: YAML configuration file, or None for defaults
        log_level: Override log level from config
        enable_syslog: Enable syslog integration
        shutdown_event: Event that ends the run; SIGINT and SIGTERM set it

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config = load_config(config_path)

    configure_logging(
        log_level=log_level or config.logging.level,
        enable_syslog=enable_syslog and config.logging.syslog_enabled,
        enable_console=True,
    )
    logger = logging.getLogger(__name__)
    logger.info(
        "notification-queue starting",
        extra={"config_path": str(config_path) if config_path is not None else None},
    )

    shutdown = shutdown_event or asyncio.Event()

    def request_shutdown() -> None:
        if not shutdown.is_set():
            logger.info("Shutdown signal received, requesting graceful shutdown")
            shutdown.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, request_shutdown)

    manager = NotificationManager(config)
    try:
        async with contextlib.AsyncExitStack() as stack:
            manager.register_channel_handler(Channel.SOCKET, BroadcastSink(Channel.SOCKET.value))
            manager.register_channel_handler(Channel.STREAM, BroadcastSink(Channel.STREAM.value))
            if config.webhook.urls:
                webhook = await stack.enter_async_context(
                    WebhookSink(config.webhook.urls, timeout=config.webhook.timeout)
                )
                manager.register_channel_handler(Channel.WEBHOOK, webhook)

            await manager.start()
            _ = await shutdown.wait()
            await manager.stop()
    except Exception:
        logger.exception("Notification manager failed during execution")
        raise
    finally:
        await manager.close()
        for sig in (signal.SIGINT, signal.SIGTERM):
            _ = loop.remove_signal_handler(sig)
        logger.info("notification-queue shutdown complete")


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point.

    Exit Codes:
        0: Clean shutdown
        1: Configuration error or runtime error
    """
    args = parse_arguments(argv)
    config_path_arg: Path | None = args.config  # pyright: ignore[reportAny]  # argparse boundary
    log_level_arg: str | None = args.log_level  # pyright: ignore[reportAny]  # argparse boundary
    no_syslog_arg: bool = args.no_syslog  # pyright: ignore[reportAny]  # argparse boundary

    try:
        asyncio.run(
            async_main(
                config_path=config_path_arg,
                log_level=log_level_arg,
                enable_syslog=not no_syslog_arg,
            )
        )

    except EnvironmentVariableError as exc:
        print(f"Environment variable error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except ConfigurationError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except KeyboardInterrupt:
        print("\nShutdown complete", file=sys.stderr)
        sys.exit(EXIT_SUCCESS)

    except Exception as exc:
        print(f"Unexpected error: {exc}", file=sys.stderr)
        sys.exit(EXIT_RUNTIME_ERROR)

    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
