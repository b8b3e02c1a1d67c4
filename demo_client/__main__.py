"""Command line entry point: ``python -m demo_client``."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from demo_client.auto import tracing
from demo_client.client import RequestLoop
from demo_client.config import load_config
from demo_client.correlation import configure_logging
from demo_client.errors import ConfigError, InitializationError, RequestError

logger = logging.getLogger("demo_client")


def _non_negative_int(value: str) -> int:
    count = int(value)
    if count < 0:
        raise argparse.ArgumentTypeError(f"must be zero or more, got {count}")
    return count


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="demo-client",
        description="Send traced requests to the demo server and export spans over OTLP.",
    )
    parser.add_argument("--config", default=None, help="Path to a demo_client.toml file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Root log level (default: INFO)",
    )
    parser.add_argument(
        "--iterations",
        type=_non_negative_int,
        default=None,
        help="Stop after this many requests (default: run until interrupted)",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=None,
        help="Exit on the first failed request instead of continuing",
    )
    return parser.parse_args(argv)


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def _stop(signum, frame):
        logger.info("Received signal %d, stopping after the current request", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    configure_logging(getattr(logging, args.log_level))

    try:
        config = load_config(config_file=args.config, fail_fast=args.fail_fast)
    except ConfigError as e:
        logger.critical("Invalid configuration: %s", e)
        return 2

    stop_event = threading.Event()
    _install_signal_handlers(stop_event)

    try:
        with tracing(config) as telemetry:
            RequestLoop(telemetry).run(stop_event, max_iterations=args.iterations)
    except InitializationError as e:
        logger.critical("%s", e)
        return 1
    except RequestError as e:
        logger.critical("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
