"""CLI entry point for the heart monitor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .ble.stack import BleakStack
from .config import AppConfig, load_config, validate_config
from .logs import NdjsonLogger
from .monitor import HeartRateMonitor

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Heart monitor - stream BLE Heart Rate Measurement notifications"
    )
    parser.add_argument("--config", help="Path to YAML configuration file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--adapter", help="Bluetooth adapter to use (overrides config)")
    parser.add_argument(
        "--scan-timeout",
        type=float,
        help="Stop scanning after this many seconds (default: wait for Enter)",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> AppConfig:
    """Load the config file if given and apply command line overrides."""
    config = load_config(args.config) if args.config else AppConfig()
    if args.adapter:
        config.scan.adapter = args.adapter
    if args.scan_timeout is not None:
        config.scan.timeout_sec = args.scan_timeout
    return config


async def run_monitor(config: AppConfig) -> bool:
    """Run the monitor with the given configuration."""
    event_log = None
    if config.logging.enabled:
        event_log = NdjsonLogger(config.logging.dir, config.logging.file_prefix)
        event_log.mode = config.logging.mode
        event_log.verbose_whitelist.update(config.logging.verbose_whitelist)

    stack = BleakStack(
        adapter=config.scan.adapter,
        connect_timeout_sec=config.session.connect_timeout_sec,
    )
    monitor = HeartRateMonitor(config, stack, event_log=event_log)

    try:
        return await monitor.run()
    finally:
        monitor.stop()
        if event_log:
            event_log.close()


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(args.debug)

    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    try:
        config = resolve_config(args)
        errors = validate_config(config)
    except (ValueError, TypeError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    if errors:
        print("Configuration validation failed:", file=sys.stderr)
        for error in errors:
            print(f"  - {error}", file=sys.stderr)
        sys.exit(1)

    try:
        ok = asyncio.run(run_monitor(config))
    except KeyboardInterrupt:
        print("\nMonitor stopped by user")
        return
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        print(f"Monitor failed: {e}", file=sys.stderr)
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
