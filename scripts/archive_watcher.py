#!/usr/bin/env python3
"""Run the detection archiver without the HTTP API.

Watches the detection directories, registers triggered images with the
archive manager and flushes pending events when interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from app.utils.config import Settings, TriggerConfigError, get_settings, load_triggers
from domains.archive.manager import ArchiveManager
from domains.archive.watcher import DetectionEventHandler, DetectionWatcher


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        description="Archive detection images per motion event.",
    )
    parser.add_argument(
        "--watch",
        type=Path,
        action="append",
        default=[],
        help="Directory to watch for detection images (can be repeated).",
    )
    parser.add_argument(
        "--storage-root",
        type=Path,
        default=None,
        help="Where archive folders are created (default: settings).",
    )
    parser.add_argument(
        "--triggers",
        type=Path,
        default=None,
        help="JSON file with trigger definitions (default: settings).",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between archive passes (default: settings).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Emit debug logs for every file operation.",
    )

    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    """Apply CLI overrides on top of the environment settings."""

    overrides = {}
    if args.watch:
        overrides["watch_dirs"] = ",".join(str(p) for p in args.watch)
    if args.storage_root:
        overrides["storage_root"] = args.storage_root
    if args.triggers:
        overrides["triggers_file"] = args.triggers
    if args.interval is not None:
        overrides["archive_interval"] = args.interval
    if args.verbose:
        overrides["log_level"] = "DEBUG"

    return get_settings().model_copy(update=overrides)


async def run(settings: Settings) -> int:
    """Run watcher and archiver until SIGINT/SIGTERM."""

    try:
        triggers = load_triggers(settings.triggers_file)
    except TriggerConfigError as e:
        logger.error(str(e))
        return 1

    loop = asyncio.get_running_loop()
    manager = ArchiveManager(settings)
    await manager.initialize()

    handler = DetectionEventHandler(manager, triggers, loop, settings.get_image_extensions())
    watcher = DetectionWatcher(handler, settings.get_watch_dirs())

    if not watcher.start_watching():
        logger.error("No valid directories to monitor.")
        watcher.stop_watching()
        await manager.shutdown()
        return 1

    stop_event = asyncio.Event()

    def _signal_handler(signum):
        logger.info(f"Received signal {signum}, shutting down.")
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, _signal_handler, signum)

    try:
        await stop_event.wait()
    finally:
        watcher.stop_watching()
        await manager.shutdown()

    logger.info("Archive watcher stopped.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI script."""

    args = parse_args(argv)
    settings = build_settings(args)

    logger.remove()
    logger.add(
        sys.stderr,
        format="{time:YYYY-MM-DD HH:mm:ss} [{level}] {message}",
        level=settings.log_level.upper(),
    )

    return asyncio.run(run(settings))


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
