"""
Detection image watcher.

Monitors the camera output directories and hands every new detection
image that matches a trigger to the archive manager. Uses the watchdog
library for cross-platform file system event monitoring.
"""

import asyncio
import fnmatch
from pathlib import Path
from typing import Iterable, List, Optional

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from app.models.schemas import TriggerConfig
from app.utils.helpers import is_hidden, normalise_path, should_exclude_path
from domains.archive.manager import ArchiveManager


class DetectionEventHandler(FileSystemEventHandler):
    """Forward new detection images to the archive manager."""

    def __init__(
        self,
        manager: ArchiveManager,
        triggers: List[TriggerConfig],
        loop: asyncio.AbstractEventLoop,
        extensions: Iterable[str],
    ):
        """
        Initialize event handler.

        Args:
            manager: Archive manager to register files with
            triggers: Triggers to match file names against
            loop: Event loop the manager runs on
            extensions: Image extensions to react to
        """
        super().__init__()
        self.manager = manager
        self.triggers = triggers
        self.loop = loop
        self.extensions = {e.lower() for e in extensions}

    def should_process(self, path: str) -> bool:
        """
        Check if path should be processed.

        Args:
            path: File path

        Returns:
            True if should process, False otherwise
        """
        path_obj = Path(path)

        if is_hidden(path_obj) or should_exclude_path(path_obj):
            return False

        # Files already in archive storage
        if normalise_path(path_obj).is_relative_to(normalise_path(Path(self.manager.storage_root))):
            return False

        return path_obj.suffix.lower() in self.extensions

    def match_trigger(self, path: str) -> Optional[TriggerConfig]:
        """Return the first trigger whose pattern matches the file name."""
        name = Path(path).name
        for trigger in self.triggers:
            if fnmatch.fnmatch(name, trigger.watch_pattern):
                return trigger
        return None

    def handle_file(self, path: str):
        if not self.should_process(path):
            return

        trigger = self.match_trigger(path)
        if trigger is None:
            logger.debug(f"No trigger for {path}")
            return

        logger.info(f"Detection image {path} matched trigger {trigger.name}")
        self.loop.call_soon_threadsafe(self.manager.process_trigger, path, trigger)

    def on_created(self, event: FileSystemEvent):
        """Handle file creation."""
        if event.is_directory:
            return
        self.handle_file(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        """Handle files renamed into a watched directory."""
        if event.is_directory:
            return
        self.handle_file(event.dest_path)


class DetectionWatcher:
    """Watchdog orchestrator for the detection directories."""

    def __init__(self, handler: DetectionEventHandler, watch_dirs: Iterable[Path]):
        self.handler = handler
        self.watch_dirs = set(watch_dirs)
        self.observer = Observer()

    def start_watching(self) -> int:
        """
        Start watching all configured directories.

        Returns:
            Number of directories being watched
        """
        watched = 0
        for watch_dir in self.watch_dirs:
            if not watch_dir.is_dir():
                logger.warning(f"Watch directory does not exist: {watch_dir}")
                continue
            try:
                self.observer.schedule(self.handler, str(watch_dir), recursive=True)
                logger.success(f"Started watching: {watch_dir}")
                watched += 1
            except OSError as e:
                logger.error(f"Failed to watch {watch_dir}: {e}")

        self.observer.start()
        return watched

    def stop_watching(self):
        """Stop watching."""
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join()
        logger.info("Detection watcher stopped")
