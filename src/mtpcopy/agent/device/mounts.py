"""Early wake-up on device mount changes.

This module provides:
- MountWatcher: Watches the directory where device mounts appear (the gvfs
  runtime directory) and sets an event when an entry is created or removed

The watch loop still polls on its own schedule; the watcher only cuts a
wait short, so a device mounted right after a poll is picked up at once.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)


class MountEventHandler(FileSystemEventHandler):
    """Sets the wake-up event when a mount directory comes or goes."""

    def __init__(self, wakeup: threading.Event) -> None:
        super().__init__()
        self._wakeup = wakeup

    def _handle_event(self, event: FileSystemEvent) -> None:
        if not isinstance(event, DirCreatedEvent | DirDeletedEvent | DirMovedEvent):
            return
        src_path = event.src_path
        if isinstance(src_path, bytes):
            src_path = src_path.decode("utf-8", errors="replace")
        logger.debug("Mount change detected: %s", src_path)
        self._wakeup.set()

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._handle_event(event)


class MountWatcher:
    """Watches a mount parent directory for appearing and vanishing devices.

    If the directory does not exist (no gvfs session, or a FUSE setup
    without a common parent) the watcher stays idle and the loop relies
    on polling alone.
    """

    def __init__(self, watch_path: Path, wakeup: threading.Event) -> None:
        """Initialize the mount watcher.

        Args:
            watch_path: Directory where device mounts appear.
            wakeup: Event set on every mount change.
        """
        self._watch_path = Path(watch_path)
        self._wakeup = wakeup
        self._handler = MountEventHandler(wakeup)
        self._observer: BaseObserver | None = None

    @property
    def watch_path(self) -> Path:
        """Get the watched directory path."""
        return self._watch_path

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._observer is not None

    def start(self) -> bool:
        """Start watching.

        Returns:
            True if the watcher is running, False if the directory is missing.
        """
        if self._observer is not None:
            return True

        if not self._watch_path.is_dir():
            logger.debug("Not watching %s: directory does not exist", self._watch_path)
            return False

        observer = Observer()
        observer.schedule(self._handler, str(self._watch_path), recursive=False)
        try:
            observer.start()
        except OSError as e:
            logger.warning("Cannot watch %s, relying on polling: %s", self._watch_path, e)
            return False
        self._observer = observer
        logger.debug("Watching %s for device mounts", self._watch_path)
        return True

    def stop(self) -> None:
        """Stop watching."""
        if self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None

    def __enter__(self) -> MountWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
