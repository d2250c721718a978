"""Configuration source backed by a file on disk."""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

_DEBOUNCE_SECONDS = 0.005


class _FileEventHandler(FileSystemEventHandler):
    """Filters directory events down to changes of one file."""

    def __init__(self, path: str, callback: Callable[[], None]) -> None:
        super().__init__()
        self._path = path
        self._real_path = os.path.realpath(path)
        self._callback = callback
        self._last_key: tuple[str, str, str] | None = None
        self._last_time = 0.0
        self._done = False
        self._lock = threading.Lock()
        self.stop: Callable[[], None] = lambda: None

    def _targets(self) -> set[str]:
        return {self._path, self._real_path}

    def _finish(self) -> None:
        self._done = True
        self.stop()

    def on_any_event(self, event: FileSystemEvent) -> None:
        with self._lock:
            if self._done or event.is_directory:
                return
            src = os.path.normpath(os.fsdecode(event.src_path))
            dest = os.path.normpath(os.fsdecode(getattr(event, "dest_path", "") or ""))
            logger.debug("event is %s %s %s", event.event_type, src, dest)

            key = (event.event_type, src, dest)
            now = time.monotonic()
            if key == self._last_key and now - self._last_time < _DEBOUNCE_SECONDS:
                return
            self._last_key = key
            self._last_time = now

            targets = self._targets()
            kind = event.event_type
            if kind == EVENT_TYPE_MOVED:
                if dest in targets:
                    kind = EVENT_TYPE_CREATED
                elif src not in targets:
                    return
            elif src not in targets:
                return

            if kind == EVENT_TYPE_DELETED:
                self._finish()
                return

            if not os.path.exists(self._path):
                self._finish()
                return
            self._real_path = os.path.realpath(self._path)

            if kind not in (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED):
                return

        self._callback()


class FileProvider:
    """Reads a configuration file and optionally reports changes to it."""

    def __init__(self, path: str | os.PathLike[str], watch: bool = False) -> None:
        self.path = os.path.normpath(os.fspath(path))
        self.watch_enabled = watch

    def read_bytes(self) -> bytes:
        """Return the whole content of the file."""
        return Path(self.path).read_bytes()

    def watch(self, callback: Callable[[], None]):
        """Call callback whenever the file is written or created.

        Watching stops once the file is removed. Returns the running
        observer, which the caller may stop.
        """
        if not os.path.exists(self.path):
            raise FileNotFoundError(self.path)
        handler = _FileEventHandler(self.path, callback)
        directory = os.path.dirname(self.path) or os.curdir
        observer = Observer()
        handler.stop = observer.stop
        observer.schedule(handler, directory, recursive=False)
        observer.start()
        return observer