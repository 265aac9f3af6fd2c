#!/usr/bin/env python3
"""
FileWatcher: watchdog event handler that forwards changes of one file into
an asyncio queue.

watchdog calls the handler on its observer thread; the handler only hands
the notification over to the event loop, where a single consumer processes
notifications one at a time.
"""

import asyncio
import logging
import os

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer


logger = logging.getLogger('ufw_reporter.watcher')


class ChangeHandler(FileSystemEventHandler):
    def __init__(self, path: str, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue):
        super().__init__()
        self._path = os.path.abspath(path)
        self._loop = loop
        self._queue = queue

    def _matches(self, event) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, 'dest_path', '')]
        return any(p and os.path.abspath(p) == self._path for p in paths)

    def _forward(self, event):
        if self._matches(event):
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event.event_type)

    def on_modified(self, event):
        self._forward(event)

    def on_created(self, event):
        self._forward(event)

    def on_moved(self, event):
        self._forward(event)


class FileWatcher:
    """
    Watches a single file and exposes its change notifications as a queue.

    Usage:
        watcher = FileWatcher('/var/log/ufw.log')
        watcher.start()
        while True:
            await watcher.changes.get()
            ...
        watcher.stop()
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        self.changes: asyncio.Queue = asyncio.Queue()
        self._observer = None

    def start(self, loop: asyncio.AbstractEventLoop = None):
        loop = loop or asyncio.get_running_loop()
        handler = ChangeHandler(self.path, loop, self.changes)
        self._observer = Observer()
        # Watch the directory so rotation (new inode) is still seen
        self._observer.schedule(handler, os.path.dirname(self.path), recursive=False)
        self._observer.start()
        logger.debug(f"Watching {self.path}")

    def stop(self):
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def drain(self) -> int:
        """Drop queued notifications that a read already covers."""
        dropped = 0
        while not self.changes.empty():
            self.changes.get_nowait()
            dropped += 1
        return dropped
