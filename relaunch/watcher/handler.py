import os
import queue
import logging
from typing import Iterable, Optional, Set
from watchdog.observers import Observer
from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from relaunch.errors import WatchRegistrationError
from relaunch.signals import EventKind, FileChanged

log = logging.getLogger(__name__)

_EVENT_KINDS = {
    EVENT_TYPE_CREATED: EventKind.CREATE,
    EVENT_TYPE_MODIFIED: EventKind.WRITE,
    EVENT_TYPE_DELETED: EventKind.REMOVE,
    EVENT_TYPE_MOVED: EventKind.RENAME,
}


def event_kind(event: FileSystemEvent) -> EventKind:
    """Maps a watchdog event onto the supervisor's event kinds."""
    return _EVENT_KINDS.get(event.event_type, EventKind.OTHER)


class WatchSetHandler(FileSystemEventHandler):
    """
    A watchdog event handler that forwards events touching the watch set.

    Directories in the watch set are watched as a whole, non-recursively.
    Files are watched through their parent directory, so events for sibling
    files that were never resolved are dropped here.
    """

    def __init__(self, channel: "queue.Queue"):
        super().__init__()
        self.channel = channel
        self.directories: Set[str] = set()
        self.files: Set[str] = set()

    def matches(self, path) -> Optional[str]:
        """
        Returns the normalized path if it belongs to the watch set, else None.

        :param path: A path as reported by watchdog (str or bytes).
        """
        if not path:
            return None
        path = os.path.abspath(os.fsdecode(path))
        if path in self.files or path in self.directories or os.path.dirname(path) in self.directories:
            return path
        return None

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Called by watchdog on any file change in a scheduled directory."""
        for candidate in (event.src_path, getattr(event, "dest_path", "")):
            path = self.matches(candidate)
            if path:
                self.channel.put(FileChanged(event_kind(event), path))
                return


class FileWatcher:
    """
    Watches one cycle's watch set and posts FileChanged signals to a channel.

    The observer is started on construction so that registration errors
    surface from `add` rather than later from the observer thread.
    """

    def __init__(self, channel: "queue.Queue") -> None:
        self.handler = WatchSetHandler(channel)
        self.observer = Observer()
        self.observer.start()
        self._scheduled: Set[str] = set()
        self._closed = False

    def add(self, path: str) -> None:
        """
        Registers one resolved path.

        :param path: A file or directory that exists.
        :raises WatchRegistrationError: If the path is gone or cannot be watched.
        """
        abspath = os.path.abspath(path)
        if not os.path.exists(abspath):
            raise WatchRegistrationError(path, FileNotFoundError(f"no such file or directory: {abspath}"))

        if os.path.isdir(abspath):
            directory = abspath
            self.handler.directories.add(abspath)
        else:
            directory = os.path.dirname(abspath)
            self.handler.files.add(abspath)

        if directory in self._scheduled:
            return
        try:
            self.observer.schedule(self.handler, directory, recursive=False)
        except OSError as e:
            raise WatchRegistrationError(path, e) from e
        self._scheduled.add(directory)
        log.debug(f"Scheduled watch on {directory}")

    def add_all(self, paths: Iterable[str]) -> None:
        for path in paths:
            self.add(path)

    def is_alive(self) -> bool:
        """True while the observer and every emitter thread are running."""
        if self._closed or not self.observer.is_alive():
            return False
        return all(emitter.is_alive() for emitter in self.observer.emitters)

    def close(self) -> None:
        """Stops watching. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.observer.stop()
        self.observer.join()
        log.debug("File watcher stopped.")
