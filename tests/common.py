from __future__ import annotations

import io
import threading
import time
from typing import Callable, List

from relaunch.config import RunConfiguration


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def make_config(command: str, includes=("",), verbose: bool = False, shutdown_timeout: float = 2.0) -> RunConfiguration:
    return RunConfiguration(
        command=command,
        includes=tuple(includes),
        verbose=verbose,
        shutdown_timeout=shutdown_timeout,
        shell="/bin/sh",
    )


class LockedSink(io.BytesIO):
    """A BytesIO that can be read while a relay thread writes to it."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()

    def write(self, data):
        with self._lock:
            return super().write(data)

    def getvalue(self):
        with self._lock:
            return super().getvalue()


class FakeWatcher:
    """Stands in for FileWatcher; tests post signals to the channel directly."""

    def __init__(self, channel) -> None:
        self.channel = channel
        self.paths: List[str] = []
        self.alive = True
        self.registered = False
        self.closed = False

    def add_all(self, paths) -> None:
        self.paths.extend(paths)
        self.registered = True

    def is_alive(self) -> bool:
        return self.alive and not self.closed

    def close(self) -> None:
        self.closed = True


def start_in_thread(target) -> threading.Thread:
    errors: list = []

    def _run():
        try:
            target()
        except BaseException as e:  # surfaced by the test via thread.errors
            errors.append(e)

    thread = threading.Thread(target=_run, daemon=True)
    thread.errors = errors
    thread.start()
    return thread
