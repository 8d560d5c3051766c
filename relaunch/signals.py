"""
The reasons a supervisor cycle ends.

File watchers, OS signal handlers and health checks all post a RestartSignal
into the supervisor's channel, so the control loop has a single decision point.
"""
import enum
import signal
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Union

log = logging.getLogger(__name__)

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class EventKind(enum.Enum):
    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    OTHER = "other"


# Only these kinds restart the command.
RESTART_KINDS = frozenset({EventKind.CREATE, EventKind.WRITE, EventKind.REMOVE, EventKind.RENAME})


@dataclass(frozen=True)
class FileChanged:
    kind: EventKind
    path: str

    def __str__(self) -> str:
        return f"{self.kind.name} {self.path!r}"


@dataclass(frozen=True)
class ExternalTermination:
    signum: int

    def __str__(self) -> str:
        try:
            return signal.Signals(self.signum).name
        except ValueError:
            return f"signal {self.signum}"


@dataclass(frozen=True)
class WatcherFault:
    error: Exception


RestartSignal = Union[FileChanged, ExternalTermination, WatcherFault]


def install_termination_handlers(on_termination: Callable[[int], None]) -> Dict[int, object]:
    """
    Routes SIGINT and SIGTERM delivered to the supervisor into `on_termination`.
    Must be called from the main thread.

    :param on_termination: Called with the signal number.
    :return: The previous handlers, for `restore_handlers`.
    """
    def _handler(signum, frame):
        on_termination(signum)

    previous = {}
    for signum in TERMINATION_SIGNALS:
        previous[signum] = signal.signal(signum, _handler)
    log.debug(f"Installed termination handlers for {[signal.Signals(s).name for s in TERMINATION_SIGNALS]}")
    return previous


def restore_handlers(previous: Dict[int, object]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)
