import time
import logging
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional
from relaunch import settings
from relaunch.log.trace import SILENT, Tracer
from relaunch.supervisor.process_utils import FORCEFUL, GRACEFUL, ProcessState

if TYPE_CHECKING:
    from relaunch.supervisor.process_utils import ChildProcess
    from relaunch.watcher import FileWatcher

log = logging.getLogger(__name__)

GROUP_POLL_INTERVAL = 0.05  # seconds


@dataclass(frozen=True)
class ShutdownReport:
    forced: bool
    returncode: Optional[int]


class ShutdownSequencer:
    """
    Retires one child: SIGTERM to its process group, SIGKILL if the group is
    still around after the timeout, then drains its output and releases the
    cycle's watcher.
    """

    def __init__(self, timeout: float = settings.GRACEFUL_SHUTDOWN_TIMEOUT, tracer: Tracer = SILENT) -> None:
        self.timeout = timeout
        self.tracer = tracer

    def _terminate(self, child: "ChildProcess") -> None:
        self.tracer.trace("send SIGTERM to pid(%d)", -child.pgid)
        try:
            child.send_signal(GRACEFUL)
        except OSError as e:
            self.tracer.trace("terminate failed: %s", e)

    def _wait_for_group(self, child: "ChildProcess") -> List[int]:
        """
        Waits up to the timeout for the leader and the rest of its group.

        :return: PIDs still alive when the timeout expired.
        """
        deadline = time.monotonic() + self.timeout
        try:
            child.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            return [child.pid]

        # The rest of the group may have been reparented, so poll membership
        while True:
            alive = child.group_members()
            if not alive or time.monotonic() >= deadline:
                return [proc.pid for proc in alive]
            time.sleep(GROUP_POLL_INTERVAL)

    def _forceful_kill(self, child: "ChildProcess", alive: List[int]) -> bool:
        """Kills the group. Failure is reported but never raised.

        :return: True if the kill signal was delivered.
        """
        log.debug(f"{len(alive)} processes did not terminate gracefully: {alive}")
        self.tracer.trace("send SIGKILL to pid(%d)", -child.pgid)
        try:
            child.send_signal(FORCEFUL)
        except OSError as e:
            log.warning(f"kill failed: {e}")
            return False
        return True

    def _reap(self, child: "ChildProcess") -> None:
        try:
            child.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            log.warning(f"pid {child.pid} still running after SIGKILL")

    def retire(self, child: "ChildProcess", watcher: Optional["FileWatcher"] = None) -> ShutdownReport:
        """
        Runs the full shutdown sequence for one child.

        :param child: The child to retire.
        :param watcher: The watcher of the child's cycle, if one was created.
        :return: Whether the kill was needed and the leader's exit status.
        """
        child.state = ProcessState.TERMINATING
        self._terminate(child)

        alive = self._wait_for_group(child)
        killed = self._forceful_kill(child, alive) if alive else True
        if alive and killed:
            self._reap(child)

        # The relays reach end-of-stream once every writer has exited. If the
        # kill was not delivered they may never get there.
        child.join_relays(None if killed else self.timeout)
        child.close()
        if watcher is not None:
            watcher.close()

        return ShutdownReport(forced=bool(alive), returncode=child.returncode)
