import os
import sys
import enum
import time
import psutil
import signal
import logging
import subprocess
from typing import TYPE_CHECKING, BinaryIO, List, Optional
from relaunch import settings
from relaunch.errors import ProcessLaunchError
from relaunch.supervisor.relay import OutputRelay

if TYPE_CHECKING:
    from relaunch.config import RunConfiguration

log = logging.getLogger(__name__)

GRACEFUL = signal.SIGTERM
FORCEFUL = signal.SIGKILL


class ProcessState(enum.Enum):
    RUNNING = "running"
    TERMINATING = "terminating"
    EXITED = "exited"


class ChildProcess:
    """
    One execution of the configured command.

    The command runs as the leader of its own process group, so signals sent
    through `send_signal` reach it and everything it spawned while leaving the
    supervisor alone.
    """

    def __init__(self, popen: subprocess.Popen, relays: List[OutputRelay]) -> None:
        self.popen = popen
        self.pid = popen.pid
        # start_new_session makes the child a group leader
        self.pgid = popen.pid
        self.relays = relays
        self.state = ProcessState.RUNNING
        self.started_at = time.monotonic()

    @property
    def returncode(self) -> Optional[int]:
        return self.popen.returncode

    def send_signal(self, sig: int) -> None:
        """
        Sends a signal to the whole process group.

        :param sig: GRACEFUL or FORCEFUL.
        :raises OSError: If the signal could not be delivered.
        """
        os.killpg(self.pgid, sig)

    def wait(self, timeout: Optional[float] = None) -> int:
        """
        Waits for the group leader to exit.

        :raises subprocess.TimeoutExpired: If it is still running after `timeout`.
        :return: The leader's exit status.
        """
        returncode = self.popen.wait(timeout)
        self.state = ProcessState.EXITED
        return returncode

    def group_members(self) -> List[psutil.Process]:
        """
        Returns the live processes in this child's group, excluding the leader.
        Descendants that were reparented after their parent exited are included.
        """
        members = []
        for proc in psutil.process_iter():
            if proc.pid == self.pid:
                continue
            try:
                if os.getpgid(proc.pid) != self.pgid:
                    continue
                if proc.status() == psutil.STATUS_ZOMBIE:
                    continue
            except (OSError, psutil.Error):
                continue
            members.append(proc)
        return members

    def join_relays(self, timeout: Optional[float] = None) -> None:
        """Blocks until both relays have drained their pipes, or each has had `timeout` seconds."""
        for relay in self.relays:
            relay.join(timeout)

    def close(self) -> None:
        """Closes the captured pipes and reaps the leader if it has exited."""
        for relay in self.relays:
            if relay.is_alive():
                # Still blocked in a read; the relay closes its pipe when it ends
                log.warning(f"Output of PID {self.pid} is still open on {relay.name}; the process may be orphaned.")
                continue
            relay.pipe.close()
        if self.popen.poll() is not None:
            self.state = ProcessState.EXITED


def launch_process(
    config: "RunConfiguration",
    stdout: Optional[BinaryIO] = None,
    stderr: Optional[BinaryIO] = None,
) -> ChildProcess:
    """
    Starts the configured command in a new process group and relays its output.

    :param config: The run configuration.
    :param stdout: Where the child's stdout goes. Defaults to the supervisor's stdout.
    :param stderr: Where the child's stderr goes. Defaults to the supervisor's stderr.
    :raises ProcessLaunchError: If the shell could not be started.
    :return: The running child.
    """
    args = [config.shell, "-c", config.command]
    try:
        p = subprocess.Popen(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        log.critical(f"Failed to start command {config.command!r}: {e}", exc_info=True)
        raise ProcessLaunchError(f"start command: {e}") from e

    tag = settings.RELAY_TAG if config.verbose else None
    relays = [
        OutputRelay("stdout", p.stdout, stdout if stdout is not None else sys.stdout.buffer, tag).start(),
        OutputRelay("stderr", p.stderr, stderr if stderr is not None else sys.stderr.buffer, tag).start(),
    ]
    log.debug(f"Started command with PID: {p.pid}")
    return ChildProcess(p, relays)
