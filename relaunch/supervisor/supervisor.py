import enum
import queue
import signal
import logging
import threading
from typing import BinaryIO, Callable, Optional
from relaunch import settings
from relaunch.config import RunConfiguration
from relaunch.errors import WatcherError
from relaunch.log.trace import SILENT, Tracer
from relaunch.watcher import FileWatcher, GlobResolver
from relaunch.supervisor.shutdown import ShutdownSequencer
from relaunch.supervisor.process_utils import ChildProcess, launch_process
from relaunch.signals import RESTART_KINDS, ExternalTermination, FileChanged, RestartSignal, WatcherFault

log = logging.getLogger(__name__)


class RestartOutcome(enum.Enum):
    RESTART = "restart"
    TERMINATE = "terminate"


class Supervisor:
    """
    Runs the configured command and restarts it whenever the watch set changes.

    Exactly one child exists at a time: a new one is spawned only after the
    shutdown sequencer has retired the previous one and drained its output.
    File events, watcher faults and termination requests all arrive on one
    channel, which is the cycle's only decision point.
    """

    def __init__(
        self,
        config: RunConfiguration,
        tracer: Tracer = SILENT,
        resolver: Optional[GlobResolver] = None,
        watcher_factory: Callable[["queue.SimpleQueue"], FileWatcher] = FileWatcher,
        sequencer: Optional[ShutdownSequencer] = None,
        launcher: Callable[..., ChildProcess] = launch_process,
        stdout: Optional[BinaryIO] = None,
        stderr: Optional[BinaryIO] = None,
    ) -> None:
        self.config = config
        self.tracer = tracer
        self.resolver = resolver or GlobResolver(tracer)
        self.watcher_factory = watcher_factory
        self.sequencer = sequencer or ShutdownSequencer(config.shutdown_timeout, tracer)
        self.launcher = launcher
        self.stdout = stdout
        self.stderr = stderr

        # SimpleQueue.put is reentrant, so signal handlers may post to it.
        self.signals: "queue.SimpleQueue[RestartSignal]" = queue.SimpleQueue()
        self.termination_requested = threading.Event()
        self.child: Optional[ChildProcess] = None
        self.watcher: Optional[FileWatcher] = None
        self.cycles = 0

    def request_termination(self, signum: int = signal.SIGTERM) -> None:
        """
        Ends the run after the current child is retired. Safe to call from a
        signal handler or another thread.
        """
        self.termination_requested.set()
        self.signals.put(ExternalTermination(signum))

    def _discard_stale_signals(self) -> None:
        """Drops events left over from the previous cycle's watcher."""
        while True:
            try:
                stale = self.signals.get_nowait()
            except queue.Empty:
                return
            log.debug(f"Discarding stale signal: {stale}")

    def _wait_for_restart_signal(self, watcher: FileWatcher) -> RestartSignal:
        """
        Blocks until the cycle has a reason to end.
        Events of kinds that do not restart the command are skipped.
        """
        while True:
            try:
                sig = self.signals.get(timeout=settings.WATCHER_HEALTH_CHECK_INTERVAL)
            except queue.Empty:
                if not watcher.is_alive():
                    return WatcherFault(WatcherError("file watcher stopped unexpectedly"))
                continue

            if isinstance(sig, FileChanged):
                if sig.kind not in RESTART_KINDS:
                    log.debug(f"Ignoring event: {sig}")
                    continue
                self.tracer.trace("event: %s", sig)
            elif isinstance(sig, ExternalTermination):
                self.tracer.trace("received %s", sig)
            return sig

    def run_cycle(self) -> RestartOutcome:
        """
        Runs one generation of the command.

        Spawns the child, watches the freshly resolved watch set, waits for the
        first reason to stop and retires the child before returning.

        :raises ResolutionError: If the watch set could not be built.
        :raises WatcherError: If the watcher faulted during the cycle.
        :return: Whether the loop should start another cycle.
        """
        child = self.launcher(self.config, self.stdout, self.stderr)
        self.child = child
        self.cycles += 1
        watcher = None
        try:
            watcher = self.watcher_factory(self.signals)
            watcher.add_all(self.resolver.resolve_all(self.config.includes))
            self.watcher = watcher
            reason = self._wait_for_restart_signal(watcher)
        finally:
            self.sequencer.retire(child, watcher)
            self.child = None
            self.watcher = None

        if isinstance(reason, WatcherFault):
            raise WatcherError(f"watcher error: {reason.error}") from reason.error
        if isinstance(reason, ExternalTermination):
            return RestartOutcome.TERMINATE
        log.debug(f"Restarting after {reason}")
        return RestartOutcome.RESTART

    def run(self) -> None:
        """
        Main supervisor loop. Returns once a termination request has been
        handled; fatal errors propagate to the caller.
        """
        while True:
            self._discard_stale_signals()
            # Checked after the discard so a request that arrives now still wakes the wait
            if self.termination_requested.is_set():
                return
            if self.run_cycle() is RestartOutcome.TERMINATE:
                return
