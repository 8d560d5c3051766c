from __future__ import annotations

import sys
import threading
import time

import pytest

from relaunch.errors import GlobPatternError, WatcherError
from relaunch.signals import EventKind, FileChanged, WatcherFault
from relaunch.supervisor import RestartOutcome, Supervisor
from relaunch.supervisor.process_utils import ProcessState, launch_process
from relaunch.watcher import FileWatcher
from tests.common import FakeWatcher, LockedSink, make_config, start_in_thread, wait_until

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="process groups are POSIX only")


class Recorder:
    """Wraps launch_process and a watcher factory to keep every child and watcher."""

    def __init__(self, watcher_cls=FakeWatcher) -> None:
        self.children = []
        self.watchers = []
        self.watcher_cls = watcher_cls

    def launch(self, config, stdout, stderr):
        child = launch_process(config, stdout, stderr)
        self.children.append(child)
        return child

    def watcher(self, channel):
        watcher = self.watcher_cls(channel)
        self.watchers.append(watcher)
        return watcher

    def registered(self, count: int) -> bool:
        return len(self.watchers) == count and self.watchers[-1].registered


def _supervisor(config, recorder, **kwargs) -> Supervisor:
    kwargs.setdefault("stdout", LockedSink())
    kwargs.setdefault("stderr", LockedSink())
    return Supervisor(config, launcher=recorder.launch, watcher_factory=recorder.watcher, **kwargs)


def test_termination_before_first_cycle_spawns_nothing():
    recorder = Recorder()
    supervisor = _supervisor(make_config("echo hi"), recorder)

    supervisor.request_termination()
    supervisor.run()

    assert supervisor.cycles == 0
    assert recorder.children == []


def test_write_event_restarts_and_other_kinds_are_ignored():
    recorder = Recorder()
    supervisor = _supervisor(make_config("sleep 30"), recorder)
    thread = start_in_thread(supervisor.run)

    assert wait_until(lambda: recorder.registered(1))
    supervisor.signals.put(FileChanged(EventKind.OTHER, "a.txt"))
    time.sleep(0.3)
    assert supervisor.cycles == 1

    supervisor.signals.put(FileChanged(EventKind.WRITE, "a.txt"))
    assert wait_until(lambda: recorder.registered(2))
    assert supervisor.cycles == 2

    supervisor.request_termination()
    thread.join(10)

    assert not thread.is_alive()
    assert thread.errors == []
    assert supervisor.cycles == 2
    assert all(w.closed for w in recorder.watchers)
    assert all(c.state is ProcessState.EXITED for c in recorder.children)


@pytest.mark.parametrize("kind", [EventKind.CREATE, EventKind.REMOVE, EventKind.RENAME])
def test_every_change_kind_restarts(kind):
    recorder = Recorder()
    supervisor = _supervisor(make_config("sleep 30"), recorder)
    supervisor.signals.put(FileChanged(kind, "x"))

    assert supervisor.run_cycle() is RestartOutcome.RESTART
    assert recorder.children[0].state is ProcessState.EXITED
    assert supervisor.child is None


def test_at_most_one_child_runs_and_output_drains_before_next_spawn():
    recorder = Recorder()
    supervisor = _supervisor(make_config("echo start; sleep 30"), recorder)
    max_running = []
    stop_sampling = threading.Event()

    def sample():
        while not stop_sampling.is_set():
            max_running.append(sum(1 for c in list(recorder.children) if c.state is ProcessState.RUNNING))
            time.sleep(0.005)

    sampler = threading.Thread(target=sample, daemon=True)
    sampler.start()
    thread = start_in_thread(supervisor.run)

    for generation in range(1, 4):
        assert wait_until(lambda: recorder.registered(generation))
        supervisor.signals.put(FileChanged(EventKind.WRITE, "a.txt"))
    assert wait_until(lambda: recorder.registered(4))
    supervisor.request_termination()
    thread.join(10)
    stop_sampling.set()
    sampler.join(5)

    assert thread.errors == []
    assert max(max_running) <= 1
    for old, new in zip(recorder.children, recorder.children[1:]):
        assert all(relay.finished_at <= new.started_at for relay in old.relays)
    assert supervisor.stdout.getvalue() == b"start\n" * 4


def test_empty_include_runs_once_until_terminated():
    recorder = Recorder(watcher_cls=FileWatcher)
    supervisor = _supervisor(make_config("echo hi", includes=("",)), recorder)
    thread = start_in_thread(supervisor.run)

    assert wait_until(lambda: supervisor.stdout.getvalue() == b"hi\n")
    time.sleep(0.5)
    assert thread.is_alive()
    assert supervisor.cycles == 1

    supervisor.request_termination()
    thread.join(10)

    assert not thread.is_alive()
    assert thread.errors == []
    assert supervisor.stdout.getvalue() == b"hi\n"


def test_watch_set_is_fixed_for_the_cycle(in_tmp_path):
    (in_tmp_path / "dir").mkdir()
    supervisor = Supervisor(make_config("sleep 30", includes=("dir/*.txt",)), stdout=LockedSink(), stderr=LockedSink())
    thread = start_in_thread(supervisor.run)

    assert wait_until(lambda: supervisor.watcher is not None)
    (in_tmp_path / "dir" / "a.txt").write_text("new")
    time.sleep(1.0)

    assert supervisor.cycles == 1
    supervisor.request_termination()
    thread.join(10)
    assert thread.errors == []


def test_change_to_watched_file_restarts_command(in_tmp_path):
    target = in_tmp_path / "a.txt"
    target.write_text("one")
    out = LockedSink()
    supervisor = Supervisor(make_config("echo run", includes=("*.txt",)), stdout=out, stderr=LockedSink())
    thread = start_in_thread(supervisor.run)

    assert wait_until(lambda: supervisor.watcher is not None and out.getvalue() == b"run\n")
    with open(target, "a") as f:
        f.write("two")

    assert wait_until(lambda: out.getvalue() == b"run\nrun\n")
    assert supervisor.cycles == 2

    supervisor.request_termination()
    thread.join(10)
    assert thread.errors == []


def test_resolution_error_is_fatal_and_retires_child(in_tmp_path):
    recorder = Recorder()
    supervisor = _supervisor(make_config("sleep 30", includes=("[oops",)), recorder)

    with pytest.raises(GlobPatternError):
        supervisor.run()

    assert supervisor.cycles == 1
    assert recorder.children[0].state is ProcessState.EXITED
    assert recorder.watchers[0].closed


def test_dead_watcher_is_a_fatal_fault():
    class DeadWatcher(FakeWatcher):
        def is_alive(self):
            return False

    recorder = Recorder(watcher_cls=DeadWatcher)
    supervisor = _supervisor(make_config("sleep 30"), recorder)

    with pytest.raises(WatcherError, match="file watcher stopped unexpectedly"):
        supervisor.run()

    assert supervisor.cycles == 1
    assert recorder.children[0].state is ProcessState.EXITED


def test_reported_watcher_fault_is_fatal():
    class FaultyWatcher(FakeWatcher):
        def add_all(self, paths):
            super().add_all(paths)
            self.channel.put(WatcherFault(OSError("inotify queue overflow")))

    recorder = Recorder(watcher_cls=FaultyWatcher)
    supervisor = _supervisor(make_config("sleep 30"), recorder)

    with pytest.raises(WatcherError, match="inotify queue overflow"):
        supervisor.run()

    assert recorder.watchers[0].closed


def test_termination_during_restart_shutdown_prevents_next_spawn():
    class ChangingWatcher(FakeWatcher):
        def add_all(self, paths):
            super().add_all(paths)
            self.channel.put(FileChanged(EventKind.WRITE, "a.txt"))

    recorder = Recorder(watcher_cls=ChangingWatcher)
    supervisor = _supervisor(make_config("sleep 30"), recorder)
    real_retire = supervisor.sequencer.retire

    def retire_then_terminate(child, watcher=None):
        report = real_retire(child, watcher)
        supervisor.request_termination()
        # Left behind by the retired watcher, must not wake a new cycle
        supervisor.signals.put(FileChanged(EventKind.WRITE, "late.txt"))
        return report

    supervisor.sequencer.retire = retire_then_terminate

    supervisor.run()

    assert supervisor.cycles == 1
    assert len(recorder.children) == 1
    assert recorder.children[0].state is ProcessState.EXITED
    assert recorder.watchers[0].closed
