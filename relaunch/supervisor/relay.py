import time
import logging
import threading
from typing import BinaryIO, Optional

log = logging.getLogger(__name__)


def _tagged(tag: bytes, line: bytes) -> bytes:
    return tag + line if line.endswith(b"\n") else tag + line + b"\n"


def _relay_pipe(pipe: BinaryIO, sink: BinaryIO, name: str, tag: Optional[bytes]) -> None:
    """Target function for relay threads. Copies lines from a child pipe to a sink."""
    try:
        for line in iter(pipe.readline, b""):
            sink.write(_tagged(tag, line) + line if tag else line)
            sink.flush()
    except (OSError, ValueError) as e:
        log.debug(f"Relay for {name} stream exited: {e}")
    finally:
        pipe.close()


class OutputRelay:
    """
    Forwards one output stream of a child to the supervisor's matching stream.

    A relay lives exactly as long as its pipe: it ends at end-of-stream or on
    the first read or write error and is never restarted. Lines are forwarded
    in the order the child wrote them. When a tag is given, each line is
    preceded by a tagged copy of itself.
    """

    def __init__(self, name: str, pipe: BinaryIO, sink: BinaryIO, tag: Optional[bytes] = None) -> None:
        self.name = name
        self.pipe = pipe
        self.sink = sink
        self.tag = tag
        self.finished_at: Optional[float] = None
        self._thread = threading.Thread(target=self._run, daemon=True, name=f"Relay-{name}")

    def _run(self) -> None:
        try:
            _relay_pipe(self.pipe, self.sink, self.name, self.tag)
        finally:
            self.finished_at = time.monotonic()

    def start(self) -> "OutputRelay":
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()
