import logging
from typing import Any, Optional

from relaunch import settings


class Tracer:
    """
    The verbose-only diagnostic channel.

    Components that report flag values, glob matches or signal delivery take a
    Tracer instead of checking the verbosity flag themselves. Whether anything
    is emitted is decided once, when the Tracer is built.
    """

    def __init__(self, enabled: bool, logger: Optional[logging.Logger] = None) -> None:
        """
        :param enabled: The run's verbosity flag.
        :param logger: Where trace lines go. Defaults to the raw `trace` logger.
        """
        self.enabled = enabled
        self._logger = logger or logging.getLogger(settings.TRACE_LOGGER_NAME)
        self.trace = self._emit if enabled else self._discard

    def _emit(self, msg: str, *args: Any) -> None:
        self._logger.debug(msg, *args)

    def _discard(self, msg: str, *args: Any) -> None:
        pass


# Used by components built without an explicit tracer.
SILENT = Tracer(False)
