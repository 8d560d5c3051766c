"""Exceptions that end a relaunch run. Anything else is handled where it occurs."""


class RelaunchError(Exception):
    """Base class for fatal supervisor errors."""


class ConfigurationError(RelaunchError):
    """The command line or an environment override is invalid."""


class ResolutionError(RelaunchError):
    """The watch set for a cycle could not be built."""


class GlobPatternError(ResolutionError):
    """An include pattern is malformed."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"bad glob pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class WatchRegistrationError(ResolutionError):
    """A resolved path could not be registered with the file watcher."""

    def __init__(self, path: str, cause: OSError) -> None:
        super().__init__(f"cannot watch {path!r}: {cause}")
        self.path = path
        self.cause = cause


class ProcessLaunchError(RelaunchError):
    """The command could not be started."""


class WatcherError(RelaunchError):
    """The file watcher faulted or stopped delivering events."""
