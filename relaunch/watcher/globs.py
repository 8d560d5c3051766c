import glob
import os
from typing import Iterable, List, Tuple

from relaunch.errors import GlobPatternError
from relaunch.log.trace import SILENT, Tracer

# The concrete paths registered with the file watcher for one cycle.
WatchSet = Tuple[str, ...]


def validate_pattern(pattern: str) -> None:
    """
    Rejects patterns that cannot be resolved against the working directory.

    :param pattern: The include pattern.
    :raises GlobPatternError: If the pattern is absolute, climbs out of the
        working directory, or has an unterminated character class.
    """
    if os.path.isabs(pattern):
        raise GlobPatternError(pattern, "pattern must be relative to the working directory")
    if ".." in pattern.split("/"):
        raise GlobPatternError(pattern, "'..' segments are not allowed")

    i, n = 0, len(pattern)
    while i < n:
        if pattern[i] == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            # A ']' right after the opening bracket is a literal member
            if j < n and pattern[j] == "]":
                j += 1
            end = pattern.find("]", j)
            slash = pattern.find("/", j)
            if end == -1 or (slash != -1 and slash < end):
                raise GlobPatternError(pattern, "unterminated character class")
            i = end
        i += 1


def resolve(pattern: str) -> List[str]:
    """
    Expands one include pattern into the matching paths.

    `**` spans any number of directories and hidden files are matched like any
    other. The empty pattern matches nothing.

    :param pattern: A glob pattern relative to the working directory.
    :raises GlobPatternError: If the pattern is malformed.
    :return: The matching paths in lexical order.
    """
    if not pattern:
        return []
    validate_pattern(pattern)
    return sorted(glob.glob(pattern, recursive=True, include_hidden=True))


class GlobResolver:
    """Turns a run's include patterns into the watch set for one cycle."""

    def __init__(self, tracer: Tracer = SILENT) -> None:
        self.tracer = tracer

    def resolve_all(self, patterns: Iterable[str]) -> WatchSet:
        """
        Resolves every pattern in order, dropping paths already matched by an
        earlier pattern.

        :param patterns: The include patterns.
        :raises GlobPatternError: On the first malformed pattern.
        :return: The watch set.
        """
        seen = {}
        for pattern in patterns:
            self.tracer.trace("glob pattern: %r", pattern)
            for path in resolve(pattern):
                self.tracer.trace("- %r", path)
                seen.setdefault(path, None)
        return tuple(seen)
