"""
The Watcher package.
Resolves include patterns into a watch set and reports changes to it.
"""
from .globs import GlobResolver, WatchSet
from .handler import FileWatcher

__all__ = ["GlobResolver", "WatchSet", "FileWatcher"]
