"""
relaunch: re-runs a shell command whenever watched files change.
"""

__version__ = "0.1.0"
