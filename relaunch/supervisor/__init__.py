"""
The Supervisor package.
Manages the lifecycle of the supervised command.

This package contains the central Supervisor class and its helper modules,
which together handle starting the command, relaying its output, and
shutting it down before every restart.
"""
from .supervisor import RestartOutcome, Supervisor
from .shutdown import ShutdownReport, ShutdownSequencer

__all__ = ["RestartOutcome", "Supervisor", "ShutdownReport", "ShutdownSequencer"]
