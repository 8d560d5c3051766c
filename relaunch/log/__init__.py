"""
Logging module for relaunch.
This module provides the logging setup and the verbose trace channel.
"""

from .setup import setup_logging
from .trace import Tracer

__all__ = ["setup_logging", "Tracer"]
