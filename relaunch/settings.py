"""
This module contains the configuration defaults for relaunch.
It defines timeouts, the shell used to run commands, and logging settings.

Every value can be overridden from the environment or from a `.env` file in the
working directory. The `.env` file is read without being loaded into
`os.environ`, so the supervised command inherits an untouched environment.
"""

import os
from pathlib import Path
from dotenv import dotenv_values
from relaunch.errors import ConfigurationError

ENV_FILE_PATH = Path(os.getenv("RELAUNCH_ENV_FILE", ".env"))

# Process environment wins over the .env file
_env = {**dotenv_values(ENV_FILE_PATH), **os.environ}


def _get(key: str, default: str) -> str:
    value = _env.get(key)
    return default if value is None else value


# Bad numeric overrides fall back to the default and are reported by `check`
INVALID_SETTINGS = []


def _get_float(key: str, default: str) -> float:
    value = _get(key, default)
    try:
        return float(value)
    except ValueError:
        INVALID_SETTINGS.append(f"{key}={value!r} is not a number")
        return float(default)


def check() -> None:
    """
    Reports overrides that could not be applied.

    :raises ConfigurationError: If any environment override was invalid.
    """
    if INVALID_SETTINGS:
        raise ConfigurationError(", ".join(INVALID_SETTINGS))


#* --- Process Settings ---
DEFAULT_SHELL = _get("RELAUNCH_SHELL", "/bin/sh")
GRACEFUL_SHUTDOWN_TIMEOUT = _get_float("RELAUNCH_SHUTDOWN_TIMEOUT", "5")  # seconds before force-killing
PROC_TITLE = "relaunch - Supervisor"

#* --- Watcher Settings ---
WATCHER_HEALTH_CHECK_INTERVAL = _get_float("RELAUNCH_HEALTH_CHECK_INTERVAL", "0.5")  # seconds

#* --- Output Settings ---
RELAY_TAG = b"| "

#* --- Logging ---
LOG_FORMAT = "%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s"
TRACE_LOGGER_NAME = "trace"
_log_file = _get("RELAUNCH_LOG_FILE", "")
LOG_FILE_PATH = Path(_log_file) if _log_file else None
