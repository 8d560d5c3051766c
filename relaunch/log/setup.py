import sys
import logging

from relaunch import settings


class MainFormatter(logging.Formatter):
    """A custom formatter to handle regular logs and raw trace lines."""

    def __init__(self) -> None:
        super().__init__(settings.LOG_FORMAT)

    def format(self, record):
        # Trace lines are printed exactly as written.
        if record.name == settings.TRACE_LOGGER_NAME:
            return record.getMessage()
        return super().format(record)


def setup_logging(verbose: bool = False) -> None:
    """
    Configures the root logger for the supervisor.
    This sets up a console handler on stderr, leaving stdout to the supervised
    command, and optionally a file handler. Any previously configured handlers
    are cleared to prevent duplication.

    :param verbose: If True, sets console logging to DEBUG level.
    """
    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # --- File Handler (conditional) ---
    if settings.LOG_FILE_PATH:
        try:
            settings.LOG_FILE_PATH.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.LOG_FILE_PATH, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.error(f"Failed to initialize file logging handler: {e}. Logging to file will be disabled.")
