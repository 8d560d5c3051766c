import sys
import logging
from typing import List, Optional

import setproctitle

from relaunch import settings
from relaunch.log import Tracer, setup_logging
from relaunch.supervisor import Supervisor
from relaunch.config import parse_args
from relaunch.errors import ConfigurationError, RelaunchError
from relaunch.signals import install_termination_handlers, restore_handlers

log = logging.getLogger("relaunch")


def main(argv: Optional[List[str]] = None) -> int:
    """
    The main entry point for the command-line tool.

    :param argv: Arguments excluding the program name.
    :return: 0 after a requested shutdown, 1 on any fatal error.
    """
    try:
        config = parse_args(argv)
    except ConfigurationError as e:
        sys.stderr.write(f"parse flag: {e}\n")
        return 1

    try:
        settings.check()
    except ConfigurationError as e:
        sys.stderr.write(f"settings: {e}\n")
        return 1

    setup_logging(config.verbose)
    setproctitle.setproctitle(settings.PROC_TITLE)

    tracer = Tracer(config.verbose)
    tracer.trace(config.describe())

    supervisor = Supervisor(config, tracer)
    previous_handlers = install_termination_handlers(supervisor.request_termination)
    try:
        supervisor.run()
    except RelaunchError as e:
        log.error(str(e))
        return 1
    finally:
        restore_handlers(previous_handlers)

    log.debug(f"Supervisor stopped after {supervisor.cycles} run(s).")
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
