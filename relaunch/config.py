import argparse
from dataclasses import dataclass
from typing import List, Optional, Tuple

from relaunch import settings
from relaunch.errors import ConfigurationError


@dataclass(frozen=True)
class RunConfiguration:
    """
    The immutable settings of one supervisor run.

    Built once at startup by `parse_args` and shared read-only by every
    component for the lifetime of the process.
    """
    command: str
    includes: Tuple[str, ...] = ("",)
    verbose: bool = False
    shutdown_timeout: float = settings.GRACEFUL_SHUTDOWN_TIMEOUT
    shell: str = settings.DEFAULT_SHELL

    def describe(self) -> str:
        """Returns the `# flags` block printed in verbose mode."""
        return (
            "# flags\n"
            f"cmd    : {self.command!r}\n"
            f"include: {list(self.includes)!r}\n"
            f"verbose: {self.verbose!r}\n"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relaunch",
        description="Runs a shell command and restarts it whenever a watched file changes."
    )
    # Single-dash long flags, with double-dash aliases
    parser.add_argument("-cmd", "--cmd", dest="cmd", default="", help="Run command")
    parser.add_argument("-include", "--include", dest="include", default="",
                        help="Comma-separated file include patterns (optional)")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true",
                        help="Verbose logging (default: false)")
    return parser


def split_includes(include: str) -> Tuple[str, ...]:
    """
    Splits the `-include` value on commas.

    An empty value yields a single empty pattern, which matches nothing.

    :param include: The raw flag value.
    :return: The patterns in the order given.
    """
    return tuple(include.split(","))


def parse_args(argv: Optional[List[str]] = None) -> RunConfiguration:
    """
    Parses the command line into a RunConfiguration.

    :param argv: Arguments excluding the program name. Defaults to sys.argv[1:].
    :raises ConfigurationError: If `-cmd` is missing or empty.
    :return: The run configuration.
    """
    args = build_parser().parse_args(argv)
    if not args.cmd:
        raise ConfigurationError("`-cmd` is a required flag")

    return RunConfiguration(
        command=args.cmd,
        includes=split_includes(args.include),
        verbose=args.verbose,
    )
