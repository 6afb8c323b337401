"""
Utility classes and methods to print in color on terminal/console, and the `Reporter` that
is handed to every provisioning component for its progress and error messages.
"""

import sys
from dataclasses import dataclass
from typing import IO, Optional


# define color names for printing in terminal
@dataclass(frozen=True)
class TermColors:
    """basic ASCII color strings for terminals"""
    black: str
    red: str
    green: str
    orange: str
    blue: str
    purple: str
    cyan: str
    lightgray: str
    reset: str
    bold: str
    disable: str


# foreground colors in the terminal
fgcolor = TermColors(
    "\033[30m", "\033[31m", "\033[32m", "\033[33m", "\033[34m", "\033[35m", "\033[36m",
    "\033[37m", "\033[00m", "\033[01m", "\033[02m")
# background colors in the terminal
bgcolor = TermColors(
    "\033[40m", "\033[41m", "\033[42m", "\033[43m", "\033[44m", "\033[45m", "\033[46m",
    "\033[47m", "\033[00m", "\033[01m", "\033[02m")


def print_color(msg: str, fg: Optional[str] = None,
                bg: Optional[str] = None, end: str = "\n", file: Optional[IO[str]] = None) -> None:
    """
    Display given string to standard output with foreground and background colors, if provided.

    :param msg: the string to be displayed
    :param fg: the foreground color of the string
    :param bg: the background color of the string
    :param end: the terminating string which is newline by default (or can be empty for example)
    :param file: the text-mode file object to use for writing (defaults to `sys.stdout`)
    """
    if fg:
        if bg:
            full_msg = f"{fg}{bg}{msg}{bgcolor.reset}{fgcolor.reset}"
        else:
            full_msg = f"{fg}{msg}{fgcolor.reset}"
    elif bg:
        full_msg = f"{bg}{msg}{bgcolor.reset}"
    else:
        full_msg = msg
    # force flush the output if it doesn't end in a newline
    print(full_msg, end=end, file=file, flush=end != "\n")


def print_error(msg: str, end: str = "\n", file: Optional[IO[str]] = None) -> None:
    """
    Display an error string in red foreground (and no background change).

    :param msg: the string to be displayed
    :param end: the terminating string which is newline by default (or can be empty for example)
    :param file: the text-mode file object to use for writing (defaults to `sys.stderr`)
    """
    if not file:
        file = sys.stderr
    print_color(msg, fg=fgcolor.red, end=end, file=file)


def print_warn(msg: str, end: str = "\n", file: Optional[IO[str]] = None):
    """
    Display a warning string in purple foreground (and no background change).

    :param msg: the string to be displayed
    :param end: the terminating string which is newline by default (or can be empty for example)
    :param file: the text-mode file object to use for writing (defaults to `sys.stdout`)
    """
    print_color(msg, fg=fgcolor.purple, end=end, file=file)


def print_notice(msg: str, end: str = "\n", file: Optional[IO[str]] = None):
    """
    Display a string in orange foreground (and no background change).

    :param msg: the string to be displayed
    :param end: the terminating string which is newline by default (or can be empty for example)
    :param file: the text-mode file object to use for writing (defaults to `sys.stdout`)
    """
    print_color(msg, fg=fgcolor.orange, end=end, file=file)


def print_info(msg: str, end: str = "\n", file: Optional[IO[str]] = None):
    """
    Display an informational string in blue foreground (and no background change).

    :param msg: the string to be displayed
    :param end: the terminating string which is newline by default (or can be empty for example)
    :param file: the text-mode file object to use for writing (defaults to `sys.stdout`)
    """
    print_color(msg, fg=fgcolor.blue, end=end, file=file)


class Reporter:
    """
    Progress and error reporting for the provisioning steps. One instance is created by the
    command-line tool and passed explicitly to each component, so nothing writes to the
    console except through it. A `quiet` reporter drops everything below errors.
    """

    def __init__(self, verbose: bool = False, quiet: bool = False,
                 file: Optional[IO[str]] = None):
        """
        Initialize the reporter.

        :param verbose: if True then `debug` messages are displayed too
        :param quiet: if True then only `error` messages are displayed
        :param file: optional text-mode file object used for all messages other than errors
                     (defaults to `sys.stdout` at the time of each call)
        """
        self._verbose = verbose and not quiet
        self._quiet = quiet
        self._file = file

    @property
    def verbose(self) -> bool:
        """whether `debug` messages are displayed"""
        return self._verbose

    def debug(self, msg: str) -> None:
        """display a dimmed debug message if verbose output has been enabled"""
        if self._verbose:
            print_color(msg, fg=fgcolor.disable, file=self._file)

    def info(self, msg: str) -> None:
        """display a progress message in blue"""
        if not self._quiet:
            print_info(msg, file=self._file)

    def notice(self, msg: str) -> None:
        """display a noteworthy message in orange"""
        if not self._quiet:
            print_notice(msg, file=self._file)

    def success(self, msg: str) -> None:
        """display a completion message in green"""
        if not self._quiet:
            print_color(msg, fg=fgcolor.green, file=self._file)

    def warn(self, msg: str) -> None:
        """display a warning message in purple"""
        if not self._quiet:
            print_warn(msg, file=self._file)

    def error(self, msg: str) -> None:
        """display an error message in red on standard error"""
        print_error(msg)


def quiet_reporter() -> Reporter:
    """a `Reporter` that only displays errors, used when no reporter is passed explicitly"""
    return Reporter(quiet=True)
