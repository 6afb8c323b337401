"""
Utilities related to command execution like running a command and common command-line options.
"""

import argparse
import shlex
import subprocess
import sys
from typing import Optional, Union

from lxcify import __version__ as product_version

from .errors import RuntimeCallError
from .print import Reporter, quiet_reporter


def run_command(cmd: Union[str, list[str]], capture_output: bool = False,
                error_msg: Optional[str] = None,
                reporter: Optional[Reporter] = None) -> Union[str, int]:
    """
    Helper wrapper around `subprocess.run` that raises :class:`RuntimeCallError` for the case of
    failure and captures and returns the output if required.

    :param cmd: the command to be run which can be either a list of strings, or a single string
                which will be split like done by unix shell using `shlex.split`
    :param capture_output: if True then capture stdout and stderr, return stdout and include
                           both in the error on failure
    :param error_msg: string naming the action that the command was supposed to do which is
                      used as the operation of the :class:`RuntimeCallError`; if not specified
                      then the entire command string is used
    :param reporter: the :class:`Reporter` that shows the command in verbose mode
    :return: the captured standard output if `capture_output` is true encoded as UTF-8 string
             else the return code of the command (which is always zero) as an integer
    """
    args = shlex.split(cmd) if isinstance(cmd, str) else cmd
    reporter = reporter or quiet_reporter()
    cmd_str = shlex.join(args)
    reporter.debug(f"Running: {cmd_str}")
    operation = error_msg or f"'{cmd_str}'"
    try:
        result = subprocess.run(args, capture_output=capture_output, check=False)
    except OSError as err:
        raise RuntimeCallError(operation, f"cannot invoke '{args[0]}': {err}", err) from err
    if result.returncode != 0:
        detail = f"exit code {result.returncode}"
        if output := _subprocess_output(result):
            detail = f"{detail}\n{output}"
        raise RuntimeCallError(operation, detail)
    if capture_output and result.stderr:
        reporter.debug(result.stderr.decode("utf-8").rstrip())
    return result.stdout.decode("utf-8") if capture_output else result.returncode


def _subprocess_output(result: subprocess.CompletedProcess[bytes]) -> str:
    """combined standard output and standard error of a completed process, if captured"""
    outputs = (out.decode("utf-8").rstrip() for out in (result.stdout, result.stderr) if out)
    return "\n".join(out for out in outputs if out)


def parser_version_check(parser: argparse.ArgumentParser, argv: list[str]) -> None:
    """
    Update command-line parser to add `--version` option to existing ones that will output the
    lxcify product version and exit if specified in the given list of arguments.

    :param parser: instance of :class:`argparse.ArgumentParser` having the command-line parser
    :param argv: the list of arguments to be parsed
    """
    parser.add_argument("--version", action="store_true", help="output lxcify version")
    # argv may have required arguments, hence check for --version separately
    if "--version" in argv:
        print(product_version)
        sys.exit(0)
