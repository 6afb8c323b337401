"""
Runs the application's install script inside a running container.
"""

import os
import sys
import threading
from typing import Optional

from .app import App
from .config import Consts
from .errors import FileOperationError, RuntimeCallError
from .print import Reporter, quiet_reporter
from .runtime import ContainerRuntime


class InstallExecutor:
    """
    Copies the install script into the container through a pipe and then executes it as root
    with the host's terminal attached, so that its output and any prompts are visible.
    """

    def __init__(self, runtime: ContainerRuntime, reporter: Optional[Reporter] = None,
                 stdin_fd: Optional[int] = None, stdout_fd: Optional[int] = None,
                 stderr_fd: Optional[int] = None):
        """
        Initialize the executor for a running container.

        :param runtime: the runtime of the running container
        :param reporter: the :class:`Reporter` for progress and errors
        :param stdin_fd: standard input for the install script, defaults to that of the process
        :param stdout_fd: standard output for both commands, defaults to that of the process
        :param stderr_fd: standard error for both commands, defaults to that of the process
        """
        self._runtime = runtime
        self._reporter = reporter or quiet_reporter()
        self._stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self._stdout_fd = sys.stdout.fileno() if stdout_fd is None else stdout_fd
        self._stderr_fd = sys.stderr.fileno() if stderr_fd is None else stderr_fd

    def install(self, app: App) -> None:
        """
        Write `app.install_script` to a file in the container, then run it with `/bin/bash`.

        :param app: the application to install
        """
        script_path = Consts.install_script_path()
        self._reporter.info(f"Copying install script to '{self._runtime.name()}:{script_path}'")
        self._copy_script(app.install_script, script_path)
        self._reporter.info(f"Running install script in '{self._runtime.name()}'")
        sys.stdout.flush()
        sys.stderr.flush()
        self._run(self._stdin_fd, "/bin/bash", script_path)

    def _copy_script(self, script: str, script_path: str) -> None:
        """stream the script into the container through a pipe fed by a writer thread"""
        try:
            read_fd, write_fd = os.pipe()
        except OSError as err:
            raise FileOperationError("creating pipe for", script_path, err) from err
        # the writer has to run concurrently since `run_command` blocks until it sees EOF
        # while a script larger than the pipe buffer would block the writer
        writer = threading.Thread(target=self._write_script, args=(write_fd, script),
                                  name="install-script-writer", daemon=True)
        try:
            writer.start()
            self._run(read_fd, "/bin/sh", "-c", f"cat >{script_path}")
        finally:
            os.close(read_fd)
        writer.join()

    def _write_script(self, write_fd: int, script: str) -> None:
        """
        Write the script to the pipe and close it. Errors are only reported since the
        command reading the other end will see a short script and fail on its own.
        """
        data = memoryview(script.encode("utf-8"))
        try:
            while data:
                data = data[os.write(write_fd, data):]
        except OSError as err:
            self._reporter.error(f"FAILURE writing install script to the container: {err}")
        finally:
            os.close(write_fd)

    def _run(self, stdin_fd: int, *argv: str) -> None:
        """run a command in the container failing on a non-zero exit status"""
        code = self._runtime.run_command(stdin_fd, self._stdout_fd, self._stderr_fd, *argv)
        if code != 0:
            raise RuntimeCallError("run command in container",
                                   f"'{' '.join(argv)}' exited with code {code}")
