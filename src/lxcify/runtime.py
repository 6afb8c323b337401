"""
The container runtime that lxcify drives: a narrow interface with the lifecycle operations the
provisioning steps need, and its implementation using the LXC command-line tools.
"""

import math
import os
import subprocess
from enum import Enum
from typing import Optional, Protocol

from .cmd import run_command
from .env import get_lxc_bin_dir
from .errors import RuntimeCallError
from .print import Reporter, quiet_reporter


class RunState(str, Enum):
    """
    States of a container as reported by the runtime.
    """
    STOPPED = "STOPPED"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


class ContainerRuntime(Protocol):
    """
    Operations on a single container of the runtime. The configuration calls work on an
    in-memory copy of the container's configuration which is persisted by `save_config_file`.
    """

    def name(self) -> str:
        """name of the container"""
        ...

    def config_path(self) -> str:
        """directory where the runtime keeps its containers"""
        ...

    def config_file_name(self) -> str:
        """full path of the container's configuration file"""
        ...

    def create_as_user(self, distro: str, release: str, arch: str) -> None:
        """create the container as an unprivileged user from given distribution image"""
        ...

    def set_config_item(self, key: str, value: str) -> None:
        """append a configuration item"""
        ...

    def clear_config(self) -> None:
        """drop all the configuration items held in memory"""
        ...

    def save_config_file(self, path: str) -> None:
        """write the in-memory configuration to given file"""
        ...

    def load_config_file(self, path: str) -> None:
        """append the configuration items from given file"""
        ...

    def start(self) -> None:
        """start the container in background"""
        ...

    def stop(self) -> None:
        """stop the container"""
        ...

    def wait_for_state(self, state: RunState, timeout: float) -> bool:
        """wait for the container to reach given state returning False on timeout"""
        ...

    def is_running(self) -> bool:
        """whether the container is running"""
        ...

    def run_command(self, stdin_fd: int, stdout_fd: int, stderr_fd: int, *argv: str) -> int:
        """run a command inside the running container returning its exit status"""
        ...


class LxcCliContainer:
    """
    :class:`ContainerRuntime` implemented by invoking the LXC tools (`lxc-create`, `lxc-start`,
    `lxc-attach` and so on) for an unprivileged user. The configuration is held as an ordered
    list of raw lines so that comments and blank lines of the file are written back as is.
    """

    def __init__(self, name: str, lxc_path: str, template: str = "download",
                 bin_dir: Optional[str] = None, reporter: Optional[Reporter] = None):
        """
        Initialize the runtime for a container. Nothing is invoked until an operation is called.

        :param name: name of the container
        :param lxc_path: directory where LXC keeps the containers
        :param template: the LXC template used by `create_as_user`
        :param bin_dir: directory having the LXC tools, defaults to :func:`get_lxc_bin_dir()`
        :param reporter: the :class:`Reporter` used to show the invoked commands
        """
        self._name = name
        self._lxc_path = lxc_path.rstrip("/")
        self._template = template
        self._bin_dir = bin_dir
        self._reporter = reporter or quiet_reporter()
        self._config_lines: list[str] = []

    def _tool(self, tool: str, *args: str) -> list[str]:
        """build the command-line for an LXC tool acting on this container"""
        if not self._bin_dir:
            try:
                self._bin_dir = get_lxc_bin_dir()
            except OSError as err:
                raise RuntimeCallError(f"locate lxc-{tool}", cause=err) from err
        return [f"{self._bin_dir}/lxc-{tool}", "-P", self._lxc_path, "-n", self._name, *args]

    def name(self) -> str:
        return self._name

    def config_path(self) -> str:
        return self._lxc_path

    def config_file_name(self) -> str:
        return f"{self._lxc_path}/{self._name}/config"

    def create_as_user(self, distro: str, release: str, arch: str) -> None:
        run_command(self._tool("create", "-t", self._template, "--", "-d", distro,
                               "-r", release, "-a", arch),
                    error_msg=f"creating container '{self._name}' from {distro}/{release}/{arch}",
                    reporter=self._reporter)
        self._config_lines.clear()
        if os.path.exists(self.config_file_name()):
            self.load_config_file(self.config_file_name())

    def set_config_item(self, key: str, value: str) -> None:
        if not key or "\n" in key or "\n" in value:
            raise RuntimeCallError("set config item", f"key={key!r} value={value!r}")
        self._config_lines.append(f"{key} = {value}")

    def config_lines(self) -> list[str]:
        """the configuration lines currently held in memory"""
        return list(self._config_lines)

    def clear_config(self) -> None:
        self._config_lines.clear()

    def save_config_file(self, path: str) -> None:
        try:
            with open(path, "w", encoding="utf-8") as config_fd:
                config_fd.writelines(f"{line}\n" for line in self._config_lines)
        except OSError as err:
            raise RuntimeCallError("save config file", f"path={path!r}", err) from err

    def load_config_file(self, path: str) -> None:
        try:
            with open(path, "r", encoding="utf-8") as config_fd:
                self._config_lines.extend(config_fd.read().splitlines())
        except OSError as err:
            raise RuntimeCallError("load config file", f"path={path!r}", err) from err

    def start(self) -> None:
        run_command(self._tool("start", "-d"), error_msg=f"starting container '{self._name}'",
                    reporter=self._reporter)

    def stop(self) -> None:
        run_command(self._tool("stop"), error_msg=f"stopping container '{self._name}'",
                    reporter=self._reporter)

    def wait_for_state(self, state: RunState, timeout: float) -> bool:
        state = RunState(state)
        args = self._tool("wait", "-s", state.value, "-t", str(math.ceil(timeout)))
        self._reporter.debug(f"Waiting up to {timeout}s for '{self._name}' to be {state.value}")
        try:
            return subprocess.run(args, check=False, stdout=subprocess.DEVNULL,
                                  stderr=subprocess.DEVNULL).returncode == 0
        except OSError as err:
            raise RuntimeCallError("wait for state", f"state={state.value}", err) from err

    def is_running(self) -> bool:
        try:
            result = subprocess.run(self._tool("info", "-s", "-H"), check=False,
                                    capture_output=True)
        except OSError as err:
            raise RuntimeCallError("query state", f"container={self._name!r}", err) from err
        # a container that does not exist yet is simply not running
        return result.returncode == 0 and \
            result.stdout.decode("utf-8").strip() == RunState.RUNNING.value

    def run_command(self, stdin_fd: int, stdout_fd: int, stderr_fd: int, *argv: str) -> int:
        args = self._tool("attach", "--clear-env", "--", *argv)
        self._reporter.debug(f"Running in '{self._name}': {' '.join(argv)}")
        try:
            return subprocess.run(args, stdin=stdin_fd, stdout=stdout_fd, stderr=stderr_fd,
                                  check=False).returncode
        except OSError as err:
            raise RuntimeCallError("run command", f"argv={list(argv)!r}", err) from err
