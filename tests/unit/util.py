"""some common utility functions and classes for unit tests"""

import os
from typing import Iterable, Optional

from lxcify.env import Environ
from lxcify.errors import RuntimeCallError
from lxcify.print import Reporter
from lxcify.runtime import RunState

# configuration written by `lxc-create` with the download template for an unprivileged user
CREATED_CONFIG = """# Template used to create this container: /usr/share/lxc/templates/lxc-download
# Parameters passed to the template: -d ubuntu -r jammy -a amd64
# For additional config options, please look at lxc.container.conf(5)

# Distribution configuration
lxc.include = /usr/share/lxc/config/common.conf
lxc.include = /usr/share/lxc/config/userns.conf
lxc.arch = linux64

# Container specific configuration
lxc.idmap = u 0 100000 65536
lxc.idmap = g 0 100000 65536
lxc.rootfs.path = dir:{rootfs}
lxc.uts.name = {name}

# Network configuration
lxc.net.0.type = veth
lxc.net.0.link = lxcbr0
lxc.net.0.flags = up
"""


def make_env(base_dir: str, uid: int = 1000, gid: int = 1000) -> Environ:
    """an :class:`Environ` having all its directories inside given base directory"""
    return Environ(home_dir=f"{base_dir}/home", lxc_path=f"{base_dir}/lxc", uid=uid, gid=gid,
                   applications_dir=f"{base_dir}/home/.local/share/applications")


class FakeRuntime:
    """
    A :class:`lxcify.runtime.ContainerRuntime` that records all the calls made to it. The
    configuration is held as lines like the LXC tools do and is persisted to real files so that
    the identity map rewrite works against it as with a real container.
    """

    def __init__(self, name: str, lxc_path: str, template: str = "download",
                 reporter: Optional[Reporter] = None, reaches_running: bool = True,
                 create_error: Optional[Exception] = None,
                 command_codes: Iterable[int] = ()):
        self._name = name
        self._lxc_path = lxc_path
        self.template = template
        self.reporter = reporter
        self.reaches_running = reaches_running
        self.create_error = create_error
        self.command_codes = list(command_codes)
        self.running = False
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self.config_lines: list[str] = []
        self.commands: list[tuple[str, ...]] = []
        self.stdin_data: list[bytes] = []

    def _record(self, operation: str, *args: object) -> None:
        self.calls.append((operation, args))

    def operations(self) -> list[str]:
        """names of the operations invoked in order"""
        return [op for op, _ in self.calls]

    def set_items(self) -> list[tuple[str, str]]:
        """the (key, value) pairs passed to `set_config_item` in order"""
        return [(str(args[0]), str(args[1])) for op, args in self.calls
                if op == "set_config_item"]

    def name(self) -> str:
        return self._name

    def config_path(self) -> str:
        return self._lxc_path

    def config_file_name(self) -> str:
        return f"{self._lxc_path}/{self._name}/config"

    def create_as_user(self, distro: str, release: str, arch: str) -> None:
        self._record("create_as_user", distro, release, arch)
        if self.create_error:
            raise self.create_error
        rootfs = f"{self._lxc_path}/{self._name}/rootfs"
        os.makedirs(rootfs, exist_ok=True)
        with open(self.config_file_name(), "w", encoding="utf-8") as config_fd:
            config_fd.write(CREATED_CONFIG.format(rootfs=rootfs, name=self._name))
        self.config_lines = []
        self.load_config_file(self.config_file_name())

    def set_config_item(self, key: str, value: str) -> None:
        self._record("set_config_item", key, value)
        self.config_lines.append(f"{key} = {value}")

    def clear_config(self) -> None:
        self._record("clear_config")
        self.config_lines.clear()

    def save_config_file(self, path: str) -> None:
        self._record("save_config_file", path)
        with open(path, "w", encoding="utf-8") as config_fd:
            config_fd.writelines(f"{line}\n" for line in self.config_lines)

    def load_config_file(self, path: str) -> None:
        self._record("load_config_file", path)
        with open(path, "r", encoding="utf-8") as config_fd:
            self.config_lines.extend(config_fd.read().splitlines())

    def start(self) -> None:
        self._record("start")

    def stop(self) -> None:
        self._record("stop")
        self.running = False

    def wait_for_state(self, state: RunState, timeout: float) -> bool:
        self._record("wait_for_state", state, timeout)
        if state == RunState.RUNNING and self.reaches_running:
            self.running = True
            return True
        return False

    def is_running(self) -> bool:
        return self.running

    def run_command(self, stdin_fd: int, stdout_fd: int, stderr_fd: int, *argv: str) -> int:
        self._record("run_command", *argv)
        self.commands.append(tuple(argv))
        if not self.running:
            raise RuntimeCallError("run command", "container is not running")
        if argv[0] == "/bin/sh":
            # read everything written to the pipe by the installer
            chunks = []
            while chunk := os.read(stdin_fd, 4096):
                chunks.append(chunk)
            self.stdin_data.append(b"".join(chunks))
        return self.command_codes.pop(0) if self.command_codes else 0
