"""
The lifecycle of a provisioned container: create it with a rootless identity map and the
passthrough mounts, start it, install the application in it and stop it again.
"""

import os
import platform
import time
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from .app import App
from .config import ConfigItem, Consts, StaticConfiguration
from .env import Environ
from .errors import (CreateFailed, FileOperationError, RuntimeCallError, StartTimeoutError,
                     StateError, ValidationError)
from .idmap import IdMapBuilder
from .install import InstallExecutor
from .launcher import LauncherMaterializer
from .mount import DEFAULT_MOUNTS, Mount
from .print import Reporter, quiet_reporter
from .runtime import ContainerRuntime, LxcCliContainer, RunState


class ContainerState(str, Enum):
    """
    Provisioning states of a container. These are tracked by lxcify and differ from the
    :class:`RunState` reported by the runtime.
    """
    UNINITIALIZED = "uninitialized"
    CREATED = "created"
    RUNNING = "running"
    INSTALLED = "installed"
    STOPPED = "stopped"


# an option modifies the container settings and options are applied in the order given
Option = Callable[["Container"], None]
# creates the runtime for given container name, LXC path and template
RuntimeFactory = Callable[[str, str, str, Reporter], ContainerRuntime]


def config_path(path: str) -> Option:
    """option to use given directory as the LXC path"""
    def apply(container: "Container") -> None:
        container.config_path = path.rstrip("/")
    return apply


def template(name: str) -> Option:
    """option to set the LXC template used to create the container"""
    def apply(container: "Container") -> None:
        container.template = name
    return apply


def target(distro: str, release: str, arch: str) -> Option:
    """option to set the distribution image of the container"""
    def apply(container: "Container") -> None:
        container.distro, container.release, container.arch = distro, release, arch
    return apply


def mounts(*mount_list: Mount) -> Option:
    """option to add bind mounts to those of earlier options"""
    def apply(container: "Container") -> None:
        container.mounts.extend(mount_list)
    return apply


def pulse_audio(enable: bool) -> Option:
    """option to enable or disable sharing of the host's audio server"""
    def apply(container: "Container") -> None:
        container.pulse_audio = enable
    return apply


def start_timeout(seconds: float) -> Option:
    """option to set the time to wait for the container to reach the running state"""
    def apply(container: "Container") -> None:
        container.start_timeout = seconds
    return apply


def settle_delay(seconds: float) -> Option:
    """option to set the fixed delay after start used when no network probe is configured"""
    def apply(container: "Container") -> None:
        container.settle_delay = seconds
    return apply


def network_probe(argv: Sequence[str], timeout: float = Consts.start_timeout()) -> Option:
    """
    Option to check for network readiness after start by running a command in the container
    (e.g. `getent hosts archive.ubuntu.com`) until it succeeds, instead of the fixed delay.

    :param argv: the command and its arguments to run in the container
    :param timeout: the maximum seconds to keep trying the command
    """
    def apply(container: "Container") -> None:
        container.probe_argv = tuple(argv)
        container.probe_timeout = timeout
    return apply


def host_arch() -> str:
    """distribution architecture name for the machine architecture of the host"""
    machine = platform.machine()
    return {"x86_64": "amd64", "aarch64": "arm64", "i386": "i386", "i686": "i386",
            "armv7l": "armhf", "ppc64le": "ppc64el"}.get(machine, machine)


DEFAULT_OPTIONS: tuple[Option, ...] = (
    template(Consts.default_template()),
    target(Consts.default_distribution(), Consts.default_release(), host_arch()),
    mounts(*DEFAULT_MOUNTS),
    pulse_audio(True),
)


def _default_runtime(name: str, lxc_path: str, template_name: str,
                     reporter: Reporter) -> ContainerRuntime:
    return LxcCliContainer(name, lxc_path, template_name, reporter=reporter)


class Container:
    """
    Drives a single container through `create -> start -> install -> stop`. Each operation
    checks that the current :class:`ContainerState` permits it and raises :class:`StateError`
    otherwise. No operation is retried and a failure leaves the container in the runtime
    in whatever state it reached.
    """

    def __init__(self, name: str, *options: Option,
                 runtime_factory: RuntimeFactory = _default_runtime,
                 reporter: Optional[Reporter] = None, env: Optional[Environ] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize the container and its runtime. Nothing is changed in the runtime until
        an operation is invoked.

        :param name: name of the container
        :param options: the options to apply in order, defaults to :data:`DEFAULT_OPTIONS`
        :param runtime_factory: creates the :class:`ContainerRuntime` for the container
        :param reporter: the :class:`Reporter` for progress and errors
        :param env: the :class:`Environ` of the invoking user
        :param sleep: function used to wait for given number of seconds
        """
        if not name:
            raise ValidationError("container name cannot be empty")
        self.name = name
        self.config_path = ""
        self.template = Consts.default_template()
        self.distro = Consts.default_distribution()
        self.release = Consts.default_release()
        self.arch = host_arch()
        self.mounts: list[Mount] = []
        self.pulse_audio = False
        self.start_timeout = Consts.start_timeout()
        self.settle_delay = Consts.settle_delay()
        self.probe_argv: tuple[str, ...] = ()
        self.probe_timeout = Consts.start_timeout()
        for option in options or DEFAULT_OPTIONS:
            option(self)

        self._env = env or Environ()
        self._reporter = reporter or quiet_reporter()
        self._sleep = sleep
        if not self.config_path:
            self.config_path = self._env.lxc_path
        self._conf = StaticConfiguration(self._env, self.config_path, name)
        self._runtime = runtime_factory(name, self.config_path, self.template, self._reporter)
        self._state = ContainerState.UNINITIALIZED

    @property
    def state(self) -> ContainerState:
        """the current provisioning state of the container"""
        return self._state

    @property
    def runtime(self) -> ContainerRuntime:
        """the :class:`ContainerRuntime` of this container"""
        return self._runtime

    @property
    def conf(self) -> StaticConfiguration:
        """the :class:`StaticConfiguration` having the paths for this container"""
        return self._conf

    def config_items(self) -> list[ConfigItem]:
        """
        Configuration items applied after the identity map in `create` in their order:
        the default items followed by those for the mounts and then the audio hook, if enabled.
        """
        items = list(Consts.default_config())
        items.extend(mount.to_config_item() for mount in self.mounts)
        if self.pulse_audio:
            items.append(ConfigItem(Consts.pre_start_hook_key(), self._conf.pulse_hook_script))
        return items

    def _require_state(self, operation: str, allowed: Iterable[ContainerState]) -> None:
        if self._state not in allowed:
            raise StateError(f"cannot {operation} container '{self.name}' in state "
                             f"{self._state.value}")

    def create(self) -> None:
        """
        Create the container from its distribution image, replace the identity map with the
        rootless one, and persist the default configuration, mounts and audio hook.
        The container is marked created only after its configuration has been saved.
        """
        self._require_state("create", (ContainerState.UNINITIALIZED,))
        self._reporter.notice(f"Creating container '{self.name}' from "
                              f"{self.distro}/{self.release}/{self.arch}")
        try:
            self._runtime.create_as_user(self.distro, self.release, self.arch)
        except RuntimeCallError as err:
            raise CreateFailed("create container", f"name={self.name!r} template="
                               f"{self.template!r} target={self.distro}/{self.release}/"
                               f"{self.arch}", err) from err

        id_map = IdMapBuilder(self._conf, self._reporter)
        id_map.apply(self._runtime)
        id_map.fix_home_ownership()
        if self.pulse_audio:
            self._write_pulse_hook()
        for item in self.config_items():
            self._reporter.debug(f"Setting {item}")
            self._runtime.set_config_item(item.key, item.value)
        self._runtime.save_config_file(self._runtime.config_file_name())
        self._state = ContainerState.CREATED
        self._reporter.success(f"Created container '{self.name}'")

    def _write_pulse_hook(self) -> None:
        """write the pre-start hook script that sets up the audio socket for the container"""
        hook = self._conf.pulse_hook_script
        self._reporter.info(f"Writing audio pre-start hook '{hook}'")
        try:
            script = Environ.resource(Consts.pulse_hook_script()).read_text(encoding="utf-8")
            with open(hook, "w", encoding="utf-8") as hook_fd:
                hook_fd.write(script)
            os.chmod(hook, 0o700)
        except OSError as err:
            raise FileOperationError("writing", hook, err) from err

    def start(self) -> None:
        """
        Start the container and wait for it to be running and for its network to be ready.
        Does nothing if the container is already running.
        """
        if self._state == ContainerState.RUNNING:
            return
        self._require_state("start", (ContainerState.CREATED, ContainerState.STOPPED,
                                      ContainerState.INSTALLED))
        self._reporter.info(f"Starting container '{self.name}'")
        self._runtime.start()
        if not self._runtime.wait_for_state(RunState.RUNNING, self.start_timeout):
            raise StartTimeoutError(f"timeout waiting for container '{self.name}' to start "
                                    f"after {self.start_timeout}s")
        self._wait_for_network()
        self._state = ContainerState.RUNNING

    def _wait_for_network(self) -> None:
        """poll the network probe, if any, else wait for the fixed settle delay"""
        if not self.probe_argv:
            self._reporter.debug(f"Waiting {self.settle_delay}s for the container network")
            self._sleep(self.settle_delay)
            return
        devnull = os.open(os.devnull, os.O_RDWR)
        try:
            deadline = time.monotonic() + self.probe_timeout
            while True:
                code = self._runtime.run_command(devnull, devnull, devnull, *self.probe_argv)
                if code == 0:
                    return
                if time.monotonic() >= deadline:
                    raise StartTimeoutError(
                        f"network of container '{self.name}' not ready after "
                        f"{self.probe_timeout}s: '{' '.join(self.probe_argv)}' exited with "
                        f"code {code}")
                self._sleep(1.0)
        finally:
            os.close(devnull)

    def stop(self) -> None:
        """stop the container if the runtime reports it as running"""
        if self._runtime.is_running():
            self._reporter.info(f"Stopping container '{self.name}'")
            self._runtime.stop()
        if self._state != ContainerState.UNINITIALIZED:
            self._state = ContainerState.STOPPED

    def install(self, app: App, executor: Optional[InstallExecutor] = None,
                materializer: Optional[LauncherMaterializer] = None) -> list[str]:
        """
        Install the application in the container starting it first if required, and then
        write the launch script and the desktop entry on the host.

        :param app: the application to install
        :param executor: the :class:`InstallExecutor` to use instead of the default one
        :param materializer: the :class:`LauncherMaterializer` to use instead of the default
        :return: paths of the host files that were written
        """
        self._require_state("install", (ContainerState.CREATED, ContainerState.RUNNING,
                                        ContainerState.INSTALLED, ContainerState.STOPPED))
        if not self._runtime.is_running():
            if self._state == ContainerState.RUNNING:
                # stopped from outside of lxcify
                self._state = ContainerState.STOPPED
            self.start()
        executor = executor or InstallExecutor(self._runtime, self._reporter)
        executor.install(app)
        materializer = materializer or LauncherMaterializer(self._conf, self._reporter)
        written = materializer.materialize(app)
        self._state = ContainerState.INSTALLED
        return written

    def provision(self, app: App, executor: Optional[InstallExecutor] = None,
                  materializer: Optional[LauncherMaterializer] = None) -> list[str]:
        """
        Run the whole pipeline for the application: create, start, install and stop.

        :param app: the application to provision
        :param executor: the :class:`InstallExecutor` to use instead of the default one
        :param materializer: the :class:`LauncherMaterializer` to use instead of the default
        :return: paths of the host files that were written
        """
        self.create()
        self.start()
        written = self.install(app, executor, materializer)
        self.stop()
        self._reporter.success(f"Provisioned container '{self.name}'")
        return written
