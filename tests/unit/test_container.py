"""Unit tests for `lxcify/container.py`"""

import os
from pathlib import Path
from typing import Iterator

import pytest
from unit.util import FakeRuntime, make_env

from lxcify.app import App, DesktopLauncher
from lxcify.config import Consts
from lxcify.container import (DEFAULT_OPTIONS, Container, ContainerState, config_path,
                              host_arch, mounts, network_probe, pulse_audio, settle_delay,
                              start_timeout, target, template)
from lxcify.env import Environ
from lxcify.errors import (CreateFailed, LxcifyError, RuntimeCallError, StartTimeoutError,
                           StateError, ValidationError)
from lxcify.install import InstallExecutor
from lxcify.mount import DEFAULT_MOUNTS, Mount
from lxcify.runtime import RunState

_NAME = "lxcify-test"


@pytest.fixture(name="env")
def create_env(tmp_path: Path) -> Environ:
    """create an :class:`Environ` with all the directories inside the test directory"""
    return make_env(str(tmp_path))


@pytest.fixture(name="devnull")
def open_devnull() -> Iterator[int]:
    """file descriptor of the null device used for the commands run in the container"""
    fd = os.open(os.devnull, os.O_RDWR)
    yield fd
    os.close(fd)


def new_container(env: Environ, *options, sleeps: list[float], **runtime_args) -> Container:
    """create a :class:`Container` using a :class:`FakeRuntime` with given arguments"""
    return Container(_NAME, *options, env=env, sleep=sleeps.append,
                     runtime_factory=lambda name, path, tmpl, reporter: FakeRuntime(
                         name, path, tmpl, reporter, **runtime_args))


def fake(container: Container) -> FakeRuntime:
    """the :class:`FakeRuntime` of the container"""
    runtime = container.runtime
    assert isinstance(runtime, FakeRuntime)
    return runtime


def test_default_options(env: Environ):
    """check the settings of a container created without any options"""
    container = new_container(env, sleeps=[])
    assert len(DEFAULT_OPTIONS) == 4
    assert container.config_path == env.lxc_path
    assert container.template == "download"
    assert (container.distro, container.release, container.arch) == \
        ("ubuntu", "jammy", host_arch())
    assert container.mounts == list(DEFAULT_MOUNTS)
    assert container.pulse_audio
    assert container.start_timeout == 10.0
    assert container.settle_delay == 5.0
    assert container.state == ContainerState.UNINITIALIZED
    assert fake(container).config_path() == env.lxc_path
    assert fake(container).template == "download"


def test_options_order(env: Environ, tmp_path: Path):
    """check that options are applied in order with later ones overriding earlier ones"""
    lxc_dir = f"{tmp_path}/other-lxc"
    container = new_container(
        env, config_path(f"{lxc_dir}/"), template("ubuntu"),
        target("debian", "bookworm", "arm64"), mounts(Mount.passthru("/dev/dri", True)),
        pulse_audio(True), target("ubuntu", "noble", "amd64"),
        mounts(Mount.passthru("/dev/snd", True)), pulse_audio(False), start_timeout(3),
        settle_delay(0.5), network_probe(["true"], timeout=7), sleeps=[])
    assert container.config_path == lxc_dir
    assert container.conf.config_file == f"{lxc_dir}/{_NAME}/config"
    assert container.template == "ubuntu"
    assert (container.distro, container.release, container.arch) == ("ubuntu", "noble", "amd64")
    assert [m.host_path for m in container.mounts] == ["/dev/dri", "/dev/snd"]
    assert not container.pulse_audio
    assert container.start_timeout == 3
    assert container.settle_delay == 0.5
    assert container.probe_argv == ("true",)
    assert container.probe_timeout == 7
    with pytest.raises(ValidationError):
        Container("", env=env)


def test_create(env: Environ):
    """check the configuration applied in create and its order"""
    container = new_container(env, mounts(Mount.passthru("/dev/dri", True),
                                          Mount.explicit("/dev/video1", "/dev/video0")),
                              pulse_audio(False), sleeps=[])
    container.create()
    runtime = fake(container)
    assert container.state == ContainerState.CREATED
    assert runtime.calls[0] == ("create_as_user", ("ubuntu", "jammy", host_arch()))
    items = runtime.set_items()
    assert [key for key, _ in items[:6]] == ["lxc.idmap"] * 6
    assert items[6:] == [
        ("lxc.apparmor.profile", "lxc-container-default"),
        ("lxc.mount.entry", "/dev/dri dev/dri none bind,optional,create=dir"),
        ("lxc.mount.entry", "/dev/video1 dev/video0 none bind,optional,create=file")]
    assert runtime.operations()[-1] == "save_config_file"
    # the saved configuration should have the new identity map and keep the rest
    with open(container.conf.config_file, "r", encoding="utf-8") as config_fd:
        lines = config_fd.read().splitlines()
    assert "lxc.idmap = u 0 100000 65536" not in lines
    assert "lxc.idmap = u 1000 1000 1" in lines
    assert "# Distribution configuration" in lines
    assert lines[-1] == "lxc.mount.entry = /dev/video1 dev/video0 none bind,optional,create=file"
    assert not os.path.exists(container.conf.pulse_hook_script)
    # create is allowed only once
    with pytest.raises(StateError):
        container.create()


def test_create_pulse_audio(env: Environ):
    """check the audio hook script and its configuration"""
    container = new_container(env, mounts(*DEFAULT_MOUNTS), pulse_audio(True), sleeps=[])
    container.create()
    hook = container.conf.pulse_hook_script
    assert fake(container).set_items()[-1] == ("lxc.hook.pre-start", hook)
    assert len(fake(container).set_items()) == 6 + 1 + len(DEFAULT_MOUNTS) + 1
    assert os.stat(hook).st_mode & 0o777 == 0o700
    with open(hook, "r", encoding="utf-8") as hook_fd:
        script = hook_fd.read()
    assert script.startswith("#!/bin/sh\n")
    assert "PULSE_PATH=$LXC_ROOTFS_PATH/home/ubuntu/.pulse_socket" in script
    assert "module-native-protocol-unix auth-anonymous=1" in script


def test_create_failures(env: Environ):
    """check that failed create does not mark the container as created"""
    cause = RuntimeCallError("lxc-create", "exit code 1")
    container = new_container(env, sleeps=[], create_error=cause)
    with pytest.raises(CreateFailed) as cm:
        container.create()
    assert cm.value.__cause__ is cause
    assert cm.value.cause is cause
    assert "jammy" in str(cm.value)
    assert container.state == ContainerState.UNINITIALIZED
    assert fake(container).operations() == ["create_as_user"]

    # failure in configuration after the container was created
    container = new_container(env, sleeps=[])
    runtime = fake(container)
    orig_set = runtime.set_config_item

    def fail_aa_profile(key: str, value: str) -> None:
        if key == Consts.apparmor_profile_key():
            raise RuntimeCallError("set config item", f"key={key!r} value={value!r}")
        orig_set(key, value)

    runtime.set_config_item = fail_aa_profile  # type: ignore
    with pytest.raises(RuntimeCallError, match="lxc.apparmor.profile"):
        container.create()
    assert container.state == ContainerState.UNINITIALIZED
    assert "save_config_file" not in runtime.operations()


def test_start_and_stop(env: Environ):
    """check start with the fixed settle delay and stop"""
    sleeps: list[float] = []
    container = new_container(env, pulse_audio(False), settle_delay(2.5), sleeps=sleeps)
    with pytest.raises(StateError):
        container.start()
    container.create()
    runtime = fake(container)
    runtime.calls.clear()
    container.start()
    assert container.state == ContainerState.RUNNING
    assert runtime.calls == [("start", ()), ("wait_for_state", (RunState.RUNNING, 10.0))]
    assert sleeps == [2.5]
    # start again should be a no-op
    container.start()
    assert runtime.operations() == ["start", "wait_for_state"]

    container.stop()
    assert container.state == ContainerState.STOPPED
    assert runtime.operations()[-1] == "stop"
    # stop is idempotent
    container.stop()
    assert runtime.operations().count("stop") == 1
    container.start()
    assert container.state == ContainerState.RUNNING


def test_start_timeout(env: Environ):
    """check that start fails with a timeout if the container never runs"""
    sleeps: list[float] = []
    container = new_container(env, start_timeout(3), sleeps=sleeps, reaches_running=False)
    container.create()
    with pytest.raises(StartTimeoutError) as cm:
        container.start()
    assert isinstance(cm.value, TimeoutError)
    assert isinstance(cm.value, LxcifyError)
    assert "3" in str(cm.value)
    assert fake(container).calls[-1] == ("wait_for_state", (RunState.RUNNING, 3))
    assert container.state == ContainerState.CREATED
    assert not sleeps


def test_network_probe(env: Environ):
    """check polling of the network probe after start"""
    sleeps: list[float] = []
    probe = ("getent", "hosts", "archive.ubuntu.com")
    container = new_container(env, network_probe(probe, timeout=60), sleeps=sleeps,
                              command_codes=[2, 2, 0])
    container.create()
    container.start()
    assert fake(container).commands == [probe] * 3
    assert sleeps == [1.0, 1.0]
    assert container.state == ContainerState.RUNNING

    # probe that never succeeds
    sleeps.clear()
    container = new_container(env, network_probe(["false"], timeout=0), sleeps=sleeps,
                              command_codes=[1])
    container.create()
    with pytest.raises(StartTimeoutError, match="network"):
        container.start()
    assert fake(container).commands == [("false",)]


def test_install(env: Environ, devnull: int):
    """check that install starts the container if required and runs the script"""
    sleeps: list[float] = []
    container = new_container(env, mounts(Mount.passthru("/dev/dri", True),
                                          Mount.explicit("/dev/video1", "/dev/video0")),
                              pulse_audio(False), sleeps=sleeps)
    app = App("echo hi\n", "firefox", desktop_launcher=DesktopLauncher(
        "Firefox", "/usr/share/icons/firefox.png", "Web browser", ("Network", "WebBrowser")))
    with pytest.raises(StateError):
        container.install(app)
    container.create()
    runtime = fake(container)
    executor = InstallExecutor(runtime, stdin_fd=devnull, stdout_fd=devnull, stderr_fd=devnull)
    written = container.install(app, executor)
    assert container.state == ContainerState.INSTALLED
    assert runtime.operations().count("start") == 1
    assert sleeps == [5.0]
    assert runtime.commands == [("/bin/sh", "-c", "cat >/tmp/install.sh"),
                                ("/bin/bash", "/tmp/install.sh")]
    assert runtime.stdin_data == [b"echo hi\n"]
    assert written == [container.conf.launch_script, container.conf.desktop_file("Firefox")]
    assert all(os.path.isfile(path) for path in written)


def test_install_failure(env: Environ, devnull: int):
    """check that a failed install script does not write the launcher"""
    container = new_container(env, pulse_audio(False), sleeps=[], command_codes=[0, 3])
    container.create()
    container.start()
    executor = InstallExecutor(container.runtime, stdin_fd=devnull, stdout_fd=devnull,
                               stderr_fd=devnull)
    with pytest.raises(RuntimeCallError, match="code 3"):
        container.install(App("exit 3\n", "true"), executor)
    assert container.state == ContainerState.RUNNING
    assert not os.path.exists(container.conf.launch_script)


def test_provision(env: Environ, devnull: int):
    """check the whole pipeline: create, start, install and stop"""
    container = new_container(env, mounts(Mount.passthru("/dev/dri", True)), pulse_audio(True),
                              sleeps=[])
    executor = InstallExecutor(container.runtime, stdin_fd=devnull, stdout_fd=devnull,
                               stderr_fd=devnull)
    written = container.provision(App("apt-get install -y vlc\n", "vlc"), executor)
    runtime = fake(container)
    assert container.state == ContainerState.STOPPED
    assert not runtime.running
    ops = runtime.operations()
    assert ops[0] == "create_as_user"
    assert ops.index("save_config_file") < ops.index("start") < ops.index("run_command")
    assert ops[-1] == "stop"
    assert written == [container.conf.launch_script]
    assert runtime.stdin_data == [b"apt-get install -y vlc\n"]


if __name__ == "__main__":
    pytest.main([__file__])
