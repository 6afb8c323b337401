"""
Configuration locations of an lxcify container, the runtime configuration items and the fixed
names used across the provisioning steps.
"""

from dataclasses import dataclass

from .env import Environ


@dataclass(frozen=True)
class ConfigItem:
    """
    A single `key = value` entry in the LXC configuration language.

    Attributes:
        key: the LXC configuration key, e.g. `lxc.mount.entry`
        value: the value for the key
    """
    key: str
    value: str

    def __str__(self) -> str:
        return f"{self.key} = {self.value}"


class StaticConfiguration:
    """
    Configuration paths for an lxcify container derived from the LXC path and its name.
    """

    def __init__(self, env: Environ, lxc_path: str, box_name: str):
        self._env = env
        self._lxc_path = lxc_path.rstrip("/")
        self._box_name = box_name
        self._container_dir = f"{self._lxc_path}/{box_name}"
        self._config_file = f"{self._container_dir}/config"
        self._rootfs = f"{self._container_dir}/rootfs"

    @property
    def env(self) -> Environ:
        """the `Environ` object used for this configuration"""
        return self._env

    @property
    def lxc_path(self) -> str:
        """directory where LXC keeps the containers"""
        return self._lxc_path

    @property
    def box_name(self) -> str:
        """name of the container"""
        return self._box_name

    @property
    def container_dir(self) -> str:
        """per-container directory of LXC having the configuration and root filesystem"""
        return self._container_dir

    @property
    def config_file(self) -> str:
        """the LXC configuration file of the container"""
        return self._config_file

    @property
    def config_lock_file(self) -> str:
        """lock file guarding rewrites of the LXC configuration file"""
        return f"{self._container_dir}/.config.lock"

    @property
    def rootfs(self) -> str:
        """root filesystem of the container on the host"""
        return self._rootfs

    @property
    def user_home(self) -> str:
        """home directory of the unprivileged container user as seen from the host"""
        return f"{self._rootfs}/home/{Consts.container_user()}"

    @property
    def pulse_hook_script(self) -> str:
        """pre-start hook script that sets up the audio socket for the container"""
        return f"{self._container_dir}/{Consts.pulse_hook_script()}"

    @property
    def launch_script(self) -> str:
        """host script that runs the application in the container"""
        return f"{self._container_dir}/{Consts.launch_script()}"

    def desktop_file(self, launcher_name: str) -> str:
        """
        Desktop entry file for the given launcher display name.

        :param launcher_name: display name of the desktop launcher
        :return: full path of the `.desktop` file in the user applications directory
        """
        return f"{self._env.user_applications_dir}/{launcher_name}.desktop"


class Consts:
    """
    Defines fixed file/path and other names used by lxcify that are not configurable.
    """

    @staticmethod
    def id_map_key() -> str:
        """LXC configuration key of the identity map entries"""
        return "lxc.idmap"

    @staticmethod
    def id_map_keys() -> tuple[str, ...]:
        """
        Keys of the identity map entries that are removed from a created configuration:
        the current key and the `lxc.id_map` key that LXC used before version 2.1.
        """
        return Consts.id_map_key(), "lxc.id_map"

    @staticmethod
    def mount_entry_key() -> str:
        """LXC configuration key of bind mount entries"""
        return "lxc.mount.entry"

    @staticmethod
    def apparmor_profile_key() -> str:
        """LXC configuration key of the AppArmor profile"""
        return "lxc.apparmor.profile"

    @staticmethod
    def pre_start_hook_key() -> str:
        """LXC configuration key of the pre-start hook"""
        return "lxc.hook.pre-start"

    @staticmethod
    def default_config() -> tuple[ConfigItem, ...]:
        """configuration items applied to every container before its mounts"""
        return (ConfigItem(Consts.apparmor_profile_key(), "lxc-container-default"),)

    @staticmethod
    def id_map_start() -> int:
        """first host id of the unprivileged range that container ids are mapped to"""
        return 100000

    @staticmethod
    def id_map_range() -> int:
        """number of ids in the unprivileged range"""
        return 65535

    @staticmethod
    def default_template() -> str:
        """LXC template used to create containers as an unprivileged user"""
        return "download"

    @staticmethod
    def default_distribution() -> str:
        """distribution of the container image"""
        return "ubuntu"

    @staticmethod
    def default_release() -> str:
        """release of the container image"""
        return "jammy"

    @staticmethod
    def start_timeout() -> float:
        """seconds to wait for the container to reach RUNNING state"""
        return 10.0

    @staticmethod
    def settle_delay() -> float:
        """seconds to wait after start for the container network when no probe is configured"""
        return 5.0

    @staticmethod
    def stop_timeout() -> int:
        """seconds given to the container to shut down cleanly by the launch script"""
        return 10

    @staticmethod
    def container_user() -> str:
        """unprivileged user inside the container that runs the application"""
        return "ubuntu"

    @staticmethod
    def pulse_socket() -> str:
        """path of the audio socket inside the container"""
        return f"/home/{Consts.container_user()}/.pulse_socket"

    @staticmethod
    def install_script_path() -> str:
        """location inside the container where the install script is written"""
        return "/tmp/install.sh"

    @staticmethod
    def pulse_hook_script() -> str:
        """file name of the pre-start hook script that sets up the audio socket"""
        return "setup-pulse.sh"

    @staticmethod
    def launch_script() -> str:
        """file name of the launch script in the container directory"""
        return "launch.sh"

    @staticmethod
    def default_directory_mode() -> int:
        """return the default mode to use for new directories"""
        return 0o750
