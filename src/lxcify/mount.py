"""
Bind mounts of host devices, sockets and directories into the container.
"""

from dataclasses import dataclass
from typing import Any, Mapping

from .config import ConfigItem, Consts
from .errors import InvalidMount

_MOUNT_EXCLUSIVE_MSG = "{passthru} is mutually exclusive with {host,container}"
_MOUNT_MISSING_MSG = "missing required fields: {passthru} or {host,container}"


@dataclass(frozen=True)
class Mount:
    """
    A bind mount from a host path into the container. The container path never has a leading
    separator since LXC mount entries are relative to the container's root filesystem.

    Attributes:
        host_path: the source path on the host
        container_path: the target path relative to the container's root filesystem
        is_directory: whether the target should be created as a directory (else a file)
    """
    host_path: str
    container_path: str
    is_directory: bool = False

    @staticmethod
    def passthru(path: str, is_directory: bool = False) -> "Mount":
        """
        Mount a host path at the same location inside the container.

        :param path: absolute path on the host
        :param is_directory: whether the path is a directory
        :return: the `Mount` for the path
        """
        if not path:
            raise InvalidMount("empty passthru path")
        return Mount(path, path.lstrip("/"), is_directory)

    @staticmethod
    def explicit(host: str, container: str, is_directory: bool = False) -> "Mount":
        """
        Mount a host path at a different location inside the container.

        :param host: absolute path on the host
        :param container: absolute path inside the container
        :param is_directory: whether the path is a directory
        :return: the `Mount` for the pair of paths
        """
        if not host or not container:
            raise InvalidMount(_MOUNT_MISSING_MSG)
        return Mount(host, container.lstrip("/"), is_directory)

    @staticmethod
    def from_config(entry: Mapping[str, Any]) -> "Mount":
        """
        Build a `Mount` from an entry of `mounts` in the application template, which has either
        a `passthru` path, or both of `host` and `container` paths, and an optional `directory`
        flag.

        :param entry: the mapping read from the template
        :return: the `Mount` for the entry
        """
        if not isinstance(entry, Mapping):
            raise InvalidMount(f"mount entry should be a mapping but got: {entry!r}")
        passthru = str(entry.get("passthru") or "")
        host = str(entry.get("host") or "")
        container = str(entry.get("container") or "")
        is_directory = bool(entry.get("directory", False))
        if passthru:
            if host or container:
                raise InvalidMount(_MOUNT_EXCLUSIVE_MSG)
            return Mount.passthru(passthru, is_directory)
        if host and container:
            return Mount.explicit(host, container, is_directory)
        raise InvalidMount(_MOUNT_MISSING_MSG)

    @property
    def create_type(self) -> str:
        """the `create=` option of the mount entry which is one of `dir` or `file`"""
        return "dir" if self.is_directory else "file"

    def to_config_item(self) -> ConfigItem:
        """
        Render as an LXC mount entry. The `optional` flag lets the container start even if
        the host path is absent (e.g. no video device on a headless host).
        """
        return ConfigItem(Consts.mount_entry_key(),
                          f"{self.host_path} {self.container_path} none "
                          f"bind,optional,create={self.create_type}")


MOUNT_DRI = Mount.passthru("/dev/dri", True)
MOUNT_SND = Mount.passthru("/dev/snd", True)
MOUNT_X11 = Mount.passthru("/tmp/.X11-unix", True)
MOUNT_VIDEO0 = Mount.passthru("/dev/video0", False)

# mounts used when a container is built without any explicit options
DEFAULT_MOUNTS = (MOUNT_DRI, MOUNT_SND, MOUNT_X11, MOUNT_VIDEO0)
