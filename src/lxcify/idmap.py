"""
Identity map of a rootless container: container root maps to an unprivileged host range while
the invoking host user maps 1:1 into the container, so that files created by the install step
for the container user stay writable by the host user.
"""

import os
import subprocess
from typing import Iterable, Optional

from .config import ConfigItem, Consts, StaticConfiguration
from .errors import FileOperationError, RuntimeCallError
from .filelock import FileLock
from .print import Reporter, quiet_reporter
from .runtime import ContainerRuntime


def id_map_items(uid: int, gid: int, start: int = Consts.id_map_start(),
                 range_size: int = Consts.id_map_range()) -> list[ConfigItem]:
    """
    Build the six identity map entries, user and group interleaved:
    container ids `[0, uid)` map to `[start, start + uid)`, container `uid` maps to host `uid`,
    and the remaining container ids map to the rest of the unprivileged range (same for gid).

    :param uid: host uid to map 1:1 into the container
    :param gid: host gid to map 1:1 into the container
    :param start: first host id of the unprivileged range
    :param range_size: number of ids in the unprivileged range
    :return: ordered list of `lxc.idmap` configuration items
    """
    key = Consts.id_map_key()
    return [
        ConfigItem(key, f"u 0 {start} {uid}"),
        ConfigItem(key, f"g 0 {start} {gid}"),
        ConfigItem(key, f"u {uid} {uid} 1"),
        ConfigItem(key, f"g {gid} {gid} 1"),
        ConfigItem(key, f"u {uid + 1} {start + uid + 1} {range_size - uid}"),
        ConfigItem(key, f"g {gid + 1} {start + gid + 1} {range_size - gid}"),
    ]


def strip_config_lines(lines: Iterable[str], *keys: str) -> list[str]:
    """
    Drop every line that starts with any of given configuration keys, keeping all other lines
    (including comments and blank ones) verbatim and in their original order.

    :param lines: lines of the configuration file without line terminators
    :param keys: the configuration keys to remove
    :return: the remaining lines
    """
    return [line for line in lines if not line.startswith(keys)]


class IdMapBuilder:
    """
    Replaces the identity map of a freshly created container with the rootless one for the
    invoking user and fixes the ownership of the container user's home directory.
    """

    def __init__(self, conf: StaticConfiguration, reporter: Optional[Reporter] = None,
                 start: int = Consts.id_map_start(), range_size: int = Consts.id_map_range()):
        self._conf = conf
        self._reporter = reporter or quiet_reporter()
        self._start = start
        self._range_size = range_size

    @property
    def uid(self) -> int:
        """host uid that is mapped 1:1 into the container"""
        return self._conf.env.uid

    @property
    def gid(self) -> int:
        """host gid that is mapped 1:1 into the container"""
        return self._conf.env.gid

    def items(self) -> list[ConfigItem]:
        """identity map entries for the invoking user"""
        return id_map_items(self.uid, self.gid, self._start, self._range_size)

    def apply(self, runtime: ContainerRuntime) -> None:
        """
        Remove the identity map set up by the runtime on creation and set the rootless one.

        :param runtime: the runtime of the created container
        """
        with FileLock(self._conf.config_lock_file):
            self.clear_id_map(runtime)
        for item in self.items():
            self._reporter.debug(f"Setting {item}")
            runtime.set_config_item(item.key, item.value)

    def clear_id_map(self, runtime: ContainerRuntime) -> None:
        """
        Remove all identity map entries from the container configuration. The runtime cannot
        clear these entries selectively, so the configuration file is read, the in-memory
        configuration cleared, and the file rewritten without those lines and loaded back.
        Callers must hold the configuration lock.

        :param runtime: the runtime of the created container
        """
        config_file = runtime.config_file_name()
        try:
            with open(config_file, "r", encoding="utf-8", newline="") as config_fd:
                # split on '\n' only so that all other content is written back unchanged
                lines = config_fd.read().split("\n")
        except OSError as err:
            raise FileOperationError("reading container configuration", config_file, err) \
                from err
        runtime.clear_config()
        kept = strip_config_lines(lines, *Consts.id_map_keys())
        self._reporter.debug(f"Removed {len(lines) - len(kept)} identity map lines from "
                             f"{config_file}")
        try:
            with open(config_file, "w", encoding="utf-8", newline="") as config_fd:
                config_fd.write("\n".join(kept))
            os.chmod(config_file, 0o600)
        except OSError as err:
            raise FileOperationError("rewriting container configuration", config_file, err) \
                from err
        runtime.load_config_file(config_file)

    def fix_home_ownership(self, home_dir: Optional[str] = None) -> None:
        """
        Change ownership of the container user's home directory on the host to the invoking
        user since the root filesystem was created before the identity map was in place.

        :param home_dir: the home directory on the host, defaults to that of the container user
        """
        home_dir = home_dir or self._conf.user_home
        if not os.path.isdir(home_dir):
            self._reporter.warn(f"Skipping ownership change of missing directory '{home_dir}'")
            return
        cmd = ["sudo", "chown", "-R", f"{self.uid}:{self.gid}", home_dir]
        self._reporter.info(f"Changing ownership of '{home_dir}' to {self.uid}:{self.gid}")
        try:
            code = subprocess.run(cmd, check=False).returncode
        except OSError as err:
            raise RuntimeCallError("change home ownership", f"path={home_dir!r}", err) from err
        if code != 0:
            raise RuntimeCallError("change home ownership",
                                   f"'{' '.join(cmd)}' exited with code {code}")
