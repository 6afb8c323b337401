"""
Useful user environment settings.
"""

import getpass
import os
import site
import subprocess
from importlib.resources import files
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Optional, Union

PathName = Union[Path, Traversable]


def get_lxc_bin_dir() -> str:
    """
    If a custom directory having the LXC tools is defined by LXCIFY_LXC_BIN_DIR environment
    variable, then return it else check for the tools in the standard /usr/bin path.

    :return: the directory having `lxc-create`, `lxc-start` and the other LXC tools
    """
    if bin_dir := os.environ.get("LXCIFY_LXC_BIN_DIR"):
        if os.access(f"{bin_dir}/lxc-start", os.X_OK):
            return bin_dir.rstrip("/")
        raise PermissionError(
            f"Cannot execute 'lxc-start' in '{bin_dir}' provided in LXCIFY_LXC_BIN_DIR "
            "environment variable")
    if os.access("/usr/bin/lxc-start", os.X_OK):
        return "/usr/bin"
    raise FileNotFoundError("No lxc-start found in /usr/bin and $LXCIFY_LXC_BIN_DIR not defined")


def get_lxc_command(tool: str, bin_dir: Optional[str] = None) -> str:
    """
    Full path of an LXC tool like `lxc-create` or `lxc-attach`.

    :param tool: name of the tool without the `lxc-` prefix, e.g. `create`
    :param bin_dir: directory having the tools, defaults to :func:`get_lxc_bin_dir()`
    :return: full path of the tool executable
    """
    return f"{bin_dir or get_lxc_bin_dir()}/lxc-{tool}"


def default_lxc_path(home_dir: str, bin_dir: Optional[str] = None) -> str:
    """
    Determine the directory where LXC keeps the containers of the current user.
    The $LXCIFY_LXC_PATH environment variable takes precedence over `lxc-config lxc.lxcpath`
    which in turn takes precedence over the standard unprivileged location.

    :param home_dir: home directory of the current user
    :param bin_dir: directory having the LXC tools, if known
    :return: the LXC path without a trailing slash
    """
    if lxc_path := os.environ.get("LXCIFY_LXC_PATH"):
        return lxc_path.rstrip("/")
    try:
        result = subprocess.run([get_lxc_command("config", bin_dir), "lxc.lxcpath"],
                                check=False, capture_output=True)
        if result.returncode == 0 and (lxc_path := result.stdout.decode("utf-8").strip()):
            return lxc_path.rstrip("/")
    except OSError:
        pass  # fall back to the standard location below
    return f"{home_dir}/.local/share/lxc"


class Environ:
    """
    Holds the details of the invoking user that the containers are provisioned for, like the
    uid/gid used for the identity map, $HOME and the per-user applications directory.
    """

    def __init__(self, home_dir: Optional[str] = None, lxc_path: Optional[str] = None,
                 uid: Optional[int] = None, gid: Optional[int] = None,
                 applications_dir: Optional[str] = None):
        """
        Initialize the `Environ` object capturing the current user's environment.

        :param home_dir: if a non-default user home directory has to be set
        :param lxc_path: if a non-default LXC path has to be used, defaults to the result
                         of :func:`default_lxc_path`
        :param uid: if a different host uid should be mapped into the container
        :param gid: if a different host gid should be mapped into the container
        :param applications_dir: if a non-default directory for desktop entries has to be used
        """
        self._home_dir = home_dir or os.path.expanduser("~")
        self._home_dir = self._home_dir.rstrip("/")
        self._user = getpass.getuser()
        self._uid = os.getuid() if uid is None else uid
        self._gid = os.getgid() if gid is None else gid
        self._lxc_path = lxc_path.rstrip("/") if lxc_path else ""
        self._user_base = user_base = site.getuserbase()
        self._user_applications_dir = applications_dir or f"{user_base}/share/applications"
        self._display = os.environ.get("DISPLAY", "")

    @property
    def home(self) -> str:
        """home directory of the current user"""
        return self._home_dir

    @property
    def user(self) -> str:
        """login name of the current user"""
        return self._user

    @property
    def uid(self) -> int:
        """host uid that is mapped 1:1 into the container"""
        return self._uid

    @property
    def gid(self) -> int:
        """host gid that is mapped 1:1 into the container"""
        return self._gid

    @property
    def lxc_path(self) -> str:
        """directory where LXC keeps the containers (resolved on first access)"""
        if not self._lxc_path:
            self._lxc_path = default_lxc_path(self._home_dir)
        return self._lxc_path

    @property
    def user_base(self) -> str:
        """User's local base data directory which is typically ~/.local"""
        return self._user_base

    @property
    def user_applications_dir(self) -> str:
        """User's local applications directory that holds the .desktop files"""
        return self._user_applications_dir

    @property
    def display(self) -> str:
        """value of $DISPLAY in the current session"""
        return self._display

    @staticmethod
    def resource(name: str) -> PathName:
        """
        Locate a file bundled in the `lxcify/conf/resources` directory of the package.

        :param name: name of the resource file
        :return: the resource as a `Path` or `Traversable`
        """
        return files("lxcify").joinpath("conf").joinpath("resources").joinpath(name)
