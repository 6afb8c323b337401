"""
Host side artifacts that run the application in its container: the launch script and the
desktop entry.
"""

import os
from typing import Optional

from lxcify import __version__ as product_version

from .app import App, DesktopLauncher
from .config import Consts, StaticConfiguration
from .env import Environ
from .errors import FileOperationError
from .print import Reporter, quiet_reporter


def render_launch_script(conf: StaticConfiguration, launch_command: str) -> str:
    """
    Render the launch script which starts the container if required, runs the application as
    the container user with the display and audio forwarded, and stops the container again
    only if it was started by the script.

    :param conf: the :class:`StaticConfiguration` for the container
    :param launch_command: command that starts the application inside the container
    :return: contents of the launch script
    """
    tmpl = Environ.resource("launch.sh.template").read_text(encoding="utf-8")
    return tmpl.format(version=product_version, name=conf.box_name, lxc_path=conf.lxc_path,
                       launch_command=launch_command, pulse_socket=Consts.pulse_socket(),
                       user=Consts.container_user(), stop_timeout=Consts.stop_timeout())


def render_desktop_entry(conf: StaticConfiguration, launcher: DesktopLauncher) -> str:
    """
    Render the desktop entry for the application. The categories are written back-to-back
    without any separator to stay compatible with entries generated earlier, and the
    `Categories` line is left out when there are none.

    :param conf: the :class:`StaticConfiguration` for the container
    :param launcher: the :class:`DesktopLauncher` of the application
    :return: contents of the `.desktop` file
    """
    categories = f"Categories={''.join(launcher.categories)}\n" if launcher.categories else ""
    tmpl = Environ.resource("desktop.template").read_text(encoding="utf-8")
    return tmpl.format(name=launcher.name, comment=launcher.comment,
                       launch_script=conf.launch_script, rootfs=conf.rootfs,
                       icon_path=launcher.icon_path, categories=categories)


class LauncherMaterializer:
    """
    Writes the launch script into the container directory and the desktop entry into the
    user's applications directory.
    """

    def __init__(self, conf: StaticConfiguration, reporter: Optional[Reporter] = None):
        self._conf = conf
        self._reporter = reporter or quiet_reporter()

    def materialize(self, app: App) -> list[str]:
        """
        Write all the host artifacts for the application.

        :param app: the installed application
        :return: paths of the files that were written
        """
        written = [self.write_launch_script(app.launch_command)]
        if app.desktop_launcher:
            written.append(self.write_desktop_entry(app.desktop_launcher))
        return written

    def write_launch_script(self, launch_command: str) -> str:
        """write the launch script and return its path"""
        script = self._conf.launch_script
        self._reporter.info(f"Writing launch script '{script}'")
        _write_file(script, render_launch_script(self._conf, launch_command), 0o700)
        return script

    def write_desktop_entry(self, launcher: DesktopLauncher) -> str:
        """write the desktop entry and return its path"""
        apps_dir = self._conf.env.user_applications_dir
        desktop_file = self._conf.desktop_file(launcher.name)
        self._reporter.info(f"Writing desktop entry '{desktop_file}'")
        try:
            os.makedirs(apps_dir, mode=Consts.default_directory_mode(), exist_ok=True)
        except OSError as err:
            raise FileOperationError("creating directory", apps_dir, err) from err
        _write_file(desktop_file, render_desktop_entry(self._conf, launcher), 0o600)
        return desktop_file


def _write_file(path: str, content: str, mode: int) -> None:
    """write a file truncating any existing one and set given permissions"""
    try:
        with open(path, "w", encoding="utf-8") as out_fd:
            out_fd.write(content)
        os.chmod(path, mode)
    except OSError as err:
        raise FileOperationError("writing", path, err) from err
