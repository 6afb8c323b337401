"""
The YAML application template that describes the application to install, how to launch it and
the container it needs.
"""

from typing import Any, Mapping, Optional

import yaml

from .app import App, DesktopLauncher
from .config import Consts
from .container import Option, host_arch, mounts, pulse_audio, target, template
from .errors import FileOperationError, FormatError, ValidationError
from .mount import Mount


class AppTemplate:
    """
    A parsed application template. Keys that are not recognized are ignored and validation
    of the required keys is deferred to :meth:`app` so that it happens before any change
    to the container runtime.
    """

    def __init__(self, data: Mapping[str, Any]):
        self._data = data

    @property
    def data(self) -> Mapping[str, Any]:
        """the raw mapping read from the template"""
        return self._data

    def _str(self, key: str, data: Optional[Mapping[str, Any]] = None) -> str:
        """read an optional string value of given key"""
        value = (self._data if data is None else data).get(key)
        if value is None:
            return ""
        if isinstance(value, (Mapping, list)):
            raise ValidationError(f"'{key}' should be a string but got: {value!r}")
        return str(value)

    def _mapping(self, key: str) -> Optional[Mapping[str, Any]]:
        value = self._data.get(key)
        if value is None:
            return None
        if not isinstance(value, Mapping):
            raise ValidationError(f"'{key}' should be a mapping but got: {value!r}")
        return value

    def mounts(self) -> tuple[Mount, ...]:
        """the bind mounts listed in `mounts`"""
        entries = self._data.get("mounts") or []
        if not isinstance(entries, list):
            raise ValidationError(f"'mounts' should be a list but got: {entries!r}")
        return tuple(Mount.from_config(entry) for entry in entries)

    @property
    def share_pulse_audio(self) -> bool:
        """whether `share-pulse-audio` is set"""
        return bool(self._data.get("share-pulse-audio", False))

    def desktop_launcher(self) -> Optional[DesktopLauncher]:
        """the `desktop-launcher` entry, if present, which must have a name and an icon path"""
        if (launcher := self._mapping("desktop-launcher")) is None:
            return None
        name = self._str("name", launcher)
        icon_path = self._str("icon-path", launcher)
        if not name:
            raise ValidationError("missing desktop-launcher name")
        if "/" in name:
            raise ValidationError(f"desktop-launcher name cannot have '/': {name!r}")
        if not icon_path:
            raise ValidationError("missing desktop-launcher icon-path")
        categories = launcher.get("categories") or []
        if isinstance(categories, str):
            categories = [categories]
        elif not isinstance(categories, list):
            raise ValidationError(f"'categories' should be a list but got: {categories!r}")
        return DesktopLauncher(name, icon_path, self._str("comment", launcher),
                               tuple(str(category) for category in categories))

    def app(self) -> App:
        """
        Validate the template and build the :class:`App` to install.

        :return: the :class:`App` having the install script, launch command and launcher
        """
        install_script = self._str("install-script")
        if not install_script:
            raise ValidationError("missing install-script")
        launch_command = self._str("launch-command")
        if not launch_command:
            raise ValidationError("missing launch-command")
        return App(install_script, launch_command, self.share_pulse_audio, self.mounts(),
                   self.desktop_launcher())

    def container_options(self) -> list[Option]:
        """
        Options for the :class:`Container` of the application. The keys missing in the optional
        `container` mapping take the default values.

        :return: list of options to pass to the :class:`Container`
        """
        info = self._mapping("container") or {}
        return [
            template(self._str("template", info) or Consts.default_template()),
            target(self._str("distro", info) or Consts.default_distribution(),
                   self._str("release", info) or Consts.default_release(),
                   self._str("arch", info) or host_arch()),
            mounts(*self.mounts()),
            pulse_audio(self.share_pulse_audio),
        ]


def parse_template(text: str) -> AppTemplate:
    """
    Parse an application template.

    :param text: the YAML content of the template
    :return: the parsed :class:`AppTemplate`
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise FormatError(f"YAML error: {err}") from err
    if data is None:
        data = {}
    elif not isinstance(data, dict):
        raise FormatError(
            f"YAML error: template should be a mapping but got {type(data).__name__}")
    return AppTemplate(data)


def load_template(path: str) -> AppTemplate:
    """
    Read and parse the application template in given file.

    :param path: path of the YAML template file
    :return: the parsed :class:`AppTemplate`
    """
    try:
        with open(path, "r", encoding="utf-8") as template_fd:
            text = template_fd.read()
    except OSError as err:
        raise FileOperationError("reading template", path, err) from err
    return parse_template(text)
