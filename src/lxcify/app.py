"""
The application that is installed into a container and launched from the host desktop.
"""

from dataclasses import dataclass, field
from typing import Optional

from .mount import Mount


@dataclass(frozen=True)
class DesktopLauncher:
    """
    Desktop entry created on the host for the application.

    Attributes:
        name: display name of the entry which is also used as the `.desktop` file name
        comment: tooltip shown for the entry
        icon_path: absolute path of the icon inside the container
        categories: desktop menu categories of the application
    """
    name: str
    icon_path: str
    comment: str = ""
    categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class App:
    """
    Application to be provisioned in a container.

    Attributes:
        install_script: script run as root inside the container to install the application;
                        it should be safe to run more than once
        launch_command: command that starts the application inside the container
        share_pulse_audio: whether the host's audio server is shared with the container
        mounts: bind mounts required by the application
        desktop_launcher: desktop entry to create on the host, if any
    """
    install_script: str
    launch_command: str
    share_pulse_audio: bool = False
    mounts: tuple[Mount, ...] = field(default_factory=tuple)
    desktop_launcher: Optional[DesktopLauncher] = None
