"""
Code for the `lxcify` script that provisions an LXC container for a desktop application
described by a YAML template.
"""

import argparse
import shlex
import sys
from typing import Optional

from tabulate import tabulate

from lxcify.app import App
from lxcify.cmd import parser_version_check
from lxcify.config import Consts
from lxcify.container import Container
from lxcify.container import config_path as lxc_config_path
from lxcify.container import network_probe, settle_delay, start_timeout
from lxcify.env import Environ
from lxcify.errors import LxcifyError, error_chain
from lxcify.idmap import id_map_items
from lxcify.print import Reporter, fgcolor, print_color, print_error
from lxcify.template import load_template


def main() -> None:
    """main function for `lxcify` script"""
    sys.exit(main_argv(sys.argv[1:]))


def main_argv(argv: list[str], reporter: Optional[Reporter] = None) -> int:
    """
    Main entrypoint of `lxcify` that takes a list of arguments which are usually the
    command-line arguments of the `main()` function. Pass ["-h"]/["--help"] to see all the
    available arguments with help message for each.

    :param argv: arguments to the function (main function passes `sys.argv[1:]`)
    :param reporter: the :class:`Reporter` to use instead of one created from the arguments
    :return: the exit code of the program
    """
    args = parse_args(argv)
    reporter = reporter or Reporter(verbose=args.verbose)
    try:
        provision(args, reporter)
    except LxcifyError as err:
        for idx, msg in enumerate(error_chain(err)):
            print_error(f"{'FAILURE: ' if idx == 0 else '  caused by: '}{msg}")
        return 1
    except KeyboardInterrupt:
        print_error("Interrupted")
        return 130
    return 0


def parse_args(argv: list[str]) -> argparse.Namespace:
    """
    Parse command-line arguments for the program and return the result :class:`argparse.Namespace`.

    :param argv: the list of arguments to be parsed
    :return: the result of parsing using the `argparse` library as a :class:`argparse.Namespace`
    """
    parser = argparse.ArgumentParser(
        description="Create an unprivileged LXC container for a desktop application, install "
                    "the application in it and add a launcher for it on the host desktop")
    parser.add_argument("-c", "--config", type=str, required=True,
                        help="path of the YAML template describing the application")
    parser.add_argument("-n", "--name", type=str, required=True,
                        help="name of the container to create")
    parser.add_argument("-P", "--lxcpath", type=str,
                        help="directory of the LXC containers (default is $LXCIFY_LXC_PATH, "
                             "else 'lxc-config lxc.lxcpath', else ~/.local/share/lxc)")
    parser.add_argument("--start-timeout", type=float, default=Consts.start_timeout(),
                        help="seconds to wait for the container to be running "
                             f"(default is {Consts.start_timeout()})")
    parser.add_argument("--settle-delay", type=float, default=Consts.settle_delay(),
                        help="seconds to wait for the container network after start when no "
                             f"--network-probe is given (default is {Consts.settle_delay()})")
    parser.add_argument("--network-probe", type=str,
                        help="command run repeatedly in the container after start until it "
                             "succeeds, e.g. 'getent hosts archive.ubuntu.com'")
    parser.add_argument("--probe-timeout", type=float, default=Consts.start_timeout(),
                        help="seconds to keep trying the --network-probe command "
                             f"(default is {Consts.start_timeout()})")
    parser.add_argument("--dry-run", action="store_true",
                        help="only validate the template and show what would be done")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="show the commands invoked and other debug messages")
    parser_version_check(parser, argv)
    return parser.parse_args(argv)


def provision(args: argparse.Namespace, reporter: Reporter) -> None:
    """
    Validate the template, show the summary and run the provisioning pipeline (or show the
    configuration that would be applied if `--dry-run` was given).

    :param args: the parsed command-line arguments
    :param reporter: the :class:`Reporter` for progress and errors
    """
    app_template = load_template(args.config)
    # validate completely before anything is changed in the runtime
    app = app_template.app()
    options = app_template.container_options()
    options.extend((start_timeout(args.start_timeout), settle_delay(args.settle_delay)))
    if args.network_probe:
        options.append(network_probe(shlex.split(args.network_probe), args.probe_timeout))
    if args.lxcpath:
        options.append(lxc_config_path(args.lxcpath))
    env = Environ(lxc_path=args.lxcpath)
    container = Container(args.name, *options, reporter=reporter, env=env)

    print(summary_table(container, app))
    if args.dry_run:
        print_color("Configuration that would be applied:", fg=fgcolor.cyan)
        for item in id_map_items(env.uid, env.gid) + container.config_items():
            print(f"  {item}")
        return
    if not env.display:
        reporter.warn("$DISPLAY is not set so the application can only be launched later from a "
                      "graphical session")
    container.provision(app)


def summary_table(container: Container, app: App) -> str:
    """
    Format the details of the container and the application as a table for display.

    :param container: the :class:`Container` to be provisioned
    :param app: the :class:`App` to install
    :return: the formatted table
    """
    mounts = "\n".join(f"{m.host_path} -> /{m.container_path} ({m.create_type})"
                       for m in container.mounts)
    launcher = app.desktop_launcher
    rows = [
        ("Container", container.name),
        ("LXC path", container.config_path),
        ("Template", container.template),
        ("Target", f"{container.distro}/{container.release}/{container.arch}"),
        ("Mounts", mounts or "none"),
        ("Pulse audio", "shared" if container.pulse_audio else "not shared"),
        ("Launch command", app.launch_command),
        ("Desktop launcher", f"{launcher.name} ({launcher.icon_path})" if launcher else "none"),
    ]
    return tabulate(rows, tablefmt="rounded_grid", disable_numparse=True)
