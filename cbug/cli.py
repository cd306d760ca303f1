# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""cbug CLI: multi-command entry point.

Provides ``cbug [flags] <command> [args]``. Anything that is not one of
the built-in commands is run inside the debug container with the local
terminal attached. Running ``cbug`` with no arguments prints usage.

Commands:

* ``help``         : show usage
* ``info``         : show version and configuration
* ``config``       : change the default container name and exit policy
* ``upgrade``      : pull newer debugger images and upgrade cbug
* ``remove [name]``: remove a cbug container
* ``clean``        : empty the container's working directory
* ``sync``         : copy the current directory into the container
* ``attach``       : attach the terminal to the container's shell
"""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
from dataclasses import replace
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import TextIO

from cbug.config import (
    DEFAULT_CONTAINER_NAME,
    CbugConfig,
    ConfigError,
    get_config_path,
)
from cbug.container import (
    Architecture,
    CbugError,
    CommandRequest,
    ContainerNotFoundError,
    ContainerResolver,
    CreateSpec,
    DockerEngine,
    LifecycleController,
    ProcessBridge,
    SessionPolicy,
    WorkspaceSync,
    upgrade_images,
)
from cbug.logging import configure_logging


logger = logging.getLogger(__name__)

#: Version reported by a source checkout that is not installed.
DEV_VERSION = "dev"

_USAGE = """\
usage: cbug [flags] <command> [args...]

commands:
  clean             Remove all files from the cbug container
  sync              Clean, then copy the current directory to cbug
  config [default]  Configure (or reset) the default behaviour of cbug
  remove [name]     Remove the container called name (default: the
                    configured one). Never removes non-cbug containers
  attach            Attach the current terminal to the cbug container
  upgrade           Check for updates to cbug and its image
  info              View information on cbug
  <anything else>   Passed directly to the cbug container

flags (only used when passing commands to the container):
  -k, --keep-alive  Do not pause or shut down the container on exit
  -s, --shutdown    Shut down the container on exit
  -p, --pause       Pause the container on exit
  -S, --sync        Sync files before running the command
  -t, --tty         Run the command through a tty. Good for formatting,
                    but breaks streaming files into stdin (< input.txt)
  -n, --name NAME   Use another container for this command only
  -x, --x86         Force an x86 container (emulated if necessary)
  -a, --arm         Force an arm container (emulated if necessary)
  --config PATH     Path to cbug.yaml (default: ~/.config/cbug/cbug.yaml)
  --debug           Enable debug logging\
"""


# ── Terminal colors ─────────────────────────────────────────────────


def _use_color(stream: TextIO | None = None) -> bool:
    """Determine whether to use ANSI color codes in output.

    Returns True when *stream* (stdout by default) is a TTY and the
    ``NO_COLOR`` environment variable is not set.  ``TERM=dumb`` also
    disables color.
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    if stream is None:
        stream = sys.stdout
    return stream.isatty()


class _Style:
    """ANSI escape helpers.  All methods return plain text when color is off."""

    def __init__(self, color: bool) -> None:
        self._on = color

    def _wrap(self, code: str, text: str) -> str:
        if not self._on:
            return text
        return f"\033[{code}m{text}\033[0m"

    def bold(self, text: str) -> str:
        return self._wrap("1", text)

    def green(self, text: str) -> str:
        return self._wrap("32", text)

    def red(self, text: str) -> str:
        return self._wrap("31", text)

    def yellow(self, text: str) -> str:
        return self._wrap("33", text)

    def dim(self, text: str) -> str:
        return self._wrap("2", text)


# ── Output helpers ──────────────────────────────────────────────────


def _say(message: str) -> None:
    """Print a progress message to stderr.

    Messages ending in ``...`` leave the line open for a following
    ``Done``.  Progress never goes to stdout, which belongs to the
    command running in the container.
    """
    end = " " if message.endswith("...") else "\n"
    print(message, end=end, file=sys.stderr, flush=True)


def _error(message: str) -> None:
    s = _Style(_use_color(sys.stderr))
    print(f"{s.red('Error:')} {message}", file=sys.stderr)


def _get_version() -> str:
    """Installed cbug version, or ``dev`` for a source checkout."""
    try:
        return version("cbug")
    except PackageNotFoundError:
        return DEV_VERSION


# ── Argument parsing ────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    """Parser for the flags that precede the command.

    Everything from the first positional argument on is kept verbatim,
    so flags meant for the command in the container are never taken by
    cbug.
    """
    parser = argparse.ArgumentParser(
        prog="cbug",
        description="A standardised environment for debugging",
        usage="cbug [flags] <command> [args...]",
        add_help=False,
    )

    policy = parser.add_mutually_exclusive_group()
    policy.add_argument(
        "-k",
        "--keep-alive",
        dest="policy",
        action="store_const",
        const=SessionPolicy.KEEP_ALIVE,
    )
    policy.add_argument(
        "-p",
        "--pause",
        dest="policy",
        action="store_const",
        const=SessionPolicy.PAUSE,
    )
    policy.add_argument(
        "-s",
        "--shutdown",
        dest="policy",
        action="store_const",
        const=SessionPolicy.STOP,
    )

    arch = parser.add_mutually_exclusive_group()
    arch.add_argument(
        "-x",
        "--x86",
        dest="architecture",
        action="store_const",
        const=Architecture.X86,
    )
    arch.add_argument(
        "-a",
        "--arm",
        dest="architecture",
        action="store_const",
        const=Architecture.ARM,
    )

    parser.add_argument("-S", "--sync", action="store_true")
    parser.add_argument("-t", "--tty", action="store_true")
    parser.add_argument("-n", "--name", default=None)
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--config", type=Path, default=None, metavar="PATH")
    parser.add_argument("command", nargs=argparse.REMAINDER)
    return parser


# ── Session plumbing ────────────────────────────────────────────────


class _Session:
    """Collaborators for one invocation against one container."""

    def __init__(self, args: argparse.Namespace, config: CbugConfig) -> None:
        self.args = args
        self.config = config
        self.name: str = args.name or config.container_name
        self.policy: SessionPolicy = args.policy or config.exit_policy
        self.engine = DockerEngine(config.container_command)
        self.resolver = ContainerResolver(
            self.engine, repository=config.image, on_progress=_say
        )
        self.lifecycle = LifecycleController(
            self.engine,
            stop_grace_seconds=config.stop_grace_seconds,
            on_progress=_say,
        )
        self.workspace = WorkspaceSync(
            self.engine, working_dir=config.working_dir
        )

    def create_spec(self) -> CreateSpec:
        arch = self.args.architecture or self.config.architecture
        return CreateSpec(
            repository=self.config.image,
            tag=arch.tag,
            platform=arch.platform,
            working_dir=self.config.working_dir,
        )

    def start(self) -> str:
        """Resolve or create the container and make sure it runs."""
        container_id = self.resolver.ensure_container(
            self.name, self.create_spec(), forced=self.args.architecture
        )
        self.lifecycle.ensure_running(container_id)
        return container_id

    def sync(self, container_id: str) -> None:
        _say("Syncing files between current directory and cbug...")
        self.workspace.sync(container_id, Path.cwd())
        _say("Done")


# ── help / info / config ────────────────────────────────────────────


def cmd_help(
    args: argparse.Namespace, config: CbugConfig, argv: list[str]
) -> int:
    """Print usage."""
    print(_USAGE)
    return 0


def cmd_info(
    args: argparse.Namespace, config: CbugConfig, argv: list[str]
) -> int:
    """Print version and configuration.  No engine call."""
    s = _Style(_use_color())
    print(s.bold(f"cbug {_get_version()}"))
    print(f"          architecture: {config.architecture.readable}")
    print(f"        container name: {config.container_name}")
    print(f"default exit behaviour: {config.exit_policy.value}")
    print(f"                 image: {config.image}")
    print(f"                engine: {config.container_command}")
    print(f"           config file: {args.config or get_config_path()}")
    return 0


def _prompt(message: str) -> str:
    try:
        return input(message).strip()
    except EOFError:
        return ""


def cmd_config(
    args: argparse.Namespace, config: CbugConfig, argv: list[str]
) -> int:
    """Change the default container name and exit behaviour.

    ``cbug config default`` resets both to their defaults.
    """
    if argv and argv[0] == "default":
        reset = replace(
            config,
            container_name=DEFAULT_CONTAINER_NAME,
            exit_policy=SessionPolicy.STOP,
        )
        reset.save(args.config)
        print("reset cbug to its default configuration")
        return 0

    name = _prompt(
        f"New cbug container name (leave empty to remain as "
        f'"{config.container_name}"): '
    )
    behaviour = _prompt(
        f"New container default behaviour (shutdown, pause, or keep-alive. "
        f'Leave blank to remain as "{config.exit_policy.value}"): '
    )
    if behaviour and behaviour not in {p.value for p in SessionPolicy}:
        _error(f"unrecognized behaviour: {behaviour}")
        return 1

    updated = replace(
        config,
        container_name=name or config.container_name,
        exit_policy=(
            SessionPolicy.parse(behaviour) if behaviour else config.exit_policy
        ),
    )
    path = updated.save(args.config)
    print(f"Saved {path}")
    return 0


# ── upgrade ─────────────────────────────────────────────────────────


def cmd_upgrade(
    args: argparse.Namespace, config: CbugConfig, argv: list[str]
) -> int:
    """Pull newer debugger images, then upgrade cbug itself.

    Updated images do not change existing containers; they have to be
    removed and recreated to use the new version.
    """
    s = _Style(_use_color())
    if _get_version() == DEV_VERSION:
        print(
            "You are currently on a development version of cbug, so no "
            "updates are allowed."
        )
        return 0

    print(s.dim("Checking for and downloading new cbug images..."))
    engine = DockerEngine(config.container_command)
    upgraded = upgrade_images(engine, config.image)
    for reference in upgraded:
        print(
            f"Upgraded image {reference}. {s.yellow('Existing containers')} "
            f"still use the old version; remove and recreate them to "
            f"upgrade."
        )
    if not upgraded:
        print("Already on latest image")

    print(s.dim("Upgrading cbug..."))
    try:
        result = subprocess.run(
            ["uv", "tool", "upgrade", "cbug"],
            capture_output=True,
            text=True,
            timeout=120,
        )
    except FileNotFoundError:
        _error("uv not found on PATH.")
        return 1
    except subprocess.TimeoutExpired:
        _error("uv tool upgrade timed out.")
        return 1

    if result.returncode != 0:
        detail = result.stderr.strip() or result.stdout.strip()
        _error(f"uv tool upgrade failed. {detail}".strip())
        return 1

    upgrade_output = result.stdout.strip() or result.stderr.strip()
    if upgrade_output:
        print(upgrade_output)
    print(s.green("Update complete."))
    return 0


# ── remove ──────────────────────────────────────────────────────────


def cmd_remove(
    args: argparse.Namespace, config: CbugConfig, argv: list[str]
) -> int:
    """Remove a cbug container.  A missing container is not an error."""
    session = _Session(args, config)
    name = argv[0] if argv else session.name
    _say("Removing container...")
    try:
        session.resolver.remove(name)
    except ContainerNotFoundError as e:
        print(file=sys.stderr)
        print(f"Could not find container \"{e.name}\"")
        return 0
    _say("Done")
    return 0


# ── clean / sync ────────────────────────────────────────────────────


def cmd_clean(
    args: argparse.Namespace, config: CbugConfig, argv: list[str]
) -> int:
    """Empty the container's working directory."""
    session = _Session(args, config)
    container_id = session.start()
    with session.lifecycle.session(container_id, session.policy):
        _say("Cleaning container...")
        session.workspace.clean(container_id)
        _say("Done")
    return 0


def cmd_sync(
    args: argparse.Namespace, config: CbugConfig, argv: list[str]
) -> int:
    """Replace the working directory with the current directory."""
    session = _Session(args, config)
    container_id = session.start()
    with session.lifecycle.session(container_id, session.policy):
        session.sync(container_id)
    return 0


# ── attach / exec ───────────────────────────────────────────────────


def _bridge(session: _Session, request: CommandRequest) -> int:
    """Run *request*, applying the exit policy however it ends.

    The request is retargeted at the resolved container ID so the
    command reaches the container that was started, not whatever holds
    the name by the time the engine runs it.
    """
    container_id = session.start()
    if request.sync:
        session.sync(container_id)

    request = replace(request, container=container_id)
    bridge = ProcessBridge(session.engine)
    with session.lifecycle.session(container_id, session.policy):
        outcome = bridge.run(request)
    return outcome.exit_status


def cmd_attach(
    args: argparse.Namespace, config: CbugConfig, argv: list[str]
) -> int:
    """Attach the terminal to the container's main process."""
    session = _Session(args, config)
    request = CommandRequest(
        container=session.name, tty=args.tty, sync=args.sync, attach=True
    )
    return _bridge(session, request)


def cmd_exec(
    args: argparse.Namespace, config: CbugConfig, argv: list[str]
) -> int:
    """Run *argv* inside the container."""
    session = _Session(args, config)
    request = CommandRequest(
        container=session.name, argv=argv, tty=args.tty, sync=args.sync
    )
    return _bridge(session, request)


# ── CLI plumbing ────────────────────────────────────────────────────


_DISPATCH: dict[str, str] = {
    "help": "cmd_help",
    "info": "cmd_info",
    "config": "cmd_config",
    "upgrade": "cmd_upgrade",
    "remove": "cmd_remove",
    "clean": "cmd_clean",
    "sync": "cmd_sync",
    "attach": "cmd_attach",
}


def main(argv: list[str]) -> int:
    """Parse *argv* and run the selected command.

    Returns:
        Exit code: the remote command's status for commands run in the
        container, 1 for cbug errors, 0 otherwise.  Conflicting flags
        make the parser exit with status 2 before anything else runs.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=logging.DEBUG if args.debug else logging.WARNING)

    if args.help or not args.command:
        print(_USAGE)
        return 0

    try:
        config = CbugConfig.from_yaml(args.config)
    except ConfigError as e:
        _error(f"Configuration error: {e}")
        return 1

    command, rest = args.command[0], args.command[1:]
    if command in _DISPATCH:
        handler_name = _DISPATCH[command]
    else:
        handler_name = "cmd_exec"
        rest = args.command

    # Look up handler by name so tests can mock individual commands.
    import cbug.cli as _self

    handler = getattr(_self, handler_name)
    logger.debug("Dispatching %r to %s", command, handler_name)
    try:
        return handler(args, config, rest)
    except CbugError as e:
        print(file=sys.stderr)
        _error(str(e))
        return 1
    except OSError as e:
        _error(str(e))
        return 1


def cli() -> None:
    """Entry point for ``cbug``."""
    sys.exit(main(sys.argv[1:]))
