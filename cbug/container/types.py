# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Type definitions for the container library.

Provides the core types used throughout container management:
ContainerState, SessionPolicy, Architecture, ContainerRecord, CreateSpec,
CommandRequest and ExitOutcome.
"""

from __future__ import annotations

import platform
import signal
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


#: Working directory inside every cbug container.
DEFAULT_WORKING_DIR = "/debugger"


class ContainerState(Enum):
    """Lifecycle state of a named container as reported by the engine."""

    ABSENT = "absent"
    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"

    @classmethod
    def from_inspect(cls, state: dict[str, Any]) -> ContainerState:
        """Derive the state from the ``State`` object of ``inspect``.

        The ``Paused`` and ``Running`` flags take precedence over the
        status string; a paused container also reports ``Running``.
        """
        if state.get("Paused"):
            return cls.PAUSED
        if state.get("Running"):
            return cls.RUNNING
        return cls.from_status(str(state.get("Status", "")))

    @classmethod
    def from_status(cls, status: str) -> ContainerState:
        """Derive the state from an engine status word (``ps`` output)."""
        status = status.lower().strip()
        if status in ("running", "restarting"):
            return cls.RUNNING
        if status == "paused":
            return cls.PAUSED
        if status == "created":
            return cls.CREATED
        return cls.STOPPED


class SessionPolicy(Enum):
    """What happens to the container once cbug exits.

    Values are the words used in the config file and on the command line.
    """

    KEEP_ALIVE = "keep-alive"
    PAUSE = "pause"
    STOP = "shutdown"

    @classmethod
    def parse(cls, text: str | None) -> SessionPolicy:
        """Parse a configured default; unknown values mean STOP."""
        for policy in cls:
            if policy.value == text:
                return policy
        return cls.STOP


class Architecture(Enum):
    """Container architecture, named by the image tag that provides it."""

    X86 = "x86"
    ARM = "latest"

    @property
    def tag(self) -> str:
        """Image tag carrying this architecture."""
        return self.value

    @property
    def platform(self) -> str:
        """Engine ``--platform`` value."""
        if self is Architecture.X86:
            return "linux/amd64"
        return "linux/arm64"

    @property
    def readable(self) -> str:
        return "x86" if self is Architecture.X86 else "arm"

    @classmethod
    def parse(cls, text: str) -> Architecture:
        """Parse an architecture name.

        Raises:
            ValueError: If the name is not recognised.
        """
        name = text.lower().strip()
        if name in ("x86", "x86_64", "amd64"):
            return cls.X86
        if name in ("arm", "arm64", "aarch64"):
            return cls.ARM
        raise ValueError(f"Unrecognized architecture: {text!r}")

    @classmethod
    def host(cls) -> Architecture:
        """Architecture of the local machine (x86 if unknown)."""
        try:
            return cls.parse(platform.machine())
        except ValueError:
            return cls.X86


@dataclass(frozen=True)
class ContainerRecord:
    """A container found by name.

    Attributes:
        id: Engine container ID.
        name: Container name without the engine's ``/`` prefix.
        image: Image reference the container was created from. Some
            platforms report a ``sha256:`` digest here instead of a tag.
        state: Lifecycle state at the time of the listing.
    """

    id: str
    name: str
    image: str
    state: ContainerState


@dataclass(frozen=True)
class CreateSpec:
    """How to create a new cbug container.

    The container is always created with stdin kept open and a
    pseudo-tty, so ``attach`` gets an interactive shell.

    Attributes:
        repository: Image repository without a tag.
        tag: Image tag selecting the architecture.
        platform: Engine platform string (e.g. ``linux/arm64``).
        working_dir: Working directory inside the container.
    """

    repository: str
    tag: str
    platform: str
    working_dir: str = DEFAULT_WORKING_DIR

    @property
    def image(self) -> str:
        """Full image reference (``repository:tag``)."""
        return f"{self.repository}:{self.tag}"


@dataclass(frozen=True)
class CommandRequest:
    """A command to run through the process bridge.

    Attributes:
        container: Target container name.
        argv: Command and arguments (ignored in attach mode).
        tty: Allocate a pseudo-tty (exec mode only).
        sync: Mirror the local workspace before running.
        attach: Attach to the container's primary process instead of
            spawning a new one.
    """

    container: str
    argv: list[str] = field(default_factory=list)
    tty: bool = False
    sync: bool = False
    attach: bool = False


@dataclass(frozen=True)
class ExitOutcome:
    """How a bridged command terminated.

    Exactly one of ``code`` and ``signal`` is set.
    """

    code: int | None = None
    signal: int | None = None

    def __post_init__(self) -> None:
        if (self.code is None) == (self.signal is None):
            raise ValueError("ExitOutcome needs exactly one of code or signal")

    @classmethod
    def from_returncode(cls, returncode: int) -> ExitOutcome:
        """Build from a ``Popen.returncode`` (negative means signal)."""
        if returncode < 0:
            return cls(signal=-returncode)
        return cls(code=returncode)

    @property
    def exit_status(self) -> int:
        """Exit status for the local process.

        Signal termination maps to ``128 + signal`` like a POSIX shell.
        """
        if self.signal is not None:
            return 128 + self.signal
        if self.code is None:
            raise ValueError("ExitOutcome has neither code nor signal")
        return self.code

    def describe(self) -> str:
        if self.signal is not None:
            try:
                name = signal.Signals(self.signal).name
            except ValueError:
                name = str(self.signal)
            return f"terminated by signal {name}"
        return f"exited with code {self.code}"
