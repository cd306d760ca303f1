# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures for container tests."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from cbug.container._engine import ContainerSummary, ImageSummary
from cbug.container.types import CreateSpec


REPOSITORY = "eleanormally/cpp-memory-debugger"

#: Engine calls that change engine state.
MUTATIONS = frozenset(
    {"pull", "create", "start", "stop", "pause", "unpause", "remove", "cp"}
)


@dataclass
class FakeContainer:
    id: str
    name: str
    image: str
    status: str = "created"
    paused: bool = False


@dataclass
class FakeEngine:
    """In-memory stand-in for DockerEngine.

    Every call is appended to ``calls`` as ``(operation, *args)``.
    """

    containers: list[FakeContainer] = field(default_factory=list)
    images: list[ImageSummary] = field(default_factory=list)
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    pull_changes: bool = True
    command: str = "docker"
    _next_id: int = 0

    # -- helpers -------------------------------------------------------

    def add(
        self,
        name: str,
        image: str = f"{REPOSITORY}:latest",
        status: str = "exited",
        paused: bool = False,
    ) -> FakeContainer:
        self._next_id += 1
        container = FakeContainer(
            id=f"id{self._next_id}",
            name=name,
            image=image,
            status=status,
            paused=paused,
        )
        self.containers.append(container)
        return container

    def get(self, container_id: str) -> FakeContainer:
        for container in self.containers:
            if container.id == container_id:
                return container
        raise AssertionError(f"unknown container {container_id}")

    def mutations(self) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] in MUTATIONS]

    # -- DockerEngine interface ----------------------------------------

    def list_containers(self) -> list[ContainerSummary]:
        self.calls.append(("ps",))
        return [
            ContainerSummary(
                id=c.id,
                names=(f"/{c.name}",),
                image=c.image,
                status="paused" if c.paused else c.status,
            )
            for c in self.containers
        ]

    def inspect(self, container_id: str) -> dict[str, Any]:
        self.calls.append(("inspect", container_id))
        c = self.get(container_id)
        return {
            "Id": c.id,
            "State": {
                "Status": "paused" if c.paused else c.status,
                "Running": c.status == "running",
                "Paused": c.paused,
            },
        }

    def list_images(self) -> list[ImageSummary]:
        self.calls.append(("images",))
        return list(self.images)

    def pull(self, reference: str) -> bool:
        self.calls.append(("pull", reference))
        repository, _, tag = reference.rpartition(":")
        if not any(i.reference == reference for i in self.images):
            self.images.append(ImageSummary(repository, tag, "sha256:abc"))
        return self.pull_changes

    def create(self, name: str, spec: CreateSpec) -> str:
        self.calls.append(("create", name, spec.image, spec.platform))
        return self.add(name, image=spec.image, status="created").id

    def start(self, container_id: str) -> None:
        self.calls.append(("start", container_id))
        self.get(container_id).status = "running"

    def stop(self, container_id: str, grace_seconds: int) -> None:
        self.calls.append(("stop", container_id, grace_seconds))
        self.get(container_id).status = "exited"

    def pause(self, container_id: str) -> None:
        self.calls.append(("pause", container_id))
        self.get(container_id).paused = True

    def unpause(self, container_id: str) -> None:
        self.calls.append(("unpause", container_id))
        self.get(container_id).paused = False

    def remove(self, container_id: str) -> None:
        self.calls.append(("remove", container_id))
        self.containers.remove(self.get(container_id))

    def copy_into(self, source: Path, container: str, dest: str) -> None:
        self.calls.append(("cp", source, container, dest))

    def run_in(self, container: str, argv: list[str]) -> str:
        self.calls.append(("exec", container, *argv))
        return ""

    def exec_argv(
        self, container: str, argv: list[str], *, tty: bool
    ) -> list[str]:
        flags = ["--interactive", "--tty"] if tty else ["--interactive"]
        return [self.command, "exec", *flags, container, *argv]

    def attach_argv(self, container: str) -> list[str]:
        return [self.command, "attach", container]


def create_mock_process(returncode: int = 0, pid: int = 4242) -> MagicMock:
    """Create a mock Popen object for bridge tests.

    wait() returns *returncode* immediately and send_signal() records
    the relayed signals.
    """
    mock = MagicMock()
    mock.pid = pid
    mock.returncode = returncode
    mock.wait.return_value = returncode
    mock.send_signal.return_value = None
    return mock


@pytest.fixture
def engine() -> FakeEngine:
    """Empty in-memory engine."""
    return FakeEngine()


@pytest.fixture
def spec() -> CreateSpec:
    """CreateSpec for an arm container."""
    return CreateSpec(
        repository=REPOSITORY, tag="latest", platform="linux/arm64"
    )
