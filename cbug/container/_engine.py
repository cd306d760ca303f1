# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Container engine command-line wrapper.

Every engine operation is one synchronous invocation of the engine CLI
(``docker`` by default; ``podman`` accepts the same commands). There are
no retries: a failed call raises and the caller decides what to do.
"""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cbug.container.errors import EngineConnectionError, EngineError
from cbug.container.types import CreateSpec


logger = logging.getLogger(__name__)

# Substrings of engine stderr meaning the daemon is unreachable.
_CONNECTION_FAILURES = (
    "cannot connect to the docker daemon",
    "is the docker daemon running",
    "error during connect",
    "unable to connect to podman",
)

# Printed by ``docker pull`` when the local image is already current.
_UP_TO_DATE = "image is up to date"


@dataclass(frozen=True)
class ContainerSummary:
    """One row of ``ps -a`` output.

    Attributes:
        id: Full container ID.
        names: Container names as reported (may carry a ``/`` prefix).
        image: Image reference or digest.
        status: Engine state word (``running``, ``exited``, ...).
    """

    id: str
    names: tuple[str, ...]
    image: str
    status: str


@dataclass(frozen=True)
class ImageSummary:
    """One row of ``images --digests`` output."""

    repository: str
    tag: str
    digest: str

    @property
    def reference(self) -> str:
        return f"{self.repository}:{self.tag}"


def _is_connection_failure(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in _CONNECTION_FAILURES)


def _json_lines(output: str) -> list[dict[str, Any]]:
    """Parse ``--format '{{json .}}'`` output (one object per line)."""
    rows: list[dict[str, Any]] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            rows.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise EngineError(f"Unexpected engine output: {line!r}") from e
    return rows


def _split_names(raw: object) -> tuple[str, ...]:
    # docker reports "a,b"; podman reports ["a", "b"]
    if isinstance(raw, list):
        return tuple(str(n) for n in raw)
    return tuple(n for n in str(raw or "").split(",") if n)


class DockerEngine:
    """Synchronous client for the container engine CLI.

    Thread Safety: Stateless apart from the command name; safe to share.
    """

    def __init__(self, container_command: str = "docker") -> None:
        self._cmd = container_command

    @property
    def command(self) -> str:
        """Engine executable name."""
        return self._cmd

    def _run(self, *args: str) -> str:
        """Run one engine command and return its stdout.

        Raises:
            EngineConnectionError: If the engine is missing or unreachable.
            EngineError: If the command exits non-zero.
        """
        cmd = [self._cmd, *args]
        logger.debug("Engine call: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise EngineConnectionError(
                f"Unable to run {self._cmd}. Have you installed it on "
                f"your machine?"
            ) from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            if _is_connection_failure(stderr):
                raise EngineConnectionError(
                    f"Unable to connect to {self._cmd}. Is it running?",
                    stderr,
                ) from e
            raise EngineError(
                f"{self._cmd} {args[0]} failed: {stderr or e}", stderr
            ) from e
        return result.stdout

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_containers(self) -> list[ContainerSummary]:
        """List containers in every state."""
        output = self._run("ps", "-a", "--no-trunc", "--format", "{{json .}}")
        return [
            ContainerSummary(
                id=str(row.get("ID") or row.get("Id") or ""),
                names=_split_names(row.get("Names")),
                image=str(row.get("Image", "")),
                status=str(row.get("State", "")),
            )
            for row in _json_lines(output)
        ]

    def inspect(self, container_id: str) -> dict[str, Any]:
        """Return the engine's inspect document for one container."""
        output = self._run("inspect", "--type", "container", container_id)
        try:
            documents = json.loads(output)
        except json.JSONDecodeError as e:
            raise EngineError(
                f"Unexpected inspect output for {container_id}"
            ) from e
        if not documents:
            raise EngineError(f"No such container: {container_id}")
        return documents[0]

    def list_images(self) -> list[ImageSummary]:
        """List local images with their repo digests."""
        output = self._run(
            "images", "--digests", "--no-trunc", "--format", "{{json .}}"
        )
        return [
            ImageSummary(
                repository=str(row.get("Repository", "")),
                tag=str(row.get("Tag", "")),
                digest=str(row.get("Digest", "")),
            )
            for row in _json_lines(output)
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def pull(self, reference: str) -> bool:
        """Pull an image.

        Returns:
            False if the engine reported the image was already up to
            date, True if anything was downloaded.
        """
        output = self._run("pull", reference)
        return _UP_TO_DATE not in output.lower()

    def create(self, name: str, spec: CreateSpec) -> str:
        """Create a container and return its ID."""
        output = self._run(
            "create",
            "--name",
            name,
            "--platform",
            spec.platform,
            "--workdir",
            spec.working_dir,
            "--interactive",
            "--tty",
            spec.image,
        )
        return output.strip()

    def start(self, container_id: str) -> None:
        self._run("start", container_id)

    def stop(self, container_id: str, grace_seconds: int) -> None:
        """Stop a container, killing it after *grace_seconds*."""
        self._run("stop", "--time", str(grace_seconds), container_id)

    def pause(self, container_id: str) -> None:
        self._run("pause", container_id)

    def unpause(self, container_id: str) -> None:
        self._run("unpause", container_id)

    def remove(self, container_id: str) -> None:
        """Force-remove a container together with its anonymous volumes."""
        self._run("rm", "--force", "--volumes", container_id)

    def copy_into(self, source: Path, container: str, dest: str) -> None:
        """Recursively copy the contents of *source* to *dest*."""
        self._run("cp", f"{source}/.", f"{container}:{dest}")

    def run_in(self, container: str, argv: list[str]) -> str:
        """Run a non-interactive command inside a running container."""
        return self._run("exec", container, *argv)

    # ------------------------------------------------------------------
    # Interactive sessions (spawned by the process bridge)
    # ------------------------------------------------------------------

    def exec_argv(
        self, container: str, argv: list[str], *, tty: bool
    ) -> list[str]:
        """Command line that runs *argv* in *container* with stdin open."""
        cmd = [self._cmd, "exec", "--interactive"]
        if tty:
            cmd.append("--tty")
        cmd.append(container)
        cmd.extend(argv)
        return cmd

    def attach_argv(self, container: str) -> list[str]:
        """Command line that attaches to the container's main process."""
        return [self._cmd, "attach", container]
