# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Find, create and remove the named cbug container.

A container name maps to at most one managed container. A container is
considered managed ("owned") when its image reference contains the
debugger image repository. Windows engines report a ``sha256:`` digest
instead of the image name, so a digest-shaped image is also accepted.

Containers that fail the ownership check are never modified.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from cbug.container._engine import DockerEngine
from cbug.container._image import image_present, pull_image
from cbug.container.errors import (
    ArchitectureMismatch,
    ContainerNotFoundError,
    OwnershipConflict,
)
from cbug.container.types import (
    Architecture,
    ContainerRecord,
    ContainerState,
    CreateSpec,
)


logger = logging.getLogger(__name__)

#: Image references starting with this are digests, not names.
DIGEST_PREFIX = "sha256"

#: Grace period before ``remove`` force-kills a running container.
REMOVE_GRACE_SECONDS = 1


class ContainerResolver:
    """Locates the target container and creates it on first use.

    All calls are synchronous and issue one engine command at a time.
    The resolved container ID is returned to the caller rather than
    stored, so a single resolver can serve any number of names.
    """

    def __init__(
        self,
        engine: DockerEngine,
        *,
        repository: str,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            engine: Container engine client.
            repository: Debugger image repository; doubles as the
                ownership marker.
            on_progress: Optional callback receiving short progress
                messages for slow steps (pull, create).
        """
        self._engine = engine
        self._repository = repository
        self._on_progress = on_progress

    def _progress(self, message: str) -> None:
        if self._on_progress is not None:
            self._on_progress(message)

    def is_owned(self, record: ContainerRecord) -> bool:
        """Whether *record* carries the ownership marker."""
        return self._repository in record.image or record.image.startswith(
            DIGEST_PREFIX
        )

    def resolve(self, name: str) -> ContainerRecord | None:
        """Look up a container by exact name.

        Engine-reported names may carry a leading ``/``; it is ignored.

        Returns:
            The matching container, or None if there is none.
        """
        for summary in self._engine.list_containers():
            for reported in summary.names:
                if reported.lstrip("/") == name:
                    record = ContainerRecord(
                        id=summary.id,
                        name=name,
                        image=summary.image,
                        state=ContainerState.from_status(summary.status),
                    )
                    logger.debug("Resolved %s -> %s", name, record)
                    return record
        logger.debug("No container named %s", name)
        return None

    def ensure_container(
        self,
        name: str,
        spec: CreateSpec,
        *,
        forced: Architecture | None = None,
    ) -> str:
        """Return the ID of the owned container *name*, creating it if needed.

        Idempotent: once created, later calls return the same ID.

        Args:
            name: Container name.
            spec: How to create the container when it does not exist.
            forced: Architecture explicitly requested by the user. An
                existing container built for another architecture is an
                error rather than silently reused.

        Raises:
            OwnershipConflict: If *name* belongs to a foreign container.
            ArchitectureMismatch: If *forced* disagrees with the existing
                container's image.
            EngineError: If any engine call fails.
        """
        record = self.resolve(name)
        if record is not None:
            if not self.is_owned(record):
                logger.warning(
                    "Container %s is not managed by cbug (image %s)",
                    name,
                    record.image,
                )
                raise OwnershipConflict(name, record.image)
            self._check_architecture(record, forced)
            logger.info("Using existing container %s (%s)", name, record.id)
            return record.id

        if not image_present(self._engine, spec.repository, spec.tag):
            self._progress(f"Pulling cbug image {spec.image}...")
            pull_image(self._engine, spec.image)
            self._progress("Done")

        self._progress(f"Creating new container {name}...")
        container_id = self._engine.create(name, spec)
        self._progress("Done")
        logger.info(
            "Created container %s (%s) from %s for %s",
            name,
            container_id,
            spec.image,
            spec.platform,
        )
        return container_id

    def remove(
        self, name: str, *, grace_seconds: int = REMOVE_GRACE_SECONDS
    ) -> str:
        """Stop and force-remove the owned container *name*.

        Returns:
            ID of the removed container.

        Raises:
            ContainerNotFoundError: If there is no container called *name*.
            OwnershipConflict: If *name* belongs to a foreign container.
        """
        record = self.resolve(name)
        if record is None:
            raise ContainerNotFoundError(name)
        if not self.is_owned(record):
            raise OwnershipConflict(name, record.image)

        # A paused container cannot be stopped; force removal kills it.
        if record.state is ContainerState.RUNNING:
            self._engine.stop(record.id, grace_seconds)
        self._engine.remove(record.id)
        logger.info("Removed container %s (%s)", name, record.id)
        return record.id

    def _check_architecture(
        self, record: ContainerRecord, forced: Architecture | None
    ) -> None:
        if forced is None or record.image.startswith(DIGEST_PREFIX):
            return
        if record.image.endswith(f":{forced.tag}"):
            return
        # An untagged reference means the default ("latest") tag
        untagged = ":" not in record.image.rpartition("/")[2]
        if untagged and forced is Architecture.ARM:
            return
        other = (
            Architecture.ARM if forced is Architecture.X86 else Architecture.X86
        )
        raise ArchitectureMismatch(
            f'container "{record.name}" is for {other.readable}. Remove it '
            f"or pass --name to create a new {forced.readable} container"
        )
