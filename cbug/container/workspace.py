# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Mirror a local directory into the container's working directory.

A sync is two engine calls: empty the remote working directory, then copy
the local tree in. It is not atomic. If the copy fails the remote
directory is left empty; callers needing atomicity must stage a local
copy first.
"""

from __future__ import annotations

import logging
from pathlib import Path

from cbug.container._engine import DockerEngine
from cbug.container.types import DEFAULT_WORKING_DIR


logger = logging.getLogger(__name__)


class WorkspaceSync:
    """Copies the user's workspace into a running container."""

    def __init__(
        self,
        engine: DockerEngine,
        *,
        working_dir: str = DEFAULT_WORKING_DIR,
    ) -> None:
        self._engine = engine
        self._working_dir = working_dir

    def clean(self, container_id: str) -> None:
        """Remove every entry (including dotfiles) under the working dir."""
        logger.info(
            "Cleaning %s in container %s", self._working_dir, container_id
        )
        self._engine.run_in(
            container_id,
            ["find", self._working_dir, "-mindepth", "1", "-delete"],
        )

    def sync(self, container_id: str, local_dir: Path) -> None:
        """Replace the working directory's contents with *local_dir*.

        Raises:
            NotADirectoryError: If *local_dir* is not a directory.
            EngineError: If either engine call fails.
        """
        if not local_dir.is_dir():
            raise NotADirectoryError(f"Not a directory: {local_dir}")
        self.clean(container_id)
        logger.info(
            "Copying %s to %s:%s", local_dir, container_id, self._working_dir
        )
        self._engine.copy_into(local_dir, container_id, self._working_dir)
