# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Debugger image presence checks and pulls.

cbug never builds images. It pulls the published debugger image
(``<repository>:<architecture tag>``) the first time a container is
created, and ``cbug upgrade`` re-pulls every tag already present.
"""

from __future__ import annotations

import logging
import time

from cbug.container._engine import DockerEngine


logger = logging.getLogger(__name__)


def image_present(engine: DockerEngine, repository: str, tag: str) -> bool:
    """Check whether ``repository:tag`` exists locally.

    Matches on repository and tag; a repository may be listed with or
    without its ``docker.io/`` registry prefix.
    """
    for image in engine.list_images():
        if image.tag != tag:
            continue
        if image.repository in (repository, f"docker.io/{repository}"):
            logger.debug(
                "Found local image %s (%s)", image.reference, image.digest
            )
            return True
    return False


def pull_image(engine: DockerEngine, reference: str) -> bool:
    """Pull one image, timing the download.

    Returns:
        True if the pull changed the local image store.
    """
    logger.info("Pulling image: %s", reference)
    start_time = time.time()
    changed = engine.pull(reference)
    elapsed = time.time() - start_time
    logger.info("Pulled %s in %.2fs (changed=%s)", reference, elapsed, changed)
    return changed


def upgrade_images(engine: DockerEngine, repository: str) -> list[str]:
    """Re-pull every local tag of *repository*.

    A pull that reports "already up to date" is not an error, it just
    does not appear in the result.

    Returns:
        References of the images that were actually updated.
    """
    references: list[str] = []
    for image in engine.list_images():
        if repository not in image.repository or image.tag in ("", "<none>"):
            continue
        if image.reference not in references:
            references.append(image.reference)

    upgraded: list[str] = []
    for reference in references:
        if engine.pull(reference):
            logger.info("Upgraded image %s", reference)
            upgraded.append(reference)
        else:
            logger.debug("Image %s already up to date", reference)
    return upgraded
