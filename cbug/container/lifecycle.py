# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Keep the container runnable and apply the exit policy.

Lifecycle::

    controller = LifecycleController(engine)
    controller.ensure_running(container_id)
    with controller.session(container_id, SessionPolicy.PAUSE):
        ...  # sync, bridge

The policy action runs exactly once when the ``with`` block is left,
whether it exits normally, returns early or raises.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from cbug.container._engine import DockerEngine
from cbug.container.errors import CbugError
from cbug.container.types import ContainerState, SessionPolicy


logger = logging.getLogger(__name__)

#: Seconds the engine waits after SIGTERM before killing the container.
STOP_GRACE_SECONDS = 1


class LifecycleController:
    """Starts, resumes, pauses and stops one container at a time.

    State is never cached: every decision re-inspects the container.
    """

    def __init__(
        self,
        engine: DockerEngine,
        *,
        stop_grace_seconds: int = STOP_GRACE_SECONDS,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self._engine = engine
        self._stop_grace_seconds = stop_grace_seconds
        self._on_progress = on_progress

    def _progress(self, message: str) -> None:
        if self._on_progress is not None:
            self._on_progress(message)

    def state(self, container_id: str) -> ContainerState:
        """Inspect the container's current state."""
        document = self._engine.inspect(container_id)
        return ContainerState.from_inspect(document.get("State", {}))

    def ensure_running(self, container_id: str) -> ContainerState:
        """Bring the container into the running state.

        Exactly one engine call per branch: unpause a paused container,
        start a stopped or freshly created one, nothing if running.
        Failures propagate; nothing is retried.

        Returns:
            The state the container was in before this call.
        """
        state = self.state(container_id)
        if state is ContainerState.PAUSED:
            logger.info("Unpausing container %s", container_id)
            self._engine.unpause(container_id)
        elif state is not ContainerState.RUNNING:
            logger.info(
                "Starting container %s (was %s)", container_id, state.value
            )
            self._engine.start(container_id)
        else:
            logger.debug("Container %s already running", container_id)
        return state

    def apply_exit_policy(
        self, container_id: str, policy: SessionPolicy
    ) -> None:
        """Run the post-session action for *policy*.

        Pausing re-inspects the container first: a container whose main
        process exited during the session (e.g. after ``attach``) cannot
        be paused and is left as it is.
        """
        if policy is SessionPolicy.KEEP_ALIVE:
            logger.debug("Keeping container %s alive", container_id)
        elif policy is SessionPolicy.PAUSE:
            state = self.state(container_id)
            if state is not ContainerState.RUNNING:
                logger.debug(
                    "Not pausing container %s: %s", container_id, state.value
                )
                return
            logger.info("Pausing container %s", container_id)
            self._engine.pause(container_id)
        else:
            self._progress("Stopping cbug container...")
            logger.info(
                "Stopping container %s (grace=%ds)",
                container_id,
                self._stop_grace_seconds,
            )
            self._engine.stop(container_id, self._stop_grace_seconds)
            self._progress("Done")

    @contextmanager
    def session(
        self, container_id: str, policy: SessionPolicy
    ) -> Iterator[None]:
        """Scope in which the container is in use.

        The exit policy is applied once on every way out of the block.
        If the policy action itself fails while an exception is already
        propagating, the failure is logged and the original exception
        wins.
        """
        try:
            yield
        except BaseException:
            try:
                self.apply_exit_policy(container_id, policy)
            except CbugError as e:
                logger.error(
                    "Failed to apply exit policy %s to %s: %s",
                    policy.value,
                    container_id,
                    e,
                )
            raise
        else:
            self.apply_exit_policy(container_id, policy)
