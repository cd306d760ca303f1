# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Container session library for cbug.

Owns the lifecycle of the named debug container: resolving or creating
it, keeping it running, mirroring the workspace into it, bridging a
command's terminal and signals into it, and applying the exit policy.
The command line decides what to run; this package decides how.
"""

from cbug.container._engine import DockerEngine
from cbug.container._image import upgrade_images
from cbug.container.bridge import ProcessBridge, relayed_signals
from cbug.container.errors import (
    ArchitectureMismatch,
    BridgeError,
    CbugError,
    ContainerNotFoundError,
    EngineConnectionError,
    EngineError,
    OwnershipConflict,
)
from cbug.container.lifecycle import LifecycleController
from cbug.container.resolver import ContainerResolver
from cbug.container.types import (
    Architecture,
    CommandRequest,
    ContainerRecord,
    ContainerState,
    CreateSpec,
    ExitOutcome,
    SessionPolicy,
)
from cbug.container.workspace import WorkspaceSync


__all__ = [
    # engine
    "DockerEngine",
    "upgrade_images",
    # components
    "ContainerResolver",
    "LifecycleController",
    "ProcessBridge",
    "WorkspaceSync",
    "relayed_signals",
    # types
    "Architecture",
    "CommandRequest",
    "ContainerRecord",
    "ContainerState",
    "CreateSpec",
    "ExitOutcome",
    "SessionPolicy",
    # errors
    "ArchitectureMismatch",
    "BridgeError",
    "CbugError",
    "ContainerNotFoundError",
    "EngineConnectionError",
    "EngineError",
    "OwnershipConflict",
]
