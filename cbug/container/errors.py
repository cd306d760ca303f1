# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Exceptions raised by the container library.

All of them derive from CbugError so the CLI can report any failure as a
single line and exit with status 1.
"""


class CbugError(Exception):
    """Base exception for cbug failures."""


class EngineError(CbugError):
    """A container engine command failed.

    Attributes:
        stderr: Error output of the engine command, if any.
    """

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class EngineConnectionError(EngineError):
    """The container engine is not installed or not reachable."""


class OwnershipConflict(CbugError):
    """A container with the requested name exists but is not a cbug one.

    The container is never modified when this is raised.
    """

    def __init__(self, name: str, image: str) -> None:
        super().__init__(
            f'found a container named "{name}" (image {image}) that is not '
            f"managed by cbug. Rename or delete it, or pick another name "
            f'with "cbug config" or --name'
        )
        self.name = name
        self.image = image


class ArchitectureMismatch(CbugError):
    """A forced architecture does not match the existing container."""


class ContainerNotFoundError(CbugError):
    """No cbug container with the requested name exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f'could not find container "{name}"')
        self.name = name


class BridgeError(CbugError):
    """Running a command inside the container failed.

    Raised when the exec/attach session cannot be started, or when a
    signal cannot be relayed for a reason other than the remote process
    having already exited.
    """
