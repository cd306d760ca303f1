# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""cbug configuration.

Configuration is loaded from a YAML file whose default location follows
the XDG Base Directory Specification:

    ``$XDG_CONFIG_HOME/cbug/cbug.yaml``
    (typically ``~/.config/cbug/cbug.yaml``)

The file is created with default values the first time cbug runs.
``!env VAR_NAME`` tags resolve values from environment variables; a
``.env`` file next to the config is loaded first.

Example::

    container_name: cbug
    exit_behaviour: shutdown   # shutdown, pause or keep-alive
    image: eleanormally/cpp-memory-debugger
    architecture: arm          # arm or x86
    container_command: !env CBUG_ENGINE
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from platformdirs import user_config_path

from cbug.container.errors import CbugError
from cbug.container.types import (
    DEFAULT_WORKING_DIR,
    Architecture,
    SessionPolicy,
)
from cbug.dotenv_loader import load_dotenv_once


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "cbug"

DEFAULT_CONTAINER_NAME = "cbug"
DEFAULT_IMAGE = "eleanormally/cpp-memory-debugger"
DEFAULT_CONTAINER_COMMAND = "docker"
DEFAULT_STOP_GRACE_SECONDS = 1


class ConfigError(CbugError):
    """Base exception for configuration errors."""


def get_config_path() -> Path:
    """Return the default config file path.

    Uses XDG: ``$XDG_CONFIG_HOME/cbug/cbug.yaml`` (typically
    ``~/.config/cbug/cbug.yaml``).
    """
    return user_config_path(_APP_NAME) / "cbug.yaml"


def get_dotenv_path() -> Path:
    """Return the ``.env`` file path inside the XDG config directory."""
    return user_config_path(_APP_NAME) / ".env"


# ---------------------------------------------------------------------------
# YAML tag placeholders
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


def _resolve_str(value: object, default: str) -> str:
    """Resolve ``!env`` tags and literals to a string.

    An unset environment variable or a missing value yields *default*.
    """
    if isinstance(value, _EnvVar):
        raw = os.environ.get(value.var_name)
        if raw is None:
            logger.debug("Environment variable %s not set", value.var_name)
            return default
        return raw
    if value is None:
        return default
    return str(value)


def _resolve_int(value: object, default: int, *, name: str) -> int:
    raw = _resolve_str(value, str(default))
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"'{name}' must be an integer, got {raw!r}") from e


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CbugConfig:
    """Persisted cbug settings.

    Attributes:
        container_name: Name of the container cbug manages by default.
        exit_policy: What to do with the container when cbug exits.
        image: Debugger image repository (no tag); also the marker
            identifying containers cbug may manage.
        architecture: Architecture of newly created containers.
        container_command: Container engine executable.
        working_dir: Working directory inside the container.
        stop_grace_seconds: Seconds before a stopping container is killed.
    """

    container_name: str = DEFAULT_CONTAINER_NAME
    exit_policy: SessionPolicy = SessionPolicy.STOP
    image: str = DEFAULT_IMAGE
    architecture: Architecture = field(default_factory=Architecture.host)
    container_command: str = DEFAULT_CONTAINER_COMMAND
    working_dir: str = DEFAULT_WORKING_DIR
    stop_grace_seconds: int = DEFAULT_STOP_GRACE_SECONDS

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if not self.container_name.strip():
            raise ConfigError("Container name must not be empty")
        if not self.image.strip():
            raise ConfigError("Image must not be empty")
        if ":" in self.image.rpartition("/")[2]:
            raise ConfigError(
                f"Image must not include a tag (the tag selects the "
                f"architecture): {self.image}"
            )
        if not self.working_dir.startswith("/"):
            raise ConfigError(
                f"Working directory must be absolute: {self.working_dir}"
            )
        if self.stop_grace_seconds < 0:
            raise ConfigError(
                f"Stop grace period must be >= 0s: {self.stop_grace_seconds}"
            )

    @classmethod
    def from_yaml(
        cls, config_path: Path | None = None, *, create: bool = True
    ) -> "CbugConfig":
        """Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML file. Defaults to
                get_config_path().
            create: Write a default config when the file is missing.

        Raises:
            ConfigError: If the file cannot be read or is invalid.
        """
        load_dotenv_once(get_dotenv_path())

        if config_path is None:
            config_path = get_config_path()

        if not config_path.exists():
            if not create:
                raise ConfigError(f"Config file not found: {config_path}")
            config = cls()
            config.save(config_path)
            logger.info("Created default config: %s", config_path)
            return config

        try:
            with open(config_path) as f:
                raw = yaml.load(f, Loader=_make_loader())
        except OSError as e:
            raise ConfigError(f"Cannot read config {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        return cls._from_raw(raw)

    @classmethod
    def _from_raw(cls, raw: dict[str, Any]) -> "CbugConfig":
        """Build config from parsed (but unresolved) YAML dict."""
        host = Architecture.host()
        arch_name = _resolve_str(raw.get("architecture"), host.readable)
        try:
            architecture = Architecture.parse(arch_name)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        return cls(
            container_name=_resolve_str(
                raw.get("container_name"), DEFAULT_CONTAINER_NAME
            ),
            exit_policy=SessionPolicy.parse(
                _resolve_str(
                    raw.get("exit_behaviour"), SessionPolicy.STOP.value
                )
            ),
            image=_resolve_str(raw.get("image"), DEFAULT_IMAGE),
            architecture=architecture,
            container_command=_resolve_str(
                raw.get("container_command"), DEFAULT_CONTAINER_COMMAND
            ),
            working_dir=_resolve_str(
                raw.get("working_dir"), DEFAULT_WORKING_DIR
            ),
            stop_grace_seconds=_resolve_int(
                raw.get("stop_grace_seconds"),
                DEFAULT_STOP_GRACE_SECONDS,
                name="stop_grace_seconds",
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the YAML file layout."""
        return {
            "container_name": self.container_name,
            "exit_behaviour": self.exit_policy.value,
            "image": self.image,
            "architecture": self.architecture.readable,
            "container_command": self.container_command,
            "working_dir": self.working_dir,
            "stop_grace_seconds": self.stop_grace_seconds,
        }

    def save(self, config_path: Path | None = None) -> Path:
        """Write the configuration as YAML.

        ``!env`` tags from the loaded file are written as their
        resolved values.

        Returns:
            The path written.

        Raises:
            ConfigError: If the file cannot be written.
        """
        if config_path is None:
            config_path = get_config_path()
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            config_path.write_text(
                yaml.safe_dump(self.to_dict(), sort_keys=False)
            )
        except OSError as e:
            raise ConfigError(
                f"Cannot write config {config_path}: {e}"
            ) from e
        return config_path
