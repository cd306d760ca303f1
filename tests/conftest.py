# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test packages."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from cbug.dotenv_loader import reset_dotenv_state


@pytest.fixture(autouse=True)
def _isolated_dotenv(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    """Keep .env files on the developer machine out of tests."""
    reset_dotenv_state()
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    yield
    reset_dotenv_state()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Path for a cbug.yaml inside the test's temp directory."""
    return tmp_path / "config" / "cbug.yaml"
