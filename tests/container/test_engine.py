# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for cbug/container/_engine.py -- engine CLI wrapper."""

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from cbug.container._engine import DockerEngine, _split_names
from cbug.container.errors import EngineConnectionError, EngineError
from cbug.container.types import CreateSpec


def _completed(stdout: str = "") -> MagicMock:
    result = MagicMock()
    result.stdout = stdout
    result.returncode = 0
    return result


class TestRun:
    """Tests for error mapping in DockerEngine._run."""

    @patch("cbug.container._engine.subprocess.run")
    def test_passes_check_and_capture(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed("ok")
        DockerEngine("podman").start("abc")
        mock_run.assert_called_once_with(
            ["podman", "start", "abc"],
            check=True,
            capture_output=True,
            text=True,
        )

    @patch("cbug.container._engine.subprocess.run")
    def test_missing_binary(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = FileNotFoundError("docker")
        with pytest.raises(EngineConnectionError, match="installed"):
            DockerEngine().start("abc")

    @patch("cbug.container._engine.subprocess.run")
    def test_daemon_unreachable(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(
            1,
            ["docker", "ps"],
            stderr="Cannot connect to the Docker daemon at unix:///var/run",
        )
        with pytest.raises(EngineConnectionError, match="Is it running"):
            DockerEngine().list_containers()

    @patch("cbug.container._engine.subprocess.run")
    def test_command_failure(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(
            125, ["docker", "pause"], stderr="container is not running\n"
        )
        with pytest.raises(EngineError) as exc_info:
            DockerEngine().pause("abc")
        assert not isinstance(exc_info.value, EngineConnectionError)
        assert exc_info.value.stderr == "container is not running"
        assert "docker pause failed" in str(exc_info.value)


class TestQueries:
    """Tests for list/inspect parsing."""

    @patch("cbug.container._engine.subprocess.run")
    def test_list_containers(self, mock_run: MagicMock) -> None:
        rows = [
            {
                "ID": "abc123",
                "Names": "cbug",
                "Image": "repo:latest",
                "State": "running",
            },
            {"Id": "def456", "Names": ["a", "b"], "Image": "x", "State": ""},
        ]
        mock_run.return_value = _completed(
            "\n".join(json.dumps(r) for r in rows) + "\n"
        )

        containers = DockerEngine().list_containers()

        assert [c.id for c in containers] == ["abc123", "def456"]
        assert containers[0].names == ("cbug",)
        assert containers[0].status == "running"
        assert containers[1].names == ("a", "b")
        cmd = mock_run.call_args[0][0]
        assert cmd[:4] == ["docker", "ps", "-a", "--no-trunc"]

    @patch("cbug.container._engine.subprocess.run")
    def test_list_containers_bad_json(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed("not json\n")
        with pytest.raises(EngineError, match="Unexpected engine output"):
            DockerEngine().list_containers()

    @patch("cbug.container._engine.subprocess.run")
    def test_inspect(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(
            json.dumps([{"Id": "abc", "State": {"Running": True}}])
        )
        document = DockerEngine().inspect("abc")
        assert document["State"] == {"Running": True}

    @patch("cbug.container._engine.subprocess.run")
    def test_inspect_empty(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed("[]")
        with pytest.raises(EngineError, match="No such container"):
            DockerEngine().inspect("abc")

    @patch("cbug.container._engine.subprocess.run")
    def test_list_images(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(
            json.dumps(
                {"Repository": "repo", "Tag": "x86", "Digest": "sha256:1"}
            )
        )
        images = DockerEngine().list_images()
        assert images[0].reference == "repo:x86"
        assert images[0].digest == "sha256:1"

    def test_split_names(self) -> None:
        assert _split_names("a,b") == ("a", "b")
        assert _split_names(None) == ()
        assert _split_names(["/a"]) == ("/a",)


class TestMutations:
    """Tests for mutating engine commands."""

    @patch("cbug.container._engine.subprocess.run")
    def test_pull_up_to_date(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(
            "Status: Image is up to date for repo:latest\n"
        )
        assert DockerEngine().pull("repo:latest") is False

    @patch("cbug.container._engine.subprocess.run")
    def test_pull_downloaded(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(
            "Status: Downloaded newer image for repo:latest\n"
        )
        assert DockerEngine().pull("repo:latest") is True

    @patch("cbug.container._engine.subprocess.run")
    def test_create(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed("newid\n")
        spec = CreateSpec(
            repository="repo", tag="x86", platform="linux/amd64"
        )

        assert DockerEngine().create("cbug", spec) == "newid"
        assert mock_run.call_args[0][0] == [
            "docker",
            "create",
            "--name",
            "cbug",
            "--platform",
            "linux/amd64",
            "--workdir",
            "/debugger",
            "--interactive",
            "--tty",
            "repo:x86",
        ]

    @patch("cbug.container._engine.subprocess.run")
    def test_stop_passes_grace(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed()
        DockerEngine().stop("abc", 1)
        assert mock_run.call_args[0][0] == [
            "docker",
            "stop",
            "--time",
            "1",
            "abc",
        ]

    @patch("cbug.container._engine.subprocess.run")
    def test_remove_forces_with_volumes(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed()
        DockerEngine().remove("abc")
        assert mock_run.call_args[0][0] == [
            "docker",
            "rm",
            "--force",
            "--volumes",
            "abc",
        ]

    @patch("cbug.container._engine.subprocess.run")
    def test_copy_into_copies_contents(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed()
        DockerEngine().copy_into(Path("/home/me/proj"), "abc", "/debugger")
        assert mock_run.call_args[0][0] == [
            "docker",
            "cp",
            "/home/me/proj/.",
            "abc:/debugger",
        ]


class TestInteractiveArgv:
    """Tests for exec/attach command lines."""

    def test_exec_without_tty(self) -> None:
        argv = DockerEngine().exec_argv("cbug", ["ls", "-la"], tty=False)
        assert argv == ["docker", "exec", "--interactive", "cbug", "ls", "-la"]

    def test_exec_with_tty(self) -> None:
        argv = DockerEngine("podman").exec_argv("cbug", ["gdb"], tty=True)
        assert argv == [
            "podman",
            "exec",
            "--interactive",
            "--tty",
            "cbug",
            "gdb",
        ]

    def test_attach(self) -> None:
        assert DockerEngine().attach_argv("cbug") == [
            "docker",
            "attach",
            "cbug",
        ]
