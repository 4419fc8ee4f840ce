"""Tests for jkrollout.runtime.invoker: apptainer exec pass-through."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from jkrollout.core.errors import ImageNotFoundError, OverlayCreateError, RuntimeInvocationError
from jkrollout.runtime.invoker import Bind, ContainerRuntime, Invocation, check_image


class TestExecArgv:
    """Command-line construction has no side effects."""

    def test_cpu(self):
        argv = ContainerRuntime().exec_argv(Path("/img.sif"), ["python", "-V"])
        assert argv == ["apptainer", "exec", "/img.sif", "python", "-V"]

    def test_gpu_and_binds(self):
        argv = ContainerRuntime(binary="singularity").exec_argv(
            Path("/img.sif"),
            ["python"],
            binds=[Bind(Path("/home/u/local/img"), "/home/u/.local"), Bind(Path("/scratch"), "/scratch")],
            use_gpu=True,
        )
        assert argv == [
            "singularity",
            "exec",
            "--nv",
            "--bind",
            "/home/u/local/img:/home/u/.local",
            "--bind",
            "/scratch:/scratch",
            "/img.sif",
            "python",
        ]


class TestCheckImage:
    def test_existing(self, image):
        assert check_image(image).unwrap() == image.resolve()

    def test_missing(self, tmp_path):
        result = check_image(tmp_path / "missing.sif")
        assert isinstance(result.error, ImageNotFoundError)
        assert result.error.exit_code == 4

    def test_directory_is_not_an_image(self, tmp_path):
        assert check_image(tmp_path).is_err()


class TestExecute:
    """ContainerRuntime.execute with subprocess.run mocked."""

    @patch("subprocess.run")
    def test_success(self, mock_run, image):
        mock_run.return_value = MagicMock(returncode=0, stdout="6.29.5\n", stderr="")
        result = ContainerRuntime(timeout=30).execute(image, ["python", "-V"])

        invocation = result.unwrap()
        assert isinstance(invocation, Invocation)
        assert invocation.ok
        assert invocation.stdout == "6.29.5\n"
        args, kwargs = mock_run.call_args
        assert args[0][:2] == ["apptainer", "exec"]
        assert kwargs["timeout"] == 30
        assert kwargs["capture_output"] is True

    @patch("subprocess.run")
    def test_per_call_timeout(self, mock_run, image):
        mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="")
        ContainerRuntime(timeout=30).execute(image, ["true"], timeout=5)
        assert mock_run.call_args.kwargs["timeout"] == 5

    @patch("subprocess.run")
    def test_missing_image_never_spawns(self, mock_run, tmp_path):
        result = ContainerRuntime().execute(tmp_path / "nope.sif", ["python"])
        assert isinstance(result.error, ImageNotFoundError)
        mock_run.assert_not_called()

    @patch("subprocess.run")
    def test_nonzero_exit(self, mock_run, image):
        mock_run.return_value = MagicMock(returncode=255, stdout="", stderr="FATAL: image is corrupt\n")
        result = ContainerRuntime().execute(image, ["python"])

        error = result.error
        assert isinstance(error, RuntimeInvocationError)
        assert error.reason == "failed"
        assert error.diagnostic == "FATAL: image is corrupt"
        assert error.context.exit_code == 255
        assert error.invocation.exit_code == 255
        assert error.exit_code == 3

    @patch("subprocess.run")
    def test_timeout(self, mock_run, image):
        mock_run.side_effect = subprocess.TimeoutExpired(["apptainer"], 7, stderr=b"INFO: still converting")
        result = ContainerRuntime(timeout=7).execute(image, ["python"])

        error = result.error
        assert isinstance(error, RuntimeInvocationError)
        assert error.timed_out
        assert "7s" in error.message
        assert error.diagnostic == "INFO: still converting"

    @patch("subprocess.run")
    def test_runtime_binary_missing(self, mock_run, image):
        mock_run.side_effect = FileNotFoundError(2, "No such file or directory", "apptainer")
        result = ContainerRuntime().execute(image, ["python"])
        assert result.error.reason == "not found"

    @patch("subprocess.run")
    def test_bind_source_created(self, mock_run, image, tmp_path):
        mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="")
        overlay = tmp_path / "local" / "pytorch-2.9.1"
        ContainerRuntime().execute(image, ["true"], binds=[Bind(overlay, "/home/u/.local")])
        assert overlay.is_dir()

    @patch("subprocess.run")
    def test_bind_source_not_creatable(self, mock_run, image, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        result = ContainerRuntime().execute(image, ["true"], binds=[Bind(blocker / "overlay", "/x")])

        assert isinstance(result.error, OverlayCreateError)
        mock_run.assert_not_called()


class TestRun:
    @patch("subprocess.run")
    def test_subcommand(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="")
        ContainerRuntime(binary="apptainer").run(["pull", "out.sif", "docker://alpine"])
        assert mock_run.call_args.args[0] == ["apptainer", "pull", "out.sif", "docker://alpine"]


@pytest.mark.parametrize("stdout, stderr, expected", [("a\n", "", "a"), ("a", "b", "a\nb"), ("", "", "")])
def test_invocation_output(stdout, stderr, expected):
    assert Invocation(argv=[], stdout=stdout, stderr=stderr).output == expected
