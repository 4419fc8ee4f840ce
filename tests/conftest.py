"""
Shared pytest fixtures for jkrollout tests.

This module provides:
- ``FakeApptainer``: a stand-in for ``subprocess.run`` that answers
  ``apptainer exec`` shim probes, ``pip install`` runs, ``pull`` and
  ``sbatch`` calls, and records every argv it saw
- Settings pointed at a temporary kernel directory and overlay root
- A fake image file

No Apptainer, Slurm or Jupyter installation is needed to run the suite.
"""

from __future__ import annotations

import subprocess
import sys
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
import structlog

# Ensure jkrollout package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from jkrollout.core.settings import RolloutSettings, get_settings

MISSING_SHIM = (
    "Traceback (most recent call last):\n"
    '  File "<string>", line 1, in <module>\n'
    "ModuleNotFoundError: No module named 'ipykernel'"
)


class FakeApptainer:
    """Callable replacing ``subprocess.run``.

    The shim counts as present once ``shim_present`` is set or a successful
    ``pip install`` ran (unless ``install_takes_effect`` is False).
    Per-call overrides go in ``responders``: the first predicate matching
    the argv decides the outcome.
    """

    def __init__(
        self,
        shim_present: bool = False,
        install_succeeds: bool = True,
        install_takes_effect: bool = True,
    ) -> None:
        self.shim_present = shim_present
        self.install_succeeds = install_succeeds
        self.install_takes_effect = install_takes_effect
        self.calls: list[list[str]] = []
        self.inputs: list[str | None] = []
        self.responders: list[tuple[Callable[[list[str]], bool], Callable[[list[str]], object]]] = []

    # -- helpers ------------------------------------------------------------

    @property
    def detections(self) -> list[list[str]]:
        return [argv for argv in self.calls if "-c" in argv]

    @property
    def installs(self) -> list[list[str]]:
        return [argv for argv in self.calls if "pip" in argv]

    def respond(self, predicate: Callable[[list[str]], bool], action: Callable[[list[str]], object]) -> None:
        self.responders.append((predicate, action))

    @staticmethod
    def completed(argv: list[str], returncode: int = 0, stdout: str = "", stderr: str = ""):
        return subprocess.CompletedProcess(argv, returncode, stdout=stdout, stderr=stderr)

    # -- subprocess.run -----------------------------------------------------

    def __call__(self, argv, **kwargs):
        argv = list(argv)
        self.calls.append(argv)
        self.inputs.append(kwargs.get("input"))

        for predicate, action in self.responders:
            if predicate(argv):
                return action(argv)

        if argv[0] == "sbatch":
            return self.completed(argv, stdout="4242\n")
        if "pip" in argv:
            if not self.install_succeeds:
                return self.completed(
                    argv, 1, stderr="ERROR: Could not find a version that satisfies the requirement ipykernel"
                )
            if self.install_takes_effect:
                self.shim_present = True
            return self.completed(argv, stdout="Successfully installed ipykernel-6.29.5")
        if "-c" in argv:
            if self.shim_present:
                return self.completed(argv, stdout="6.29.5\n")
            return self.completed(argv, 1, stderr=MISSING_SHIM)
        return self.completed(argv)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    """Drop structlog config bound to a CliRunner stream between tests."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture()
def fake_apptainer(monkeypatch: pytest.MonkeyPatch) -> FakeApptainer:
    """Patch ``subprocess.run`` with a fresh FakeApptainer (shim absent)."""
    fake = FakeApptainer()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.fixture()
def image(tmp_path: Path) -> Path:
    """A readable stand-in for ``~/pytorch-2.9.1.sif``."""
    path = tmp_path / "pytorch-2.9.1.sif"
    path.write_bytes(b"SIF\x00fake image")
    return path


@pytest.fixture()
def kernels_dir(tmp_path: Path) -> Path:
    return tmp_path / "share" / "jupyter" / "kernels"


@pytest.fixture()
def settings(tmp_path: Path, kernels_dir: Path) -> RolloutSettings:
    """Settings isolated from the user's real kernel and overlay directories."""
    return RolloutSettings(
        _env_file=None,
        kernels_dir=kernels_dir,
        overlay_root=tmp_path / "local",
        container_user_dir="/home/u/.local",
        modules=["apptainer"],
        gpu_modules=[],
        init_script=None,
    )


@pytest.fixture()
def cli_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, kernels_dir: Path
) -> Generator[Path, None, None]:
    """Point the CLI's cached settings at temporary directories."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("JKROLLOUT_KERNELS_DIR", str(kernels_dir))
    monkeypatch.setenv("JKROLLOUT_OVERLAY_ROOT", str(tmp_path / "local"))
    monkeypatch.setenv("JKROLLOUT_CONTAINER_USER_DIR", "/home/u/.local")
    monkeypatch.setenv("JKROLLOUT_LOG_LEVEL", "ERROR")
    get_settings.cache_clear()
    yield kernels_dir
    get_settings.cache_clear()
