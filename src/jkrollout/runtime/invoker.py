"""Container runtime invoker.

Runs commands inside an Apptainer image via the ``apptainer`` CLI
(subprocess). The invoker is a pure pass-through: it builds the
``apptainer exec`` command line, runs it with a hard timeout, captures
stdout/stderr, and turns a non-zero exit, a timeout, or a missing runtime
binary into a :class:`~jkrollout.core.errors.RuntimeInvocationError`. It
never interprets what the command inside the container means; the
capability detector and the overlay installer do that.

Key Concepts:
    Bind: host-path → container-path pair (``--bind host:container``).
        The host side is created when missing, so the overlay directory
        exists before the container sees it.
    Invocation: argv, stdout, stderr, exit code and duration of one call.
    ContainerRuntime: ``execute()`` for ``apptainer exec``, ``run()`` for
        any other runtime sub-command (``pull``).

Architecture Decisions:
    - subprocess, not a Python binding: Apptainer has no maintained Python
      API and its CLI is the contract sites document.
    - ``FileNotFoundError`` from ``subprocess.run`` means the runtime binary
      is missing (module not loaded); reported as reason ``"not found"``.
    - No retries: a half-finished ``pip install`` retried behind the
      operator's back can leave the overlay in a state nobody asked for.

Tags:
    container, apptainer, subprocess, timeout, bind-mount, gpu
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from jkrollout.core.errors import (
    ErrorContext,
    ImageNotFoundError,
    OverlayCreateError,
    RuntimeInvocationError,
)
from jkrollout.core.logging import get_logger
from jkrollout.core.result import Err, Ok, Result
from jkrollout.core.settings import RolloutSettings

logger = get_logger(__name__)

GPU_FLAG = "--nv"


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Bind:
    """A ``--bind host:container`` pair."""

    host: Path
    container: str

    def spec(self) -> str:
        return f"{self.host}:{self.container}"


@dataclass
class Invocation:
    """Outcome of one runtime call."""

    argv: list[str]
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, for install logs."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


def check_image(image: Path | str) -> Result[Path]:
    """Ok(absolute image path) if the image file exists and is readable."""
    path = Path(image).expanduser()
    if not path.is_file() or not os.access(path, os.R_OK):
        return Err(ImageNotFoundError(str(path)))
    return Ok(path.resolve())


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class ContainerRuntime:
    """Issues ``apptainer`` commands via subprocess.

    Parameters
    ----------
    binary
        Runtime CLI name or path (``apptainer``, ``singularity``).
    timeout
        Default hard timeout in seconds for every call.

    Example::

        runtime = ContainerRuntime()
        result = runtime.execute(
            Path("~/pytorch-2.9.1.sif").expanduser(),
            ["python", "-c", "import torch"],
            binds=[Bind(Path("~/local/pytorch-2.9.1").expanduser(), "/home/u/.local")],
            use_gpu=True,
        )
    """

    def __init__(self, binary: str = "apptainer", timeout: int = 900) -> None:
        self.binary = binary
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: RolloutSettings) -> ContainerRuntime:
        return cls(binary=settings.runtime, timeout=settings.exec_timeout)

    # ------------------------------------------------------------------
    # Command lines
    # ------------------------------------------------------------------

    def exec_argv(
        self,
        image: Path,
        command: Sequence[str],
        binds: Sequence[Bind] = (),
        use_gpu: bool = False,
    ) -> list[str]:
        """Build the ``apptainer exec`` argv (no side effects)."""
        argv = [self.binary, "exec"]
        if use_gpu:
            argv.append(GPU_FLAG)
        for bind in binds:
            argv.extend(["--bind", bind.spec()])
        argv.append(str(image))
        argv.extend(command)
        return argv

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def execute(
        self,
        image: Path,
        command: Sequence[str],
        binds: Sequence[Bind] = (),
        use_gpu: bool = False,
        timeout: int | None = None,
    ) -> Result[Invocation]:
        """Run ``command`` inside ``image``.

        The image must exist and every bind host path must exist or be
        creatable. Blocks until the command exits or ``timeout`` expires.
        """
        checked = check_image(image)
        if checked.is_err():
            return Err(checked.error)

        prepared = self._prepare_binds(binds)
        if prepared.is_err():
            return Err(prepared.error)

        argv = self.exec_argv(checked.unwrap(), command, binds, use_gpu)
        return self._run(argv, timeout or self.timeout, image=str(checked.unwrap()))

    def run(self, args: Sequence[str], timeout: int | None = None) -> Result[Invocation]:
        """Run an arbitrary runtime sub-command (``pull``, ``inspect``, ...)."""
        return self._run([self.binary, *args], timeout or self.timeout)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _prepare_binds(binds: Sequence[Bind]) -> Result[list[Bind]]:
        for bind in binds:
            try:
                bind.host.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                return Err(
                    OverlayCreateError(
                        f"Cannot create bind source {bind.host}: {exc.strerror or exc}",
                        context=ErrorContext(path=str(bind.host)),
                        cause=exc,
                    )
                )
        return Ok(list(binds))

    def _run(self, argv: list[str], timeout: int, image: str | None = None) -> Result[Invocation]:
        context = ErrorContext(image=image, command=argv)
        logger.debug("runtime.exec", argv=argv, timeout=timeout)
        started = time.monotonic()
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            logger.warning("runtime.timeout", argv=argv, timeout=timeout)
            return Err(
                RuntimeInvocationError(
                    f"{self.binary} timed out after {timeout}s",
                    reason="timed out",
                    diagnostic=_decode(exc.stderr),
                    context=context,
                    cause=exc,
                )
            )
        except FileNotFoundError as exc:
            return Err(
                RuntimeInvocationError(
                    f"Container runtime '{self.binary}' not found on PATH (is the module loaded?)",
                    reason="not found",
                    context=context,
                    cause=exc,
                )
            )

        invocation = Invocation(
            argv=argv,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=completed.returncode,
            duration_seconds=round(time.monotonic() - started, 3),
        )
        logger.debug(
            "runtime.exited",
            exit_code=invocation.exit_code,
            duration_seconds=invocation.duration_seconds,
        )

        if not invocation.ok:
            context.exit_code = invocation.exit_code
            return Err(
                RuntimeInvocationError(
                    f"{self.binary} exited with code {invocation.exit_code}",
                    invocation=invocation,
                    diagnostic=invocation.stderr.strip() or None,
                    context=context,
                )
            )
        return Ok(invocation)


def _decode(stream: bytes | str | None) -> str | None:
    if stream is None:
        return None
    if isinstance(stream, bytes):
        stream = stream.decode(errors="replace")
    return stream.strip() or None


__all__ = ["Bind", "Invocation", "ContainerRuntime", "check_image", "GPU_FLAG"]
