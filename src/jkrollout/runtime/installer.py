"""Overlay installer: make the kernel shim available without touching the image.

Images are read-only. When the shim (``ipykernel``) is missing, it is
installed with ``pip install --user`` inside the container while a host
directory, the *overlay*, is bound onto the container user's package
directory (``$HOME/.local``). The same bind is used by the generated kernel
launcher, so whatever landed in the overlay is importable at kernel start.

``ensure_shim`` is idempotent:

    1. detect          present  -> ShimStatus.PRESENT, nothing else runs
    2. overlay dir     mkdir -p, must be a writable directory (OverlayCreateError)
    3. pip install     failure  -> InstallVerificationError carrying the install log
    4. detect again    absent   -> InstallVerificationError; present -> INSTALLED

Step 4 is what guarantees a provisioned kernel can actually start: a pip run
that exits 0 but installs into a path the interpreter never reads is caught
here instead of at the user's first notebook cell.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from jkrollout.core.errors import (
    ErrorContext,
    InstallVerificationError,
    OverlayCreateError,
    RuntimeInvocationError,
    UnsupportedImageError,
)
from jkrollout.core.logging import get_logger
from jkrollout.core.result import Err, Ok, Result, try_result_with
from jkrollout.runtime.detector import CapabilityDetector
from jkrollout.runtime.invoker import Bind, ContainerRuntime

logger = get_logger(__name__)

NO_PIP_MARKERS = ("No module named pip", "No module named 'pip'", "No module named ensurepip")


class ShimStatus(str, Enum):
    """Outcome of ensure_shim."""

    PRESENT = "present"  # Already importable, nothing installed
    INSTALLED = "installed"  # Installed into the overlay and verified


class OverlayInstaller:
    """Installs the shim into a per-image overlay directory."""

    def __init__(
        self,
        runtime: ContainerRuntime,
        detector: CapabilityDetector,
        container_user_dir: str,
        timeout: int | None = None,
    ) -> None:
        self.runtime = runtime
        self.detector = detector
        self.container_user_dir = container_user_dir
        self.timeout = timeout

    def overlay_bind(self, overlay_dir: Path) -> Bind:
        return Bind(host=overlay_dir, container=self.container_user_dir)

    def install_command(self) -> list[str]:
        return [
            self.detector.python,
            "-m",
            "pip",
            "install",
            "--user",
            "--no-cache-dir",
            "--no-warn-script-location",
            self.detector.shim_package,
        ]

    def ensure_shim(self, image: Path, overlay_dir: Path) -> Result[ShimStatus]:
        """Make sure the shim is importable in ``image`` with ``overlay_dir`` bound."""
        bind = self.overlay_bind(overlay_dir)
        return self.detector.has_shim(image, [bind]).flat_map(
            lambda present: Ok(ShimStatus.PRESENT) if present else self._install(image, bind)
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _install(self, image: Path, bind: Bind) -> Result[ShimStatus]:
        return (
            ensure_overlay_dir(bind.host)
            .flat_map(lambda _: self._run_install(image, bind))
            .flat_map(lambda log: self._verify(image, bind, log))
        )

    def _run_install(self, image: Path, bind: Bind) -> Result[str]:
        logger.info(
            "shim.installing",
            package=self.detector.shim_package,
            overlay=str(bind.host),
        )
        result = self.runtime.execute(
            image, self.install_command(), binds=[bind], timeout=self.timeout
        )
        match result:
            case Ok(invocation):
                return Ok(invocation.output)
            case Err(RuntimeInvocationError(reason="failed") as error):
                log = error.invocation.output if error.invocation else (error.diagnostic or "")
                error_type = (
                    UnsupportedImageError
                    if any(m in log for m in NO_PIP_MARKERS)
                    else InstallVerificationError
                )
                return Err(
                    error_type(
                        f"Installing {self.detector.shim_package} into {bind.host} failed",
                        diagnostic=log or None,
                        context=error.context,
                        cause=error,
                    )
                )
            case Err(error):
                return Err(error)

    def _verify(self, image: Path, bind: Bind, install_log: str) -> Result[ShimStatus]:
        def check(present: bool) -> Result[ShimStatus]:
            if present:
                logger.info(
                    "shim.installed",
                    package=self.detector.shim_package,
                    overlay=str(bind.host),
                )
                return Ok(ShimStatus.INSTALLED)
            return Err(
                InstallVerificationError(
                    f"{self.detector.shim_package} is still not importable after "
                    f"installing into {bind.host}",
                    diagnostic=install_log or None,
                    context=ErrorContext(image=str(image), overlay=str(bind.host)),
                )
            )

        return self.detector.has_shim(image, [bind]).flat_map(check)


def ensure_overlay_dir(overlay_dir: Path) -> Result[Path]:
    """Create ``overlay_dir`` if missing; Ok only if it is a writable directory."""
    return try_result_with(
        lambda: overlay_dir.mkdir(parents=True, exist_ok=True),
        lambda exc: OverlayCreateError(
            f"Cannot create overlay directory {overlay_dir}: {exc.strerror or exc}",
            context=ErrorContext(overlay=str(overlay_dir)),
            cause=exc,
        ),
        catch=(OSError,),
    ).flat_map(lambda _: _check_writable(overlay_dir))


def _check_writable(overlay_dir: Path) -> Result[Path]:
    if not overlay_dir.is_dir() or not os.access(overlay_dir, os.W_OK | os.X_OK):
        return Err(
            OverlayCreateError(
                f"Overlay directory {overlay_dir} is not writable",
                context=ErrorContext(overlay=str(overlay_dir)),
            )
        )
    return Ok(overlay_dir)


__all__ = ["OverlayInstaller", "ShimStatus", "ensure_overlay_dir"]
