"""Capability detection: is the kernel shim importable inside the image?

The probe runs ``python -c "import ipykernel; print(ipykernel.__version__)"``
inside the image with the overlay bound, so a shim installed into the overlay
on an earlier run counts as present.

Three outcomes, kept strictly apart:

    exit 0                                  -> Ok(True)   present
    non-zero + "No module named ..."        -> Ok(False)  absent, install it
    timeout / runtime failure / other noise -> Err(DetectionError)

A corrupt image or a hung runtime must not look like "absent": the installer
would then start a ``pip install`` that is bound to fail for reasons that
have nothing to do with the shim. An image with no interpreter at all is
reported as :class:`~jkrollout.core.errors.UnsupportedImageError`.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from jkrollout.core.errors import (
    DetectionError,
    RuntimeInvocationError,
    UnsupportedImageError,
)
from jkrollout.core.logging import get_logger
from jkrollout.core.result import Err, Ok, Result
from jkrollout.runtime.invoker import Bind, ContainerRuntime

logger = get_logger(__name__)

ABSENT_MARKERS = ("ModuleNotFoundError", "No module named")
NO_INTERPRETER_MARKERS = ("executable file not found", "no such file or directory")


class CapabilityDetector:
    """Checks for the shim package inside an image."""

    def __init__(
        self,
        runtime: ContainerRuntime,
        shim_package: str = "ipykernel",
        python: str = "python",
        timeout: int = 120,
    ) -> None:
        self.runtime = runtime
        self.shim_package = shim_package
        self.python = python
        self.timeout = timeout

    def probe_command(self) -> list[str]:
        module = self.shim_package.replace("-", "_")
        return [self.python, "-c", f"import {module}; print({module}.__version__)"]

    def has_shim(self, image: Path, binds: Sequence[Bind] = ()) -> Result[bool]:
        result = self.runtime.execute(
            image, self.probe_command(), binds=binds, timeout=self.timeout
        )
        match result:
            case Ok(invocation):
                logger.info(
                    "shim.detected",
                    package=self.shim_package,
                    version=invocation.stdout.strip() or None,
                )
                return Ok(True)
            case Err(RuntimeInvocationError() as error):
                return self._classify(error)
            case Err(error):
                return Err(error)

    def _classify(self, error: RuntimeInvocationError) -> Result[bool]:
        diagnostic = error.diagnostic or ""
        if error.reason == "failed" and any(m in diagnostic for m in ABSENT_MARKERS):
            logger.info("shim.absent", package=self.shim_package)
            return Ok(False)

        if error.reason == "failed" and self.python in diagnostic and any(
            m in diagnostic.lower() for m in NO_INTERPRETER_MARKERS
        ):
            return Err(
                UnsupportedImageError(
                    f"Image has no '{self.python}' interpreter to run {self.shim_package}",
                    diagnostic=diagnostic,
                    context=error.context,
                    cause=error,
                )
            )

        logger.warning("shim.detection_failed", reason=error.reason)
        return Err(
            DetectionError(
                f"Could not determine whether {self.shim_package} is present "
                f"({error.reason}): {error.message}",
                diagnostic=error.diagnostic,
                context=error.context,
                cause=error,
            )
        )


__all__ = ["CapabilityDetector", "ABSENT_MARKERS"]
