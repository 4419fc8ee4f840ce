"""
Provision operation: turn an image into a Jupyter kernel.

Every step returns a ``Result`` and the chain stops at the first ``Err``;
nothing after a failed step runs, so a failed provision never leaves a
kernel directory behind.

Architecture:
    ::

        check_image ──► KernelName.parse ──► resolve overlay ──► conflict pre-check
                                                   │
                                                   ▼ (warn overlay.shared)
                              OverlayInstaller.ensure_shim ──► KernelSpecWriter.write_kernel_spec

The conflict pre-check only spares a pointless ``pip install`` when the slug
is already taken; the writer re-checks right before its rename, which is
what actually decides a race between two runs.

Example:
    >>> provisioner = Provisioner.from_settings(get_settings())
    >>> result = provisioner.provision(Path("~/pytorch-2.9.1.sif"), "PyTorch 2.9.1", ResourceHint.GPU)
    >>> result.unwrap().path
    PosixPath('/home/u/.local/share/jupyter/kernels/pytorch-2-9-1')
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jkrollout.core.errors import KernelConflictError
from jkrollout.core.logging import LogContext, bind_context, get_logger
from jkrollout.core.result import Err, Ok, Result
from jkrollout.core.settings import RolloutSettings
from jkrollout.kernels.inventory import overlay_users
from jkrollout.kernels.launcher import LauncherTemplate
from jkrollout.kernels.models import KernelRequest
from jkrollout.kernels.naming import KernelName, ResourceHint
from jkrollout.kernels.writer import KernelSpecWriter
from jkrollout.runtime.detector import CapabilityDetector
from jkrollout.runtime.installer import OverlayInstaller, ShimStatus
from jkrollout.runtime.invoker import ContainerRuntime, check_image

logger = get_logger(__name__)


@dataclass
class ProvisionOutcome:
    """What a successful provision produced."""

    path: Path
    slug: str
    display_name: str
    image: Path
    overlay: Path
    resource: ResourceHint
    shim: ShimStatus
    shared_with: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "slug": self.slug,
            "display_name": self.display_name,
            "image": str(self.image),
            "overlay": str(self.overlay),
            "resource": self.resource.value,
            "shim": self.shim.value,
            "shared_with": list(self.shared_with),
        }


def resolve_overlay(settings: RolloutSettings, image: Path, overlay: Path | str | None = None) -> Path:
    """Explicit overlay path, or the per-image default under ``overlay_root``."""
    if overlay is None:
        return settings.overlay_for(image)
    return Path(overlay).expanduser().absolute()


class Provisioner:
    """Runs the provisioning chain with injected components."""

    def __init__(
        self,
        settings: RolloutSettings,
        installer: OverlayInstaller,
        writer: KernelSpecWriter,
    ) -> None:
        self.settings = settings
        self.installer = installer
        self.writer = writer

    @classmethod
    def from_settings(cls, settings: RolloutSettings) -> Provisioner:
        runtime = ContainerRuntime.from_settings(settings)
        detector = CapabilityDetector(
            runtime,
            shim_package=settings.shim_package,
            python=settings.python,
            timeout=settings.detect_timeout,
        )
        installer = OverlayInstaller(
            runtime,
            detector,
            container_user_dir=settings.container_user_dir,
            timeout=settings.exec_timeout,
        )
        writer = KernelSpecWriter(
            settings.kernels_dir,
            LauncherTemplate.from_settings(settings, runtime),
            kernel_module=settings.kernel_module,
        )
        return cls(settings, installer, writer)

    def provision(
        self,
        image: Path | str,
        display_name: str,
        resource: ResourceHint = ResourceHint.CPU,
        *,
        force: bool = False,
        overlay: Path | str | None = None,
    ) -> Result[ProvisionOutcome]:
        """Provision ``image`` as kernel ``display_name``."""
        with LogContext(image=str(image), slug=None, resource=resource.value):
            return (
                check_image(image)
                .flat_map(
                    lambda checked: KernelName.parse(display_name).map(
                        lambda name: KernelRequest(
                            name=name,
                            image=checked,
                            overlay_dir=resolve_overlay(self.settings, checked, overlay),
                            resource=resource,
                            force=force,
                        )
                    )
                )
                .flat_map(self._check_available)
                .flat_map(self._run)
            )

    def _check_available(self, request: KernelRequest) -> Result[KernelRequest]:
        bind_context(slug=request.slug)
        target = self.writer.target_for(request.slug)
        if os.path.lexists(target) and not request.force:
            return Err(KernelConflictError(request.slug, str(target)))
        return Ok(request)

    def _run(self, request: KernelRequest) -> Result[ProvisionOutcome]:
        shared_with = overlay_users(self.writer.kernels_dir, request.overlay_dir, exclude=request.slug)
        if shared_with:
            logger.warning(
                "overlay.shared",
                overlay=str(request.overlay_dir),
                kernels=shared_with,
            )

        return self.installer.ensure_shim(request.image, request.overlay_dir).flat_map(
            lambda shim: self.writer.write_kernel_spec(request).map(
                lambda path: ProvisionOutcome(
                    path=path,
                    slug=request.slug,
                    display_name=request.display_name,
                    image=request.image,
                    overlay=request.overlay_dir,
                    resource=request.resource,
                    shim=shim,
                    shared_with=shared_with,
                )
            )
        )


__all__ = ["ProvisionOutcome", "Provisioner", "resolve_overlay"]
