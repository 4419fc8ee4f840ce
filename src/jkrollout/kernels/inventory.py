"""Read back and remove kernels provisioned by jkrollout.

Only directories whose ``kernel.json`` carries ``metadata.jkrollout`` are
considered; kernels installed by other tools are left alone.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from jkrollout.core.errors import ErrorContext, KernelNotFoundError, RenameError
from jkrollout.core.logging import get_logger
from jkrollout.core.result import Err, Result, try_result_with
from jkrollout.kernels.models import KERNEL_FILE, KernelDescriptor, RolloutMetadata
from jkrollout.kernels.writer import WORK_DIR, discard

logger = get_logger(__name__)


@dataclass(frozen=True)
class InstalledKernel:
    """A kernel directory written by jkrollout."""

    path: Path
    display_name: str
    metadata: RolloutMetadata

    @property
    def slug(self) -> str:
        return self.path.name

    def to_dict(self) -> dict[str, str]:
        return {
            "slug": self.slug,
            "display_name": self.display_name,
            "resource": self.metadata.resource.value,
            "image": self.metadata.image,
            "overlay": self.metadata.overlay,
            "path": str(self.path),
        }


def read_kernel(path: Path) -> InstalledKernel | None:
    """Parse ``path/kernel.json``; None if it is not a jkrollout kernel."""
    spec_file = path / KERNEL_FILE
    if not spec_file.is_file():
        return None
    try:
        descriptor = KernelDescriptor.from_file(spec_file)
        metadata = descriptor.rollout
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning("kernel.unreadable", path=str(spec_file), error=str(exc))
        return None
    if metadata is None:
        return None
    return InstalledKernel(path=path, display_name=descriptor.display_name, metadata=metadata)


def list_kernels(kernels_dir: Path) -> list[InstalledKernel]:
    """All jkrollout kernels under ``kernels_dir``, sorted by slug."""
    kernels_dir = kernels_dir.expanduser()
    if not kernels_dir.is_dir():
        return []
    kernels = []
    for entry in sorted(kernels_dir.iterdir()):
        if entry.name.startswith(".") or not entry.is_dir():
            continue
        kernel = read_kernel(entry)
        if kernel is not None:
            kernels.append(kernel)
    return kernels


def overlay_users(kernels_dir: Path, overlay_dir: Path, exclude: str | None = None) -> list[str]:
    """Slugs of kernels (other than ``exclude``) already bound to ``overlay_dir``."""
    overlay = str(overlay_dir)
    return [
        kernel.slug
        for kernel in list_kernels(kernels_dir)
        if kernel.metadata.overlay == overlay and kernel.slug != exclude
    ]


def remove_kernel(kernels_dir: Path, slug: str) -> Result[Path]:
    """Remove a jkrollout kernel directory. The overlay directory is kept.

    The directory is renamed out of the kernel namespace first, so the
    front end never sees it half-deleted.
    """
    kernels_dir = kernels_dir.expanduser()
    target = kernels_dir / slug
    if read_kernel(target) is None:
        return Err(KernelNotFoundError(slug))

    doomed = kernels_dir / WORK_DIR / f"{slug}.removed-{uuid.uuid4().hex[:8]}"

    def move_aside() -> None:
        doomed.parent.mkdir(parents=True, exist_ok=True)
        os.rename(target, doomed)

    return try_result_with(
        move_aside,
        lambda exc: RenameError(
            f"Cannot remove kernel {target}: {exc.strerror or exc}",
            context=ErrorContext(slug=slug, path=str(target)),
            cause=exc,
        ),
        catch=(OSError,),
    ).map(lambda _: _discarded(doomed, slug, target))


def _discarded(doomed: Path, slug: str, target: Path) -> Path:
    discard(doomed)
    logger.info("kernel.removed", slug=slug, path=str(target))
    return target


__all__ = ["InstalledKernel", "list_kernels", "overlay_users", "read_kernel", "remove_kernel"]
