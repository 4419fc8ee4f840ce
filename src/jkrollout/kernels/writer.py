"""Kernel spec writer: publish ``kernel.json`` + ``launch.sh`` atomically.

A running JupyterLab session keeps executing the launcher of the kernel it
started. Replacing that directory file by file could hand the next kernel
start a new ``kernel.json`` pointing at a half-written launcher. Every
publish therefore goes through a staging directory and a single
``os.rename``:

Architecture:
    ::

        <kernels_dir>/
        ├── .jkrollout-work/                 not a kernel dir (no kernel.json)
        │   ├── <slug>.staging-<token>/      1. write launch.sh + kernel.json, fsync
        │   └── <slug>.old-<token>/          3b. previous version (force only)
        └── <slug>/                          2. re-check, 3. os.rename(staging, target)

    1. Stage: both files are written and fsynced inside the work directory,
       which lives under ``kernels_dir`` so the rename never crosses a
       filesystem boundary, and which the front end does not list because it
       holds no ``kernel.json`` itself.
    2. Re-validate: the target is checked again immediately before the
       rename. Another provision of the same slug may have published since
       the first check; without ``force`` that is a conflict.
    3. Publish: ``os.rename(staging, target)``. With ``force`` and an
       existing target, the old directory is first renamed into the work
       directory, the staged one renamed in, and only then is the old one
       deleted. If the second rename fails the old directory is put back.

Guarantees:
    - Under its final name a kernel directory is always complete: either
      the previous version, the new one, or (between the two renames of a
      forced replace) absent, never a mix.
    - A failed run removes its staging directory.
    - ``os.rename`` failures (including ``EXDEV``) are reported as
      RenameError; there is no copy fallback.
"""

from __future__ import annotations

import errno
import os
import shutil
import uuid
from pathlib import Path

from jkrollout import __version__
from jkrollout.core.errors import (
    ErrorContext,
    KernelConflictError,
    RenameError,
    StagingWriteError,
)
from jkrollout.core.logging import get_logger
from jkrollout.core.result import Err, Ok, Result, try_result_with
from jkrollout.kernels.launcher import LauncherTemplate
from jkrollout.kernels.models import (
    CONNECTION_FILE_PLACEHOLDER,
    KERNEL_FILE,
    LAUNCHER_FILE,
    METADATA_KEY,
    KernelDescriptor,
    KernelRequest,
    RolloutMetadata,
)

logger = get_logger(__name__)

WORK_DIR = ".jkrollout-work"
_CONFLICT_ERRNOS = (errno.EEXIST, errno.ENOTEMPTY)


class KernelSpecWriter:
    """Writes kernel spec directories under ``kernels_dir``.

    Parameters
    ----------
    kernels_dir
        Jupyter user kernel directory (``~/.local/share/jupyter/kernels``).
    launcher
        Template producing the launcher script.
    kernel_module
        Module the kernel runs inside the container (``ipykernel_launcher``).
    """

    def __init__(
        self,
        kernels_dir: Path,
        launcher: LauncherTemplate,
        kernel_module: str = "ipykernel_launcher",
    ) -> None:
        self.kernels_dir = Path(kernels_dir).expanduser()
        self.launcher = launcher
        self.kernel_module = kernel_module

    @property
    def work_dir(self) -> Path:
        return self.kernels_dir / WORK_DIR

    def target_for(self, slug: str) -> Path:
        return self.kernels_dir / slug

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def descriptor(self, request: KernelRequest, target: Path) -> KernelDescriptor:
        launcher_path = target / LAUNCHER_FILE
        metadata = RolloutMetadata(
            slug=request.slug,
            image=str(request.image),
            overlay=str(request.overlay_dir),
            resource=request.resource,
            launcher=str(launcher_path),
            version=__version__,
        )
        return KernelDescriptor(
            argv=[
                str(launcher_path),
                "-m",
                self.kernel_module,
                "-f",
                CONNECTION_FILE_PLACEHOLDER,
            ],
            display_name=request.display_name,
            metadata={METADATA_KEY: metadata.model_dump(mode="json")},
        )

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def write_kernel_spec(self, request: KernelRequest) -> Result[Path]:
        """Stage and atomically publish the kernel directory for ``request``."""
        target = self.target_for(request.slug)
        if os.path.lexists(target) and not request.force:
            return Err(KernelConflictError(request.slug, str(target)))

        token = uuid.uuid4().hex[:8]
        staging = self.work_dir / f"{request.slug}.staging-{token}"

        result = self._stage(request, staging, target).flat_map(
            lambda staged: self._publish(request, staged, target, token)
        )
        if result.is_err():
            shutil.rmtree(staging, ignore_errors=True)
        return result

    def _stage(self, request: KernelRequest, staging: Path, target: Path) -> Result[Path]:
        try:
            staging.mkdir(parents=True, mode=0o755)
            launcher_path = staging / LAUNCHER_FILE
            _write_synced(launcher_path, self.launcher.render(request))
            launcher_path.chmod(0o755)
            _write_synced(staging / KERNEL_FILE, self.descriptor(request, target).to_json())
            _fsync_dir(staging)
        except OSError as exc:
            return Err(
                StagingWriteError(
                    f"Cannot write staged kernel directory {staging}: {exc.strerror or exc}",
                    context=ErrorContext(slug=request.slug, path=str(staging)),
                    cause=exc,
                )
            )
        logger.debug("kernel.staged", staging=str(staging))
        return Ok(staging)

    def _publish(
        self, request: KernelRequest, staging: Path, target: Path, token: str
    ) -> Result[Path]:
        # Re-check right before the rename; the first check may be stale.
        if os.path.lexists(target):
            if not request.force:
                return Err(KernelConflictError(request.slug, str(target)))
            return self._replace(request, staging, target, token)

        try:
            os.rename(staging, target)
        except OSError as exc:
            if exc.errno in _CONFLICT_ERRNOS:
                if request.force:
                    return self._replace(request, staging, target, token)
                return Err(KernelConflictError(request.slug, str(target), cause=exc))
            return Err(_rename_error(staging, target, exc, request.slug))

        logger.info("kernel.published", slug=request.slug, path=str(target))
        return Ok(target)

    def _replace(
        self, request: KernelRequest, staging: Path, target: Path, token: str
    ) -> Result[Path]:
        previous = self.work_dir / f"{request.slug}.old-{token}"
        return try_result_with(
            lambda: os.rename(target, previous),
            lambda exc: _rename_error(target, previous, exc, request.slug),
            catch=(OSError,),
        ).flat_map(lambda _: self._swap_in(request, staging, target, previous))

    def _swap_in(
        self, request: KernelRequest, staging: Path, target: Path, previous: Path
    ) -> Result[Path]:
        try:
            os.rename(staging, target)
        except OSError as exc:
            try:
                os.rename(previous, target)
            except OSError as restore_exc:
                logger.error(
                    "kernel.restore_failed",
                    slug=request.slug,
                    previous=str(previous),
                    error=str(restore_exc),
                )
            return Err(_rename_error(staging, target, exc, request.slug))

        discard(previous)
        logger.info("kernel.replaced", slug=request.slug, path=str(target))
        return Ok(target)


def _rename_error(source: Path, dest: Path, exc: OSError, slug: str) -> RenameError:
    reason = "cross-device rename" if exc.errno == errno.EXDEV else (exc.strerror or str(exc))
    return RenameError(
        f"Cannot rename {source} -> {dest}: {reason}",
        context=ErrorContext(slug=slug, path=str(dest)),
        cause=exc,
    )


def discard(path: Path) -> None:
    """Delete a directory tree, or a file or symlink, left in the work directory."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path, ignore_errors=True)
    elif os.path.lexists(path):
        try:
            path.unlink()
        except OSError as exc:
            logger.warning("work.discard_failed", path=str(path), error=str(exc))


def _write_synced(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())


def _fsync_dir(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


__all__ = ["KernelSpecWriter", "WORK_DIR", "discard"]
