"""Batch operation: render (and optionally submit) a Slurm job for an image."""

from __future__ import annotations

from pathlib import Path

from jkrollout.core.errors import ErrorContext, StagingWriteError
from jkrollout.core.logging import get_logger
from jkrollout.core.result import Err, Ok, Result
from jkrollout.core.settings import RolloutSettings
from jkrollout.ops.provision import resolve_overlay
from jkrollout.runtime.invoker import ContainerRuntime, check_image
from jkrollout.scheduler.slurm import BatchJob, SlurmOptions, render_batch_script

logger = get_logger(__name__)


def prepare_batch(
    settings: RolloutSettings,
    image: Path | str,
    script: str,
    options: SlurmOptions,
    *,
    script_args: tuple[str, ...] = (),
    overlay: Path | str | None = None,
) -> Result[str]:
    """Render the batch script for ``image``; Err(ImageNotFoundError) if the image is missing.

    Uses the same overlay as the image's kernel, so packages installed for
    the notebook are importable in the batch job too.
    """

    def render(checked: Path) -> str:
        job = BatchJob(
            image=checked,
            script=script,
            overlay_dir=resolve_overlay(settings, checked, overlay),
            container_user_dir=settings.container_user_dir,
            options=options,
            script_args=script_args,
            modules=tuple(settings.modules),
            python=settings.python,
        )
        return render_batch_script(job, ContainerRuntime.from_settings(settings))

    return check_image(image).map(render)


def save_batch_script(text: str, path: Path) -> Result[Path]:
    """Write the rendered script to ``path`` (mode 0755)."""
    path = path.expanduser()
    try:
        path.write_text(text, encoding="utf-8")
        path.chmod(0o755)
    except OSError as exc:
        return Err(
            StagingWriteError(
                f"Cannot write batch script {path}: {exc.strerror or exc}",
                context=ErrorContext(path=str(path)),
                cause=exc,
            )
        )
    logger.info("batch.saved", path=str(path))
    return Ok(path)


__all__ = ["prepare_batch", "save_batch_script"]
