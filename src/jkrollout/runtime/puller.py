"""``apptainer pull`` pass-through used to materialize an image before provisioning."""

from __future__ import annotations

from pathlib import Path

from jkrollout.core.logging import get_logger
from jkrollout.core.result import Result
from jkrollout.runtime.invoker import ContainerRuntime

logger = get_logger(__name__)


def pull_image(
    runtime: ContainerRuntime,
    source: str,
    output: Path,
    force: bool = False,
    timeout: int | None = None,
) -> Result[Path]:
    """Pull ``source`` (e.g. ``docker://pytorch/pytorch:2.9.1-cuda12.8-cudnn9-runtime``) into ``output``.

    The runtime decides whether an existing ``output`` is an error; ``force``
    is forwarded as ``--force``.
    """
    output = output.expanduser()
    args = ["pull"]
    if force:
        args.append("--force")
    args.extend([str(output), source])
    logger.info("image.pulling", source=source, output=str(output))
    return runtime.run(args, timeout=timeout).map(lambda _: output.resolve())


__all__ = ["pull_image"]
