"""
CLI: ``jkrollout pull``, materialize an image with the container runtime.
"""

from __future__ import annotations

from pathlib import Path

import typer

from jkrollout.cli.utils import unwrap_or_exit
from jkrollout.core.settings import get_settings


def pull_image(
    source: str = typer.Argument(..., help="Image URI, e.g. docker://pytorch/pytorch:2.9.1-cuda12.8-cudnn9-runtime"),
    output: Path = typer.Argument(..., help="Image file to write (e.g. ~/pytorch-2.9.1.sif)."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing image file."),
) -> None:
    """Pull an image into a local file. Prints the image path."""
    from jkrollout.runtime.invoker import ContainerRuntime
    from jkrollout.runtime.puller import pull_image as pull

    runtime = ContainerRuntime.from_settings(get_settings())
    path = unwrap_or_exit(pull(runtime, source, output, force=force))
    typer.echo(str(path))
