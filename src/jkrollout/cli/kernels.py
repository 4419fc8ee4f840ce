"""
CLI: ``jkrollout provision`` / ``list`` / ``remove``, the kernel lifecycle.
"""

from __future__ import annotations

from pathlib import Path

import typer

from jkrollout.cli.utils import console, emit_json, print_table, unwrap_or_exit
from jkrollout.core.settings import get_settings
from jkrollout.kernels.naming import ResourceHint


def provision_kernel(
    image: Path = typer.Argument(..., help="Materialized image file (e.g. ~/pytorch-2.9.1.sif)."),
    display_name: str = typer.Argument(..., help="Name shown in the JupyterLab launcher."),
    resource: str = typer.Argument(ResourceHint.CPU.value, help="Resource hint: gpu or cpu."),
    force: bool = typer.Option(False, "--force", "-f", help="Replace an existing kernel with the same slug."),
    overlay: Path | None = typer.Option(  # noqa: UP007
        None, "--overlay", help="Overlay directory (default: <overlay_root>/<image stem>)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
) -> None:
    """Provision an image as a Jupyter kernel.

    Installs the kernel shim into the overlay directory if the image lacks
    it, then publishes kernel.json and launch.sh atomically. Prints the
    kernel directory.
    """
    from jkrollout.ops.provision import Provisioner

    hint = unwrap_or_exit(ResourceHint.parse(resource), as_json=as_json)
    result = Provisioner.from_settings(get_settings()).provision(
        image, display_name, hint, force=force, overlay=overlay
    )
    outcome = unwrap_or_exit(result, as_json=as_json)

    if as_json:
        emit_json({"ok": True, **outcome.to_dict()})
        return
    typer.echo(str(outcome.path))


def list_kernels(
    as_json: bool = typer.Option(False, "--json", help="Print the kernels as JSON."),
) -> None:
    """List kernels provisioned by jkrollout."""
    from jkrollout.kernels.inventory import list_kernels as installed_kernels

    settings = get_settings()
    rows = [kernel.to_dict() for kernel in installed_kernels(settings.kernels_dir)]

    if as_json:
        emit_json(rows)
        return
    print_table(
        rows,
        title=f"Kernels in {settings.kernels_dir}",
        columns=["slug", "display_name", "resource", "image", "overlay"],
    )


def remove_kernel(
    slug: str = typer.Argument(..., help="Kernel slug (directory name)."),
) -> None:
    """Remove a kernel directory. The overlay directory is kept."""
    from jkrollout.kernels.inventory import remove_kernel as remove

    path = unwrap_or_exit(remove(get_settings().kernels_dir, slug))
    console.print(f"[green]✓[/green] Removed {path}")
