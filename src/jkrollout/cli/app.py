"""
Root Typer application for the jkrollout CLI.

Kernel commands sit at the top level (``jkrollout provision ...``);
configuration inspection is a sub-app (``jkrollout config show``).
"""

from __future__ import annotations

import typer
from typer import Typer

from jkrollout import __version__
from jkrollout.core.logging import configure_logging
from jkrollout.core.settings import get_settings

app = Typer(
    name="jkrollout",
    help="jkrollout: provision Apptainer images as Jupyter kernels on HPC clusters.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("jkrollout")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"jkrollout {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(  # noqa: UP007
        None,
        "--log-level",
        help="DEBUG, INFO, WARNING or ERROR (default: JKROLLOUT_LOG_LEVEL or WARNING).",
    ),
    json_logs: bool | None = typer.Option(  # noqa: UP007
        None,
        "--json-logs/--console-logs",
        help="Log format on stderr (default: JSON unless stderr is a terminal).",
    ),
) -> None:
    """jkrollout CLI: provision kernels, pull images, render Slurm jobs."""
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=json_logs if json_logs is not None else settings.json_logs,
    )


# ── Command registration ─────────────────────────────────────────────────

from jkrollout.cli.batch import batch_job  # noqa: E402
from jkrollout.cli.config import app as config_app  # noqa: E402
from jkrollout.cli.image import pull_image  # noqa: E402
from jkrollout.cli.kernels import list_kernels, provision_kernel, remove_kernel  # noqa: E402

app.command("provision")(provision_kernel)
app.command("list")(list_kernels)
app.command("remove")(remove_kernel)
app.command("pull")(pull_image)
app.command("batch")(batch_job)

app.add_typer(config_app, name="config", help="Configuration inspection.")
