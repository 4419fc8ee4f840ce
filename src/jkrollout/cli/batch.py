"""
CLI: ``jkrollout batch``, run a script in an image under Slurm.

Without ``--submit`` the rendered script is printed (or written with
``--output``) so it can be reviewed or edited before ``sbatch``.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from jkrollout.cli.utils import console, unwrap_or_exit
from jkrollout.core.errors import InvalidOptionError
from jkrollout.core.result import Err
from jkrollout.core.settings import get_settings


def batch_job(
    image: Path = typer.Argument(..., help="Materialized image file."),
    script: str = typer.Argument(..., help="Python script to run inside the image."),
    script_args: list[str] | None = typer.Argument(None, help="Arguments passed to the script."),
    account: str | None = typer.Option(None, "--account", "-A", help="Slurm allocation."),
    partition: str | None = typer.Option("gpu", "--partition", "-p", help="Slurm partition."),
    gpus: int = typer.Option(1, "--gpus", help="GPUs (--gres=gpu:N); 0 for a CPU job."),
    mem: str = typer.Option("32G", "--mem", help="Memory per node."),
    cpus: int = typer.Option(4, "--cpus", help="CPUs per task."),
    time: str = typer.Option("00:10:00", "--time", "-t", help="Wall-clock limit."),
    job_name: str | None = typer.Option(None, "--job-name", "-J"),
    overlay: Path | None = typer.Option(None, "--overlay", help="Overlay directory override."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the script to this file."),
    submit: bool = typer.Option(False, "--submit", help="Submit with sbatch and print the job id."),
) -> None:
    """Render a Slurm batch script for IMAGE running SCRIPT."""
    from jkrollout.ops.batch import prepare_batch, save_batch_script
    from jkrollout.scheduler.slurm import SlurmOptions, submit_batch_script

    try:
        options = SlurmOptions(
            account=account,
            partition=partition,
            gpus=gpus,
            mem=mem,
            cpus_per_task=cpus,
            time=time,
            job_name=job_name,
        )
    except ValidationError as exc:
        unwrap_or_exit(Err(InvalidOptionError(_first_error(exc), cause=exc)))
        return

    settings = get_settings()
    text = unwrap_or_exit(
        prepare_batch(
            settings,
            image,
            script,
            options,
            script_args=tuple(script_args or ()),
            overlay=overlay,
        )
    )

    if output is not None:
        path = unwrap_or_exit(save_batch_script(text, output))
        if not submit:
            console.print(f"[green]✓[/green] Wrote {path}", highlight=False)

    if submit:
        job_id = unwrap_or_exit(submit_batch_script(text))
        typer.echo(job_id)
    elif output is None:
        typer.echo(text, nl=False)


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ()))
    return f"Invalid --{field.replace('_per_task', '')}: {error.get('msg')}"
