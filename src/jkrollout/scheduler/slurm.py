"""Slurm batch scripts that run a Python script inside a provisioned image.

The batch counterpart of a kernel: the same image and overlay directory,
but started by ``sbatch`` instead of the notebook front end. The rendered
script has the shape sites document for Apptainer jobs::

    #!/bin/bash
    #SBATCH --account=<allocation>
    #SBATCH --partition=gpu
    #SBATCH --gres=gpu:1
    #SBATCH --mem=32G
    #SBATCH --cpus-per-task=4
    #SBATCH --time=00:10:00
    #SBATCH -e slurm-%j.err
    #SBATCH -o slurm-%j.out

    module purge
    module load apptainer
    apptainer exec --nv --bind ~/local/pytorch-2.9.1:~/.local ~/pytorch-2.9.1.sif python train.py

Submission pipes the script to ``sbatch --parsable`` on stdin and returns the
job id; nothing is written to disk unless the caller asks for a copy.
"""

from __future__ import annotations

import re
import shlex
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from jkrollout.core.errors import BatchSubmitError, ErrorContext
from jkrollout.core.logging import get_logger
from jkrollout.core.result import Err, Ok, Result
from jkrollout.runtime.invoker import Bind, ContainerRuntime

logger = get_logger(__name__)

_TIME_PATTERN = re.compile(r"^(\d+-)?\d+(:\d{2}){0,2}$")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


class SlurmOptions(BaseModel):
    """``#SBATCH`` resource directives."""

    account: str | None = Field(default=None, description="Allocation to charge (--account)")
    partition: str | None = Field(default="gpu", description="Partition (--partition)")
    gpus: int = Field(default=1, ge=0, description="GPUs requested via --gres=gpu:N")
    mem: str = Field(default="32G", description="Memory per node (--mem)")
    cpus_per_task: int = Field(default=4, ge=1, description="--cpus-per-task")
    time: str = Field(default="00:10:00", description="Wall-clock limit (--time)")
    job_name: str | None = None
    error: str = "slurm-%j.err"
    output: str = "slurm-%j.out"

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        if not _TIME_PATTERN.match(value):
            raise ValueError(f"not a Slurm time limit: {value!r}")
        return value

    @field_validator("account", "partition", "mem", "job_name", "error", "output")
    @classmethod
    def _check_single_line(cls, value: str | None) -> str | None:
        # Each value becomes one #SBATCH line.
        if value is not None and _CONTROL_CHARS.search(value):
            raise ValueError("must not contain control characters")
        return value

    def directives(self) -> list[str]:
        lines = []
        if self.job_name:
            lines.append(f"#SBATCH --job-name={self.job_name}")
        if self.account:
            lines.append(f"#SBATCH --account={self.account}")
        if self.partition:
            lines.append(f"#SBATCH --partition={self.partition}")
        if self.gpus:
            lines.append(f"#SBATCH --gres=gpu:{self.gpus}")
        lines.extend(
            [
                f"#SBATCH --mem={self.mem}",
                f"#SBATCH --cpus-per-task={self.cpus_per_task}",
                f"#SBATCH --time={self.time}",
                f"#SBATCH -e {self.error}",
                f"#SBATCH -o {self.output}",
            ]
        )
        return lines


@dataclass
class BatchJob:
    """A Python script to run inside ``image`` under Slurm."""

    image: Path
    script: str
    overlay_dir: Path
    container_user_dir: str
    options: SlurmOptions = field(default_factory=SlurmOptions)
    script_args: Sequence[str] = ()
    modules: Sequence[str] = ("apptainer",)
    python: str = "python"

    @property
    def use_gpu(self) -> bool:
        return self.options.gpus > 0


def render_batch_script(job: BatchJob, runtime: ContainerRuntime) -> str:
    """Render the sbatch script for ``job`` (deterministic, no side effects)."""
    argv = runtime.exec_argv(
        job.image,
        [job.python, job.script, *job.script_args],
        binds=[Bind(job.overlay_dir, job.container_user_dir)],
        use_gpu=job.use_gpu,
    )
    lines = ["#!/bin/bash", *job.options.directives(), ""]
    if job.modules:
        lines.append("module purge")
        lines.extend(f"module load {shlex.quote(m)}" for m in job.modules)
    lines.append(shlex.join(argv))
    return "\n".join(lines) + "\n"


def submit_batch_script(text: str, sbatch: str = "sbatch", timeout: int = 60) -> Result[str]:
    """Submit ``text`` with ``sbatch --parsable``; Ok(job id)."""
    argv = [sbatch, "--parsable"]
    context = ErrorContext(command=argv)
    try:
        completed = subprocess.run(
            argv,
            input=text,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        return Err(BatchSubmitError(f"sbatch timed out after {timeout}s", context=context, cause=exc))
    except FileNotFoundError as exc:
        return Err(BatchSubmitError(f"'{sbatch}' not found on PATH", context=context, cause=exc))

    if completed.returncode != 0:
        context.exit_code = completed.returncode
        return Err(
            BatchSubmitError(
                f"sbatch failed (exit {completed.returncode})",
                diagnostic=(completed.stderr or completed.stdout or "").strip() or None,
                context=context,
            )
        )

    # --parsable prints "<jobid>" or "<jobid>;<cluster>"
    job_id = (completed.stdout or "").strip().split(";")[0]
    if not job_id:
        return Err(BatchSubmitError("sbatch returned no job id", context=context))
    logger.info("batch.submitted", job_id=job_id)
    return Ok(job_id)


__all__ = ["BatchJob", "SlurmOptions", "render_batch_script", "submit_batch_script"]
