"""Batch scheduler integration (Slurm)."""

from jkrollout.scheduler.slurm import BatchJob, SlurmOptions, render_batch_script, submit_batch_script

__all__ = ["BatchJob", "SlurmOptions", "render_batch_script", "submit_batch_script"]
