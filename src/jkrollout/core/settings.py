"""Settings for jkrollout.

Cluster sites differ in where Apptainer lives, which environment modules
must be loaded, and how long a ``pip install`` inside a container may take.
``RolloutSettings`` collects those knobs in one pydantic-settings model so
they can be set once per site through ``JKROLLOUT_*`` environment variables
or a ``.env`` file instead of being repeated on every command line.

Features:
    - **RolloutSettings:** runtime binary, kernel/overlay roots, module loads, timeouts
    - **env_prefix:** ``JKROLLOUT_`` (e.g. ``JKROLLOUT_RUNTIME=singularity``)
    - **.env file support:** Automatic loading via pydantic-settings
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> settings = RolloutSettings(runtime="singularity", exec_timeout=1800)
    >>> settings.overlay_for(Path("/home/u/pytorch-2.9.1.sif"))
    PosixPath('/home/u/local/pytorch-2.9.1')

Tags:
    settings, configuration, pydantic, environment, jkrollout
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from jupyter_client.kernelspec import KernelSpecManager
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_kernels_dir() -> Path:
    return Path(KernelSpecManager().user_kernel_dir)


class RolloutSettings(BaseSettings):
    """Site configuration for kernel provisioning.

    Fields
    ──────
    runtime            : Container runtime CLI (``apptainer`` or ``singularity``)
    kernels_dir        : Per-user Jupyter kernel directory written into
    overlay_root       : Parent of the per-image overlay directories
    container_user_dir : Container path the overlay is bound onto
    python             : Interpreter invoked inside the image
    shim_package       : Package that makes the image usable as a kernel
    kernel_module      : Module the kernel spec runs (``python -m <module>``)
    modules            : Environment modules loaded by the launcher
    gpu_modules        : Extra modules loaded for GPU kernels
    init_script        : Optional site script sourced before ``module`` calls
    exec_timeout       : Hard timeout (s) for install / generic runtime calls
    detect_timeout     : Hard timeout (s) for the shim capability check
    log_level          : structlog level
    json_logs          : Force JSON (True) / console (False) logs; None = auto
    """

    model_config = SettingsConfigDict(
        env_prefix="JKROLLOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Runtime ──────────────────────────────────────────────────
    runtime: str = "apptainer"
    python: str = "python"
    shim_package: str = "ipykernel"
    kernel_module: str = "ipykernel_launcher"

    # ── Filesystem ───────────────────────────────────────────────
    kernels_dir: Path = Field(
        default_factory=_default_kernels_dir,
        description="Jupyter user kernel directory",
    )
    overlay_root: Path = Field(
        default_factory=lambda: Path.home() / "local",
        description="Parent directory of per-image overlay directories",
    )
    container_user_dir: str = Field(
        default_factory=lambda: str(Path.home() / ".local"),
        description="Container path the overlay directory is bound onto",
    )

    # ── Launcher ─────────────────────────────────────────────────
    modules: list[str] = Field(default_factory=lambda: ["apptainer"])
    gpu_modules: list[str] = Field(default_factory=list)
    init_script: Path | None = None

    # ── Timeouts ─────────────────────────────────────────────────
    exec_timeout: int = 900
    detect_timeout: int = 120

    # ── Observability ────────────────────────────────────────────
    log_level: str = "WARNING"
    json_logs: bool | None = None

    def overlay_for(self, image: Path) -> Path:
        """Default overlay directory for an image: ``<overlay_root>/<image stem>``."""
        return self.overlay_root.expanduser().absolute() / Path(image).stem


@lru_cache(maxsize=1)
def get_settings() -> RolloutSettings:
    """Process-wide settings (cached)."""
    return RolloutSettings()


__all__ = ["RolloutSettings", "get_settings"]
