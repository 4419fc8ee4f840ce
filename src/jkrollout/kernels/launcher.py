"""Launcher script generation.

Each kernel directory holds an executable ``launch.sh`` that the front end
runs with the kernel's ``argv``. The script

1. sources the site init script, if one is configured (needed on clusters
   where the ``module`` function is not defined in non-login shells);
2. runs ``module purge`` / ``module load <modules>`` when ``module`` exists;
3. for GPU kernels, loads the extra GPU modules and passes the job's
   ``CUDA_VISIBLE_DEVICES`` into the container;
4. ``exec``s ``apptainer exec [--nv] --bind <overlay>:<user dir> <image> python "$@"``.

``"$@"`` forwards every argument unchanged and in order: the front end
appends the connection file path as a late argument, and the kernel cannot
start if it is dropped or reordered.

The output depends only on the request and the template settings, so
re-provisioning an unchanged kernel produces a byte-identical launcher.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from jkrollout import __version__
from jkrollout.core.settings import RolloutSettings
from jkrollout.kernels.models import KernelRequest
from jkrollout.runtime.invoker import Bind, ContainerRuntime


@dataclass
class LauncherTemplate:
    """Renders ``launch.sh`` for a kernel request."""

    runtime: ContainerRuntime
    container_user_dir: str
    python: str = "python"
    modules: Sequence[str] = ("apptainer",)
    gpu_modules: Sequence[str] = field(default_factory=tuple)
    init_script: Path | None = None

    @classmethod
    def from_settings(cls, settings: RolloutSettings, runtime: ContainerRuntime) -> LauncherTemplate:
        return cls(
            runtime=runtime,
            container_user_dir=settings.container_user_dir,
            python=settings.python,
            modules=tuple(settings.modules),
            gpu_modules=tuple(settings.gpu_modules),
            init_script=settings.init_script,
        )

    def exec_line(self, request: KernelRequest) -> str:
        argv = self.runtime.exec_argv(
            request.image,
            [self.python],
            binds=[Bind(request.overlay_dir, self.container_user_dir)],
            use_gpu=request.resource.use_gpu,
        )
        return f'exec {shlex.join(argv)} "$@"'

    def render(self, request: KernelRequest) -> str:
        use_gpu = request.resource.use_gpu
        lines = [
            "#!/usr/bin/env bash",
            f"# Kernel '{request.slug}' ({' '.join(request.display_name.split())}), generated by jkrollout {__version__}.",
            "# Regenerate with `jkrollout provision --force`; local edits are overwritten.",
            "",
        ]

        if self.init_script is not None:
            script = shlex.quote(str(self.init_script))
            lines.append(f"[ -r {script} ] && source {script}")

        modules = list(self.modules) + (list(self.gpu_modules) if use_gpu else [])
        if modules:
            lines.append("if type module >/dev/null 2>&1; then")
            lines.append("    module purge")
            for module in modules:
                lines.append(f"    module load {shlex.quote(module)}")
            lines.append("fi")

        if use_gpu:
            lines.extend(
                [
                    'if [ -n "${CUDA_VISIBLE_DEVICES:-}" ]; then',
                    '    export APPTAINERENV_CUDA_VISIBLE_DEVICES="$CUDA_VISIBLE_DEVICES"',
                    "fi",
                ]
            )

        lines.extend(["", self.exec_line(request), ""])
        return "\n".join(lines)


__all__ = ["LauncherTemplate"]
