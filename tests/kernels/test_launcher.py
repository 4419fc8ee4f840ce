"""Tests for jkrollout.kernels.launcher: launch.sh rendering."""

from __future__ import annotations

import shlex
from pathlib import Path

import pytest

from jkrollout.kernels.launcher import LauncherTemplate
from jkrollout.kernels.models import KernelRequest
from jkrollout.kernels.naming import KernelName, ResourceHint
from jkrollout.runtime.invoker import ContainerRuntime


def make_request(resource=ResourceHint.GPU, overlay="/home/u/local/pytorch-2.9.1") -> KernelRequest:
    return KernelRequest(
        name=KernelName.parse("PyTorch 2.9.1").unwrap(),
        image=Path("/home/u/pytorch-2.9.1.sif"),
        overlay_dir=Path(overlay),
        resource=resource,
    )


@pytest.fixture()
def template() -> LauncherTemplate:
    return LauncherTemplate(runtime=ContainerRuntime(), container_user_dir="/home/u/.local")


class TestExecLine:
    def test_gpu(self, template):
        line = template.exec_line(make_request())
        assert line == (
            "exec apptainer exec --nv --bind /home/u/local/pytorch-2.9.1:/home/u/.local "
            '/home/u/pytorch-2.9.1.sif python "$@"'
        )

    def test_cpu_has_no_gpu_flag(self, template):
        assert "--nv" not in template.exec_line(make_request(ResourceHint.CPU))

    def test_paths_with_spaces_are_quoted(self, template):
        line = template.exec_line(make_request(overlay="/home/u/my overlays/pt"))
        argv = shlex.split(line)
        assert argv[argv.index("--bind") + 1] == "/home/u/my overlays/pt:/home/u/.local"

    def test_arguments_forwarded_verbatim(self, template):
        assert template.exec_line(make_request()).endswith('python "$@"')


class TestRender:
    def test_shebang_and_exec_last(self, template):
        lines = template.render(make_request()).splitlines()
        assert lines[0] == "#!/usr/bin/env bash"
        assert lines[-1].startswith("exec apptainer exec")

    def test_module_loads_guarded(self, template):
        script = template.render(make_request())
        assert "if type module >/dev/null 2>&1; then" in script
        assert "    module purge" in script
        assert "    module load apptainer" in script

    def test_gpu_prep(self):
        template = LauncherTemplate(
            runtime=ContainerRuntime(),
            container_user_dir="/home/u/.local",
            gpu_modules=("cuda/12.8",),
        )
        gpu = template.render(make_request(ResourceHint.GPU))
        cpu = template.render(make_request(ResourceHint.CPU))

        assert "module load cuda/12.8" in gpu
        assert "APPTAINERENV_CUDA_VISIBLE_DEVICES" in gpu
        assert "cuda/12.8" not in cpu
        assert "APPTAINERENV_CUDA_VISIBLE_DEVICES" not in cpu

    def test_init_script_sourced(self):
        template = LauncherTemplate(
            runtime=ContainerRuntime(),
            container_user_dir="/home/u/.local",
            init_script=Path("/etc/profile.d/modules.sh"),
        )
        assert "source /etc/profile.d/modules.sh" in template.render(make_request())

    def test_no_modules(self):
        template = LauncherTemplate(runtime=ContainerRuntime(), container_user_dir="/c", modules=())
        assert "module" not in template.render(make_request(ResourceHint.CPU)).split("\n", 3)[-1]

    def test_deterministic(self, template):
        assert template.render(make_request()) == template.render(make_request())

    def test_display_name_newlines_stay_in_comment(self, template):
        request = KernelRequest(
            name=KernelName.parse("Evil\nrm -rf ~").unwrap(),
            image=Path("/i.sif"),
            overlay_dir=Path("/o"),
        )
        script = template.render(request)
        assert "\nrm -rf ~" not in script
