"""Tests for jkrollout.runtime.puller."""

from __future__ import annotations

from jkrollout.core.errors import RuntimeInvocationError
from jkrollout.runtime.invoker import ContainerRuntime
from jkrollout.runtime.puller import pull_image

SOURCE = "docker://pytorch/pytorch:2.9.1-cuda12.8-cudnn9-runtime"


class TestPullImage:
    def test_pull(self, fake_apptainer, tmp_path):
        output = tmp_path / "pytorch-2.9.1.sif"
        result = pull_image(ContainerRuntime(), SOURCE, output)

        assert result.unwrap() == output.resolve()
        assert fake_apptainer.calls == [["apptainer", "pull", str(output), SOURCE]]

    def test_force(self, fake_apptainer, tmp_path):
        pull_image(ContainerRuntime(), SOURCE, tmp_path / "x.sif", force=True)
        assert fake_apptainer.calls[0][:3] == ["apptainer", "pull", "--force"]

    def test_failure(self, fake_apptainer, tmp_path):
        fake_apptainer.respond(
            lambda argv: argv[1] == "pull",
            lambda argv: fake_apptainer.completed(argv, 255, stderr="FATAL: Image file already exists"),
        )
        result = pull_image(ContainerRuntime(), SOURCE, tmp_path / "x.sif")
        assert isinstance(result.error, RuntimeInvocationError)
        assert "already exists" in result.error.diagnostic
