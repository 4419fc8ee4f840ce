"""Tests for jkrollout.runtime.installer: idempotent shim install into the overlay."""

from __future__ import annotations

import os

import pytest

from jkrollout.core.errors import (
    DetectionError,
    InstallVerificationError,
    OverlayCreateError,
    UnsupportedImageError,
)
from jkrollout.runtime.detector import CapabilityDetector
from jkrollout.runtime.installer import OverlayInstaller, ShimStatus, ensure_overlay_dir
from jkrollout.runtime.invoker import ContainerRuntime


@pytest.fixture()
def installer() -> OverlayInstaller:
    runtime = ContainerRuntime()
    return OverlayInstaller(runtime, CapabilityDetector(runtime), container_user_dir="/home/u/.local")


@pytest.fixture()
def overlay(tmp_path):
    return tmp_path / "local" / "pytorch-2.9.1"


class TestEnsureShim:
    def test_present_means_no_install(self, installer, fake_apptainer, image, overlay):
        fake_apptainer.shim_present = True

        assert installer.ensure_shim(image, overlay).unwrap() == ShimStatus.PRESENT
        assert len(fake_apptainer.detections) == 1
        assert fake_apptainer.installs == []

    def test_absent_installs_once_and_verifies(self, installer, fake_apptainer, image, overlay):
        assert installer.ensure_shim(image, overlay).unwrap() == ShimStatus.INSTALLED
        assert len(fake_apptainer.installs) == 1
        assert len(fake_apptainer.detections) == 2
        assert overlay.is_dir()

    def test_second_run_is_noop(self, installer, fake_apptainer, image, overlay):
        installer.ensure_shim(image, overlay).unwrap()
        assert installer.ensure_shim(image, overlay).unwrap() == ShimStatus.PRESENT
        assert len(fake_apptainer.installs) == 1

    def test_install_command_binds_overlay(self, installer, fake_apptainer, image, overlay):
        installer.ensure_shim(image, overlay)
        install = fake_apptainer.installs[0]

        assert f"{overlay}:/home/u/.local" in install
        assert install[-8:] == [
            "python",
            "-m",
            "pip",
            "install",
            "--user",
            "--no-cache-dir",
            "--no-warn-script-location",
            "ipykernel",
        ]

    def test_install_failure_carries_log(self, installer, fake_apptainer, image, overlay):
        fake_apptainer.install_succeeds = False
        result = installer.ensure_shim(image, overlay)

        error = result.error
        assert type(error) is InstallVerificationError
        assert "Could not find a version" in error.diagnostic
        assert error.exit_code == 3

    def test_verification_failure(self, installer, fake_apptainer, image, overlay):
        fake_apptainer.install_takes_effect = False
        result = installer.ensure_shim(image, overlay)

        error = result.error
        assert isinstance(error, InstallVerificationError)
        assert "still not importable" in error.message
        assert "Successfully installed" in error.diagnostic
        assert len(fake_apptainer.detections) == 2

    def test_missing_pip_is_unsupported_image(self, installer, fake_apptainer, image, overlay):
        fake_apptainer.respond(
            lambda argv: "pip" in argv,
            lambda argv: fake_apptainer.completed(argv, 1, stderr="/usr/bin/python: No module named pip"),
        )
        result = installer.ensure_shim(image, overlay)
        assert isinstance(result.error, UnsupportedImageError)

    def test_detection_error_stops_before_install(self, installer, fake_apptainer, image, overlay):
        fake_apptainer.respond(
            lambda argv: "-c" in argv,
            lambda argv: fake_apptainer.completed(argv, 255, stderr="FATAL: kernel too old"),
        )
        result = installer.ensure_shim(image, overlay)

        assert isinstance(result.error, DetectionError)
        assert fake_apptainer.installs == []

    def test_overlay_not_creatable(self, installer, fake_apptainer, image, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        result = installer.ensure_shim(image, blocker / "overlay")

        assert isinstance(result.error, OverlayCreateError)
        assert fake_apptainer.installs == []


class TestEnsureOverlayDir:
    def test_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b"
        assert ensure_overlay_dir(target).unwrap() == target
        assert target.is_dir()

    def test_existing_ok(self, tmp_path):
        assert ensure_overlay_dir(tmp_path).is_ok()

    def test_file_in_the_way(self, tmp_path):
        target = tmp_path / "overlay"
        target.write_text("")
        assert isinstance(ensure_overlay_dir(target).error, OverlayCreateError)

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
    def test_read_only(self, tmp_path):
        target = tmp_path / "ro"
        target.mkdir()
        target.chmod(0o500)
        try:
            assert isinstance(ensure_overlay_dir(target).error, OverlayCreateError)
        finally:
            target.chmod(0o700)
