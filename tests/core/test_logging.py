"""Tests for jkrollout.core.logging."""

import importlib
import json

import pytest
import structlog

from jkrollout.core.logging import LogContext, configure_logging, get_logger


class TestConfigureLogging:
    def test_json_logs_go_to_stderr(self, capsys):
        configure_logging(level="INFO", json_format=True)
        get_logger("jkrollout.test").info("kernel.published", slug="pytorch-2-9-1")

        captured = capsys.readouterr()
        assert captured.out == ""
        line = json.loads(captured.err.strip().splitlines()[-1])
        assert line["event"] == "kernel.published"
        assert line["slug"] == "pytorch-2-9-1"
        assert line["service"] == "jkrollout"
        assert line["level"] == "info"
        assert line["logger_name"] == "jkrollout.test"

    def test_level_filters(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        logger = get_logger("jkrollout.test")
        logger.info("shim.detected")
        logger.warning("overlay.shared")

        err = capsys.readouterr().err
        assert "shim.detected" not in err
        assert "overlay.shared" in err


class TestLogContext:
    def test_context_bound_and_cleared(self, capsys):
        configure_logging(level="INFO", json_format=True)
        logger = get_logger("jkrollout.test")

        with LogContext(slug="pytorch-2-9-1", image="/img.sif"):
            logger.info("inside")
        logger.info("outside")

        lines = [json.loads(line) for line in capsys.readouterr().err.strip().splitlines()]
        assert lines[0]["slug"] == "pytorch-2-9-1"
        assert "slug" not in lines[1]
        assert structlog.contextvars.get_contextvars() == {}


class TestGetLogger:
    def test_module_logger_binds_name_lazily(self, capsys):
        logger = get_logger("jkrollout.kernels.writer")
        configure_logging(level="INFO", json_format=True)
        logger.info("kernel.staged")

        line = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert line["logger_name"] == "jkrollout.kernels.writer"
        assert line["event"] == "kernel.staged"

    @pytest.mark.parametrize(
        "module",
        [
            "jkrollout.runtime.invoker",
            "jkrollout.runtime.installer",
            "jkrollout.kernels.writer",
            "jkrollout.ops.provision",
            "jkrollout.scheduler.slurm",
            "jkrollout.cli.app",
        ],
    )
    def test_modules_with_loggers_import(self, module):
        assert importlib.import_module(module).__name__ == module
