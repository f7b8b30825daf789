# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for stackup logging.

We verify:
  - the console gets short marker-prefixed lines at the requested level
  - the file gets one JSON object per record, at DEBUG, extras included
  - reconfiguring replaces handlers instead of stacking them
  - module loggers are nested under the stackup logger
"""

import json
import logging
from pathlib import Path

import pytest

from stackup.logging.logger import ROOT_LOGGER_NAME, configure_logging, get_logger


class TestConsole:
    def test_status_markers(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging()
        logger = get_logger("stackup.test.console")
        logger.info("Creating env", extra={"status": "step"})
        logger.info("Done", extra={"status": "ok"})
        logger.info("Heads up", extra={"status": "note"})
        logger.warning("Careful")
        logger.error("Broken")
        logger.info("plain")

        lines = capsys.readouterr().out.splitlines()
        assert lines == ["==> Creating env", "[ok] Done", "[note] Heads up", "[warn] Careful", "[error] Broken", "plain"]

    def test_level_filters_console(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("WARNING")
        logger = get_logger("stackup.test.level")
        logger.info("hidden")
        logger.warning("shown")
        assert capsys.readouterr().out.splitlines() == ["[warn] shown"]

    def test_invalid_level(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging("LOUD")


class TestFile:
    def test_file_gets_json_at_debug(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        log_file = tmp_path / "logs" / "install.log"
        configure_logging("INFO", log_file)
        logger = get_logger("stackup.test.file")
        logger.debug("Command finished", extra={"command": "conda info", "returncode": 0})
        logger.info("hello")

        assert "Command finished" not in capsys.readouterr().out
        entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        assert [entry["msg"] for entry in entries] == ["Command finished", "hello"]
        first = entries[0]
        assert first["level"] == "DEBUG"
        assert first["module"] == "stackup.test.file"
        assert first["command"] == "conda info"
        assert first["returncode"] == 0
        assert "ts" in first

    def test_exception_is_recorded(self, tmp_path: Path) -> None:
        log_file = tmp_path / "install.log"
        configure_logging("CRITICAL", log_file)
        logger = get_logger("stackup.test.exc")
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.error("failed", exc_info=True)
        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert "RuntimeError: boom" in entry["exception"]


class TestSetup:
    def test_reconfigure_replaces_handlers(self, tmp_path: Path) -> None:
        configure_logging("INFO", tmp_path / "a.log")
        logger = configure_logging("INFO", tmp_path / "b.log")
        assert len(logger.handlers) == 2
        assert logger.propagate is False

    def test_foreign_names_are_nested(self) -> None:
        assert get_logger("plugins.extra").name == f"{ROOT_LOGGER_NAME}.plugins.extra"
        assert get_logger("stackup.cli").name == "stackup.cli"
        assert get_logger(ROOT_LOGGER_NAME) is logging.getLogger(ROOT_LOGGER_NAME)
