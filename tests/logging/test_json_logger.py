# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the structured JSON logger.

We verify:
  - output is valid JSON with the mandatory fields
  - extra context fields get merged in, tensors and NaN included
  - log levels filter, and the project-wide level override reaches
    loggers created earlier
"""

import json
import logging
from pathlib import Path

import pytest
import torch

from gradlab.logging.logger import get_logger, set_project_log_level


@pytest.fixture(autouse=True)
def _reset_loggers() -> None:
    """Clear test logger handlers so every test starts from a fresh logger."""
    yield  # type: ignore[misc]
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("gradlab.test"):
            logging.getLogger(name).handlers.clear()


class TestJsonOutput:
    def test_mandatory_fields_are_present(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("gradlab.test.fields", log_level="INFO")
        logger.info("test message")

        parsed = json.loads(capsys.readouterr().out.strip())
        assert parsed["level"] == "INFO"
        assert parsed["module"] == "gradlab.test.fields"
        assert parsed["msg"] == "test message"
        assert "ts" in parsed

    def test_extra_fields_are_included(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("gradlab.test.extra", log_level="INFO")
        logger.info("iteration done", extra={"iteration": 12, "loss": 0.5})

        parsed = json.loads(capsys.readouterr().out.strip())
        assert parsed["iteration"] == 12
        assert parsed["loss"] == 0.5

    def test_tensors_and_nan_are_json_safe(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("gradlab.test.safe", log_level="INFO")
        logger.info("values", extra={"theta": torch.tensor([[1.0], [2.0]]), "loss": float("nan")})

        parsed = json.loads(capsys.readouterr().out.strip())
        assert parsed["theta"] == [[1.0], [2.0]]
        assert parsed["loss"] == "nan"

    def test_exception_info_is_serialized(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("gradlab.test.exc", log_level="INFO")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.exception("failed")

        parsed = json.loads(capsys.readouterr().out.strip())
        assert "ValueError: boom" in parsed["exc"]


class TestLogLevels:
    def test_debug_hidden_at_info(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("gradlab.test.filter", log_level="INFO")
        logger.debug("hidden")
        assert capsys.readouterr().out.strip() == ""

    def test_invalid_level_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            get_logger("gradlab.test.invalid", log_level="LOUD")

    def test_repeated_calls_do_not_stack_handlers(self) -> None:
        first = get_logger("gradlab.test.repeat", log_level="INFO")
        second = get_logger("gradlab.test.repeat", log_level="DEBUG")
        assert first is second
        assert len(second.handlers) == 1
        assert second.level == logging.DEBUG

    def test_project_level_reaches_existing_loggers(self) -> None:
        logger = get_logger("gradlab.test.project", log_level="INFO")
        set_project_log_level("ERROR")
        try:
            assert logger.level == logging.ERROR
            assert all(handler.level == logging.ERROR for handler in logger.handlers)
        finally:
            set_project_log_level("INFO")


class TestFileOutput:
    def test_log_file_receives_json_lines(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "run.log"
        logger = get_logger("gradlab.test.file", log_level="INFO", log_file=log_file)
        logger.info("to file", extra={"run_id": 1})
        for handler in logger.handlers:
            handler.flush()

        line = log_file.read_text(encoding="utf-8").strip()
        assert json.loads(line)["run_id"] == 1
