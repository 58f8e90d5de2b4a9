from __future__ import annotations

import io
import logging
import sys

from shared.logger import get_logger


def test_get_logger_retargets_existing_handler() -> None:
    first_stream = io.StringIO()
    second_stream = io.StringIO()

    logger = get_logger("workflow_codegen.test_logger", "INFO", stream=first_stream)
    logger.info("first")
    again = get_logger("workflow_codegen.test_logger", "DEBUG", stream=second_stream)
    again.debug("second")

    assert again is logger
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert "first" in first_stream.getvalue()
    assert "second" in second_stream.getvalue()
    assert "second" not in first_stream.getvalue()


def test_non_terminal_streams_get_plain_level_names() -> None:
    stream = io.StringIO()

    get_logger("workflow_codegen.test_plain", stream=stream).warning("careful")

    line = stream.getvalue()
    assert "| WARNING | careful" in line
    assert "\033[" not in line


def test_default_handler_follows_swapped_stderr(monkeypatch) -> None:
    logger = get_logger("workflow_codegen.test_stderr", "INFO")
    first = io.StringIO()
    second = io.StringIO()

    monkeypatch.setattr(sys, "stderr", first)
    logger.info("to first")
    monkeypatch.setattr(sys, "stderr", second)
    logger.info("to second")

    assert "to first" in first.getvalue()
    assert "to second" in second.getvalue()
    assert "to second" not in first.getvalue()
    assert len(logger.handlers) == 1
