"""Tests for logging utilities."""

from __future__ import annotations

import json
import logging

import pytest

from notice_digest.core.config import LoggingSettings
from notice_digest.core.logging import JsonFormatter, configure_logging


def test_configure_logging_sets_root_level() -> None:
    """configure_logging should set the root logger level according to settings."""

    settings = LoggingSettings(level="DEBUG", structured=False)
    configure_logging(settings)
    assert logging.getLogger().level == logging.DEBUG


def test_configure_logging_quiets_http_libraries() -> None:
    configure_logging(LoggingSettings(level="DEBUG", structured=True))
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_structured_lines_are_valid_json() -> None:
    record = logging.LogRecord(
        name="notice_digest.transport",
        level=logging.DEBUG,
        pathname=__file__,
        lineno=1,
        msg="Unparseable timestamp %r",
        args=('x"y\\z\n',),
        exc_info=None,
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "DEBUG"
    assert payload["logger"] == "notice_digest.transport"
    assert payload["message"] == "Unparseable timestamp 'x\"y\\\\z\\n'"


def test_structured_logging_writes_json_to_console(
    capsys: pytest.CaptureFixture[str],
) -> None:
    configure_logging(LoggingSettings(level="INFO", structured=True))

    logging.getLogger("notice_digest.test").info('quoted "value"')

    line = capsys.readouterr().err.strip().splitlines()[-1]
    assert json.loads(line)["message"] == 'quoted "value"'
