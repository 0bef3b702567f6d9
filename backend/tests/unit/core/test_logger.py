"""Unit tests for the logging utility."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from lending_api.core.logger import JSONFormatter, configure_logging


@pytest.fixture()
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.usefixtures("_restore_root_logger")
def test_configure_logging_sets_level() -> None:
    """``configure_logging`` should set the root logger level."""

    configure_logging("debug")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JSONFormatter)


def test_json_formatter_includes_token_fields() -> None:
    record = logging.LogRecord(
        name="lending_api.services.sessions.rotation",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="refresh_token.rotated",
        args=(),
        exc_info=None,
    )
    record.event = "refresh_token.rotated"
    record.token_id = "0b7c"
    record.digest_prefix = "a1b2c3d4e5f6"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["message"] == "refresh_token.rotated"
    assert payload["event"] == "refresh_token.rotated"
    assert payload["token_id"] == "0b7c"
    assert payload["digest_prefix"] == "a1b2c3d4e5f6"
    assert "user_id" not in payload


def test_json_formatter_renders_exceptions() -> None:
    try:
        raise ValueError("boom")
    except ValueError:
        exc_info = sys.exc_info()
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), exc_info)

    payload = json.loads(JSONFormatter().format(record))

    assert "ValueError: boom" in payload["exc_info"]
