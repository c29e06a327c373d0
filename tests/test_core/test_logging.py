"""Tests for logging configuration."""

import json
import logging

import pytest
import structlog
from structlog.stdlib import BoundLogger, ProcessorFormatter
from structlog.testing import capture_logs
from structlog.types import BindableLogger

from app.core.logging import (
    configure_logging,
    get_logger,
    get_request_logger,
    resolve_level,
)


@pytest.fixture(autouse=True)
def restore_test_logging():
    """Put the test logging setup back after each test."""
    yield
    configure_logging(testing=True)


def _app_formatter() -> ProcessorFormatter:
    handler = logging.getLogger("app").handlers[0]
    assert isinstance(handler.formatter, ProcessorFormatter)
    return handler.formatter


def test_configure_logging_json() -> None:
    """JSON rendering is used outside of tests."""
    configure_logging(json_logs=True)

    renderers = [p.__class__.__name__ for p in _app_formatter().processors]
    assert "JSONRenderer" in renderers


def test_configure_logging_testing_uses_console() -> None:
    configure_logging(testing=True, json_logs=True)

    renderers = [p.__class__.__name__ for p in _app_formatter().processors]
    assert "ConsoleRenderer" in renderers


def test_configure_logging_sets_level() -> None:
    configure_logging(level="warning")

    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("app").level == logging.WARNING
    assert logging.getLogger("app").propagate is False


@pytest.mark.parametrize(
    "level, expected",
    [
        ("debug", logging.DEBUG),
        ("INFO", logging.INFO),
        ("Error", logging.ERROR),
        ("unknown", logging.INFO),
        (logging.CRITICAL, logging.CRITICAL),
    ],
)
def test_resolve_level(level, expected) -> None:
    assert resolve_level(level) == expected


def test_json_output_is_single_line(capsys) -> None:
    """A structlog event renders as one JSON object with its fields."""
    configure_logging(json_logs=True)
    logger = structlog.get_logger("app.tests")

    logger.info("content_created", handle="abc", max_views=3)

    line = capsys.readouterr().err.strip().splitlines()[-1]
    record = json.loads(line)
    assert record["event"] == "content_created"
    assert record["handle"] == "abc"
    assert record["max_views"] == 3
    assert record["level"] == "info"


def test_get_logger() -> None:
    """Test get_logger returns a configured logger."""
    logger = get_logger()
    assert isinstance(logger, BoundLogger | BindableLogger)

    with capture_logs() as logs:
        logger.info("test_message", test_key="test_value")

    assert logs[-1]["test_key"] == "test_value"


def test_get_request_logger() -> None:
    """Test get_request_logger binds request ID."""
    with capture_logs() as logs:
        get_request_logger("test-request-id").info("test_message")

    assert logs[-1]["request_id"] == "test-request-id"
