"""Tests for structured logging functionality.

Tests logging configuration, processors and context binding.
"""

import os

import pytest
import structlog

from roster.logging_config import (
    APP_NAME,
    add_app_context,
    add_log_level,
    bind_context,
    clear_context,
    configure_logging,
    drop_debug_in_production,
    get_logger,
    is_debug_mode,
    log_context,
    unbind_context,
)


@pytest.fixture(scope="module")
def setup_logging():
    """Configure logging for all tests in this module."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    json_mode = os.getenv("LOG_FORMAT", "console").lower() == "json"

    configure_logging(log_level=log_level, json_format=json_mode)
    yield


@pytest.fixture(autouse=True)
def cleanup_context():
    """Ensure context is cleared before and after each test."""
    clear_context()
    yield
    clear_context()


class TestProcessors:
    """Test the custom structlog processors."""

    def test_add_app_context(self):
        assert add_app_context(None, "info", {"event": "x"}) == {"event": "x", "app": APP_NAME}

    def test_add_log_level_keeps_existing(self):
        assert add_log_level(None, "info", {"level": "custom"})["level"] == "custom"
        assert add_log_level(None, "warning", {})["level"] == "WARNING"

    def test_debug_dropped_outside_debug_mode(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")

        assert not is_debug_mode()
        with pytest.raises(structlog.DropEvent):
            drop_debug_in_production(None, "debug", {"event": "noise"})
        assert drop_debug_in_production(None, "info", {"event": "kept"}) == {"event": "kept"}

    def test_debug_kept_in_debug_mode(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        assert is_debug_mode()
        assert drop_debug_in_production(None, "debug", {"event": "x"}) == {"event": "x"}


class TestContext:
    """Test context binding helpers."""

    def test_bind_and_unbind(self):
        bind_context(request_id="req-1", subscriber_id="U1")
        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1", "subscriber_id": "U1"}

        unbind_context("subscriber_id")
        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}

    def test_clear(self):
        bind_context(request_id="req-1")
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_log_context_restores_previous_values(self):
        bind_context(request_id="req-1")

        with log_context(sweep="sweep_expired", request_id="req-2"):
            assert structlog.contextvars.get_contextvars() == {"request_id": "req-2", "sweep": "sweep_expired"}

        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}


class TestLoggerOutput:
    """Smoke tests: configured loggers accept structured events."""

    @pytest.mark.parametrize("json_format", [True, False])
    def test_configure_both_renderers(self, json_format):
        configure_logging(log_level="INFO", json_format=json_format)
        get_logger("test.renderer").info("subscription_created", subscriber_id="U1", months=3)

    def test_exception_logging(self, setup_logging):
        logger = get_logger("test.exceptions")
        try:
            raise ValueError("months must be between 1 and 10")
        except ValueError as e:
            logger.error("validation_failed", error=str(e), exc_info=True)

    def test_logger_has_logging_methods(self, setup_logging):
        logger = get_logger("test.methods")
        for method in ("debug", "info", "warning", "error"):
            assert callable(getattr(logger, method))
