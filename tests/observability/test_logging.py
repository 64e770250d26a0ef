"""Tests for structured logging configuration.

This module tests the logging module that provides structured
logging capabilities for callforge.
"""

import logging
import sys
from unittest.mock import patch

from callforge.observability.logging import (
    REDACTED_PLACEHOLDER,
    LoggingSettings,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_debug_mode,
    sanitize_for_logging,
)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_logging_respects_log_level(self) -> None:
        """Test that configure_logging sets the correct log level."""
        configure_logging(log_format="console", log_level="WARNING", force=True)

        assert logging.getLogger().level == logging.WARNING

    def test_handler_writes_to_stderr(self) -> None:
        configure_logging(log_format="json", log_level="INFO", force=True)

        (handler,) = logging.getLogger().handlers
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr

    def test_configure_logging_does_not_reconfigure_by_default(self) -> None:
        """Test that configure_logging skips reconfiguration without force."""
        configure_logging(log_format="console", log_level="DEBUG", force=True)

        configure_logging(log_format="json", log_level="ERROR")

        assert logging.getLogger().level == logging.DEBUG

    def test_configure_logging_from_environment_variables(self) -> None:
        """Test that configure_logging reads from environment variables."""
        with patch.dict(
            "os.environ",
            {
                "CALLFORGE_LOG_FORMAT": "json",
                "CALLFORGE_LOG_LEVEL": "ERROR",
                "CALLFORGE_SERVICE_NAME": "env-service",
            },
        ):
            configure_logging(force=True)

            assert logging.getLogger().level == logging.ERROR

    def test_logger_can_log_with_context(self) -> None:
        """Test that logger can log with bound context."""
        configure_logging(log_format="console", log_level="DEBUG", force=True)
        logger = get_logger("test.context")

        bind_context(config_key="GitHub#contributors(str,str)")
        try:
            logger.info("test.event", key="value", number=42)
        finally:
            clear_context()


class TestSanitizeForLogging:
    """Tests for redaction of sensitive fields."""

    def test_sensitive_keys_are_redacted(self) -> None:
        result = sanitize_for_logging(
            {"user": "alice", "password": "p", "api_token": "t", "Authorization": "a"}
        )

        assert result == {
            "user": "alice",
            "password": REDACTED_PLACEHOLDER,
            "api_token": REDACTED_PLACEHOLDER,
            "Authorization": REDACTED_PLACEHOLDER,
        }

    def test_nested_values(self) -> None:
        result = sanitize_for_logging(
            {"outer": {"secret": "s"}, "items": [{"cookie": "c"}, "plain"]}
        )

        assert result == {
            "outer": {"secret": REDACTED_PLACEHOLDER},
            "items": [{"cookie": REDACTED_PLACEHOLDER}, "plain"],
        }

    def test_empty(self) -> None:
        assert sanitize_for_logging({}) == {}

    def test_debug_mode_disables_redaction(self) -> None:
        with patch.dict("os.environ", {"CALLFORGE_DEBUG": "true"}):
            assert is_debug_mode()
            assert sanitize_for_logging({"password": "p"}) == {"password": "p"}

    def test_debug_mode_off_by_default(self) -> None:
        with patch.dict("os.environ", {"CALLFORGE_DEBUG": ""}):
            assert not is_debug_mode()


class TestLoggingSettings:
    """Tests for argument/environment precedence."""

    def test_arguments_win_over_environment(self) -> None:
        with patch.dict("os.environ", {"CALLFORGE_LOG_LEVEL": "ERROR"}):
            settings = LoggingSettings.resolve(log_level="debug")

        assert settings.log_level == "DEBUG"
        assert settings.level_number == logging.DEBUG

    def test_defaults(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            settings = LoggingSettings.resolve()

        assert settings == LoggingSettings("console", "INFO", "callforge")

    def test_unknown_level_falls_back_to_info(self) -> None:
        assert LoggingSettings(log_level="LOUD").level_number == logging.INFO
