"""Unit tests for logging module."""

import logging
from unittest.mock import patch

import pytest
import structlog

from code_graph.config import AppSettings, Settings
from code_graph.utils.logging import (
    LogContext,
    bind_context,
    clear_context,
    get_logger,
    setup_logging,
    unbind_context,
)


def settings_for(env: str, level: str = "DEBUG") -> Settings:
    return Settings(app=AppSettings(env=env, log_level=level))


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_development_uses_console_renderer(self) -> None:
        """Development output is rendered for the console."""
        setup_logging(settings_for("development"))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_production_uses_json_renderer(self) -> None:
        setup_logging(settings_for("production", "INFO"))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_defaults_to_cached_settings(self) -> None:
        with patch("code_graph.utils.logging.get_settings") as mock_settings:
            mock_settings.return_value = settings_for("staging", "WARNING")
            setup_logging()
            mock_settings.assert_called_once()

    def test_client_libraries_quieted(self) -> None:
        setup_logging(settings_for("development"))
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("git").level == logging.WARNING


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_with_name(self) -> None:
        logger = get_logger("test_module")
        assert logger is not None
        logger.info("Indexed file", file_path="a.ts")


class TestLogContext:
    """Tests for LogContext context manager."""

    @pytest.fixture(autouse=True)
    def clean_context(self):
        clear_context()
        yield
        clear_context()

    def test_binds_and_unbinds(self) -> None:
        """Context is visible inside the block only."""
        with LogContext(job_id="job_1", repo_id="repo"):
            assert structlog.contextvars.get_contextvars() == {"job_id": "job_1", "repo_id": "repo"}
        assert structlog.contextvars.get_contextvars() == {}

    def test_nested_keeps_outer(self) -> None:
        with LogContext(job_id="job_1"):
            with LogContext(file_path="a.ts"):
                assert set(structlog.contextvars.get_contextvars()) == {"job_id", "file_path"}
            assert structlog.contextvars.get_contextvars() == {"job_id": "job_1"}

    def test_unbinds_on_exception(self) -> None:
        with pytest.raises(RuntimeError):
            with LogContext(job_id="job_1"):
                raise RuntimeError("boom")
        assert structlog.contextvars.get_contextvars() == {}


class TestContextFunctions:
    """Tests for bind/unbind/clear helpers."""

    def test_bind_unbind_clear(self) -> None:
        clear_context()
        bind_context(workspace_id="ws", repo_id="repo")
        unbind_context("repo_id")
        assert structlog.contextvars.get_contextvars() == {"workspace_id": "ws"}

        clear_context()
        assert structlog.contextvars.get_contextvars() == {}
