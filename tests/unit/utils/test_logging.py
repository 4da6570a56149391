"""Tests for structured logging setup."""

import structlog

from clinical_fhir.config import get_settings
from clinical_fhir.utils.logging import get_logger, render_processor, setup_logging


class TestRenderProcessor:
    """Test renderer selection."""

    def test_console_by_default(self, monkeypatch):
        """Test that console output is the default."""
        monkeypatch.delenv("CLINICAL_FHIR_LOG_FORMAT", raising=False)
        get_settings.cache_clear()
        assert isinstance(render_processor(), structlog.dev.ConsoleRenderer)

    def test_json_when_configured(self, monkeypatch):
        """Test that json format selects the JSON renderer."""
        monkeypatch.setenv("CLINICAL_FHIR_LOG_FORMAT", "json")
        get_settings.cache_clear()
        assert isinstance(render_processor(), structlog.processors.JSONRenderer)


class TestLoggerSetup:
    """Test logger configuration and retrieval."""

    def test_setup_logging_configures_structlog(self, monkeypatch):
        """Test that setup installs the configured renderer last."""
        monkeypatch.setenv("CLINICAL_FHIR_LOG_FORMAT", "json")
        get_settings.cache_clear()
        try:
            setup_logging()
            processors = structlog.get_config()["processors"]
            assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        finally:
            structlog.reset_defaults()

    def test_get_logger(self):
        """Test that loggers accept structured events."""
        logger = get_logger("clinical_fhir.test")
        assert hasattr(logger, "info")
        logger.debug("test_event", key="value")
