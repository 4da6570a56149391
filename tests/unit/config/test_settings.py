"""Tests for library settings loaded from the environment."""

import pytest
from pydantic import ValidationError

from clinical_fhir.config import Settings, get_settings, reload_settings


class TestSettingsDefaults:
    """Test default configuration values."""

    def test_defaults(self, monkeypatch):
        """Test values used when nothing is configured."""
        for name in ("LOG_LEVEL", "LOG_FORMAT", "DEFAULT_COUNTRY", "STRICT_EXTENSIBLE_BINDINGS"):
            monkeypatch.delenv(f"CLINICAL_FHIR_{name}", raising=False)
        settings = Settings(_env_file=None)
        assert settings.log_level == "INFO"
        assert settings.log_format == "console"
        assert settings.default_country == "US"
        assert settings.npi_identifier_system == "http://hl7.org/fhir/sid/us-npi"
        assert settings.strict_extensible_bindings is False

    def test_settings_are_cached(self):
        """Test that get_settings returns one shared instance."""
        assert get_settings() is get_settings()


class TestSettingsOverrides:
    """Test environment overrides and validation."""

    def test_environment_overrides(self, monkeypatch):
        """Test that prefixed variables override defaults."""
        monkeypatch.setenv("CLINICAL_FHIR_LOG_LEVEL", "debug")
        monkeypatch.setenv("CLINICAL_FHIR_LOG_FORMAT", "json")
        monkeypatch.setenv("CLINICAL_FHIR_MRN_IDENTIFIER_SYSTEM", "urn:oid:1.2.3.4")
        settings = Settings(_env_file=None)
        assert settings.log_level == "DEBUG"
        assert settings.log_format == "json"
        assert settings.mrn_identifier_system == "urn:oid:1.2.3.4"

    def test_reload_reads_environment_again(self, monkeypatch):
        """Test that reload_settings drops the cached instance."""
        first = get_settings()
        monkeypatch.setenv("CLINICAL_FHIR_STRICT_EXTENSIBLE_BINDINGS", "true")
        reloaded = reload_settings()
        assert reloaded is not first
        assert reloaded.strict_extensible_bindings is True
        assert get_settings() is reloaded

    @pytest.mark.parametrize("level", ["verbose", "trace"])
    def test_invalid_log_level(self, level):
        """Test that unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level=level)

    def test_invalid_log_format(self):
        """Test that only console and json formats exist."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_format="xml")

    @pytest.mark.parametrize("country,expected", [("us", "US"), ("Ca", "CA")])
    def test_country_uppercased(self, country, expected):
        """Test that country codes are normalised."""
        assert Settings(_env_file=None, default_country=country).default_country == expected

    @pytest.mark.parametrize("country", ["USA", "1A", ""])
    def test_invalid_country(self, country):
        """Test that countries must be two letters."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_country=country)
