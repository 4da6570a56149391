"""Base configuration settings."""

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library settings.

    Values are read from ``CLINICAL_FHIR_*`` environment variables or a
    local ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="CLINICAL_FHIR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    # Factory defaults
    default_country: str = "US"
    mrn_identifier_system: str = "urn:oid:1.2.840.114350.1.13.0.1.7.5.737384.14"
    npi_identifier_system: str = "http://hl7.org/fhir/sid/us-npi"

    # Terminology
    strict_extensible_bindings: bool = False

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level names."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return v.upper()

    @field_validator("default_country")
    @classmethod
    def validate_default_country(cls, v: str) -> str:
        """Country defaults are ISO 3166 alpha-2 codes."""
        if len(v) != 2 or not v.isalpha():
            raise ValueError("default_country must be a two letter ISO 3166 code")
        return v.upper()
