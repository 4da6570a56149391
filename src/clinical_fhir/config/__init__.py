"""Configuration module for the clinical FHIR library."""

from clinical_fhir.config.base import Settings
from clinical_fhir.config.loader import get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
