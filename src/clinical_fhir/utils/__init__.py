"""Utility helpers for the clinical FHIR library."""

from clinical_fhir.utils.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
