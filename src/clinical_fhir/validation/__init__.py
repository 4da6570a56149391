"""Healthcare Validation Module.

This module provides validation outcomes, error translation and terminology
binding checks for the FHIR resource models.
"""

from .fhir_validators import (
    ValidationIssue,
    ValidationOutcome,
    ValidationSeverity,
    ValidationType,
    evaluate_binding,
    format_location,
    translate_validation_error,
    validate_resource,
)

# FHIR resource type for this module
__fhir_resource__ = "OperationOutcome"

__all__ = [
    "ValidationIssue",
    "ValidationOutcome",
    "ValidationSeverity",
    "ValidationType",
    "evaluate_binding",
    "format_location",
    "translate_validation_error",
    "validate_resource",
]
