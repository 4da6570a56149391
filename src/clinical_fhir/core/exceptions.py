"""Core Exceptions Module.

This module defines the error taxonomy used throughout the clinical FHIR
library. Every validation failure carries the FHIRPath-like location of the
offending element so callers can report exactly what was rejected.
"""

from typing import Any, Dict, List, Optional


class FHIRError(Exception):
    """Base exception for all clinical FHIR errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        """Initialize exception.

        Args:
            message: Error message
            code: Optional error code
        """
        super().__init__(message)
        self.message = message
        self.code = code


class ConfigurationError(FHIRError):
    """Raised when configuration or registry setup is invalid."""

    def __init__(self, message: str):
        """Initialize ConfigurationError."""
        super().__init__(message, "CONFIGURATION_ERROR")


class FHIRValidationError(FHIRError, ValueError):
    """Base class for every rejected construction, parse or transition.

    Subclasses ValueError so that pydantic validators can raise it directly;
    the model layer unwraps it again and re-attaches the full element path.
    """

    validation_type = "structure"
    default_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        path: str = "",
        issues: Optional[List["FHIRValidationError"]] = None,
    ):
        """Initialize validation error.

        Args:
            message: Human readable description of the failure
            path: Location of the failing element, e.g. ``Patient.name[0].given[0]``
            issues: Every failure found in the same construction attempt
        """
        super().__init__(message, self.default_code)
        self.path = path
        self.issues: List[FHIRValidationError] = issues if issues is not None else [self]

    def with_path(self, prefix: str) -> "FHIRValidationError":
        """Prefix the stored path with an enclosing location and return self."""
        self.path = join_path(prefix, self.path)
        return self

    def to_issue(self) -> Dict[str, Any]:
        """Render this error as an OperationOutcome issue."""
        issue: Dict[str, Any] = {
            "severity": "error",
            "code": _ISSUE_TYPE_CODES.get(self.validation_type, "invalid"),
            "diagnostics": self.message,
        }
        if self.path:
            issue["expression"] = [self.path]
        return issue

    def __str__(self) -> str:
        """Return message prefixed with path."""
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class FormatError(FHIRValidationError):
    """Raised when a primitive literal does not match its lexical grammar."""

    validation_type = "format"
    default_code = "FORMAT_ERROR"

    def __init__(self, kind: str, literal: Any, path: str = "", message: Optional[str] = None):
        """Initialize FormatError.

        Args:
            kind: FHIR primitive kind, e.g. ``date`` or ``positiveInt``
            literal: The rejected input
            path: Element location
            message: Optional override for the generated message
        """
        self.kind = kind
        self.literal = literal
        super().__init__(message or f"invalid {kind} literal {literal!r}", path)


class CardinalityError(FHIRValidationError):
    """Raised when required content is missing or an element repeats too often."""

    validation_type = "cardinality"
    default_code = "CARDINALITY_ERROR"


class BindingError(FHIRValidationError):
    """Raised when a coded value falls outside its required value set."""

    validation_type = "value_set"
    default_code = "BINDING_ERROR"


class ReferenceShapeError(FHIRValidationError):
    """Raised when a reference string or its target type is malformed."""

    validation_type = "reference"
    default_code = "REFERENCE_ERROR"


class TransitionError(FHIRValidationError):
    """Raised when a status change is not permitted from the current state."""

    validation_type = "business_rule"
    default_code = "TRANSITION_ERROR"

    def __init__(self, current: Any, requested: Any, machine: str = "", path: str = "status"):
        """Initialize TransitionError.

        Args:
            current: Status the resource is in
            requested: Status the caller asked for
            machine: Name of the state machine, e.g. ``Encounter``
            path: Element location
        """
        self.current = current
        self.requested = requested
        self.machine = machine
        label = f"{machine} " if machine else ""
        super().__init__(
            f"{label}transition {_code_of(current)!r} -> {_code_of(requested)!r} is not allowed",
            path,
        )


_ISSUE_TYPE_CODES = {
    "structure": "structure",
    "format": "value",
    "cardinality": "required",
    "value_set": "code-invalid",
    "reference": "invalid",
    "business_rule": "business-rule",
}


def join_path(prefix: str, path: str) -> str:
    """Join two FHIRPath-like fragments."""
    if not prefix:
        return path
    if not path:
        return prefix
    if path.startswith("["):
        return f"{prefix}{path}"
    return f"{prefix}.{path}"


def _code_of(value: Any) -> Any:
    return getattr(value, "value", value)
