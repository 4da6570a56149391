"""FHIR Validation Framework.

This module turns pydantic validation failures into the library's error
taxonomy, evaluates terminology bindings against the code system registry and
collects non-fatal findings into ``ValidationOutcome`` objects that render as
FHIR OperationOutcome resources.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic_core import ValidationError as PydanticValidationError

from clinical_fhir.coding_systems.registry import (
    BindingStrength,
    CodeSystemRegistry,
    ValueSetBinding,
)
from clinical_fhir.core.exceptions import (
    BindingError,
    CardinalityError,
    FHIRValidationError,
    FormatError,
    ReferenceShapeError,
    join_path,
)
from clinical_fhir.utils.logging import get_logger

logger = get_logger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "OperationOutcome"


class ValidationSeverity(Enum):
    """FHIR validation issue severity levels."""

    ERROR = "error"  # Content is invalid
    WARNING = "warning"  # Content could be improved
    INFORMATION = "information"  # Informational message


class ValidationType(Enum):
    """Types of FHIR validation."""

    STRUCTURE = "structure"  # Basic structure validation
    FORMAT = "format"  # Primitive lexical grammar
    CARDINALITY = "cardinality"  # Required/optional fields
    VALUE_SET = "value_set"  # Code system validation
    BUSINESS_RULE = "business_rule"  # Status transitions and invariants
    REFERENCE = "reference"  # Reference validation
    BEST_PRACTICE = "best_practice"  # Best practice warnings


_ERROR_CLASSES = {
    ValidationType.FORMAT: FormatError,
    ValidationType.CARDINALITY: CardinalityError,
    ValidationType.VALUE_SET: BindingError,
    ValidationType.REFERENCE: ReferenceShapeError,
}

_ISSUE_CODES = {
    ValidationType.STRUCTURE: "structure",
    ValidationType.FORMAT: "value",
    ValidationType.CARDINALITY: "required",
    ValidationType.VALUE_SET: "code-invalid",
    ValidationType.BUSINESS_RULE: "business-rule",
    ValidationType.REFERENCE: "invalid",
    ValidationType.BEST_PRACTICE: "informational",
}


class ValidationIssue:
    """Represents a validation issue."""

    def __init__(
        self,
        severity: ValidationSeverity,
        validation_type: ValidationType,
        location: str,
        message: str,
        details: Optional[str] = None,
    ):
        """Initialize validation issue.

        Args:
            severity: Issue severity
            validation_type: Type of validation
            location: Location in resource (FHIRPath)
            message: Issue message
            details: Additional details
        """
        self.severity = severity
        self.validation_type = validation_type
        self.location = location
        self.message = message
        self.details = details

    @classmethod
    def from_error(cls, error: FHIRValidationError) -> "ValidationIssue":
        """Build an error-severity issue from a raised validation error."""
        try:
            validation_type = ValidationType(error.validation_type)
        except ValueError:
            validation_type = ValidationType.STRUCTURE
        return cls(ValidationSeverity.ERROR, validation_type, error.path, error.message)

    def to_error(self) -> FHIRValidationError:
        """Convert to the matching exception class."""
        error_class = _ERROR_CLASSES.get(self.validation_type, FHIRValidationError)
        if error_class is FormatError:
            return FormatError("value", None, path=self.location, message=self.message)
        return error_class(self.message, path=self.location)

    @property
    def is_error(self) -> bool:
        """Return True for error severity."""
        return self.severity is ValidationSeverity.ERROR

    def to_operation_outcome_issue(self) -> Dict[str, Any]:
        """Convert to FHIR OperationOutcome issue.

        Returns:
            OperationOutcome issue component
        """
        issue: Dict[str, Any] = {
            "severity": self.severity.value,
            "code": _ISSUE_CODES[self.validation_type],
            "diagnostics": self.message,
        }
        if self.location:
            issue["expression"] = [self.location]
        if self.details:
            issue["details"] = {"text": self.details}
        return issue

    def __repr__(self) -> str:
        """Return debug representation."""
        return (
            f"ValidationIssue({self.severity.value}, {self.validation_type.value}, "
            f"{self.location!r}, {self.message!r})"
        )


class ValidationOutcome:
    """Result of validating a resource without raising."""

    def __init__(self, resource: Any = None, issues: Optional[List[ValidationIssue]] = None):
        """Initialize outcome.

        Args:
            resource: The validated resource, or None when construction failed
            issues: Every issue found
        """
        self.resource = resource
        self.issues: List[ValidationIssue] = list(issues or [])

    @property
    def errors(self) -> List[ValidationIssue]:
        """Issues with error severity."""
        return [issue for issue in self.issues if issue.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        """Issues with warning severity."""
        return [issue for issue in self.issues if issue.severity is ValidationSeverity.WARNING]

    @property
    def ok(self) -> bool:
        """Return True when no error was found."""
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise the first error, carrying every error as ``issues``."""
        errors = [issue.to_error() for issue in self.errors]
        if errors:
            primary = errors[0]
            primary.issues = errors
            raise primary

    def to_operation_outcome(self) -> Dict[str, Any]:
        """Render as a FHIR OperationOutcome resource dict."""
        issues = [issue.to_operation_outcome_issue() for issue in self.issues]
        if not issues:
            issues = [
                {"severity": "information", "code": "informational", "diagnostics": "All OK"}
            ]
        return {"resourceType": "OperationOutcome", "issue": issues}


_CARDINALITY_ERROR_TYPES = {
    "missing",
    "too_short",
    "too_long",
    "extra_forbidden",
    "union_tag_not_found",
}
_BINDING_ERROR_TYPES = {"enum", "literal_error", "union_tag_invalid"}


def format_location(loc: Sequence[Union[str, int]]) -> str:
    """Render a pydantic error location as a FHIRPath-like string.

    Schema-internal segments (union tags, validator function names) are
    dropped; the ``class_`` attribute is reported under its FHIR name.
    """
    path = ""
    for segment in loc:
        if isinstance(segment, int):
            path += f"[{segment}]"
            continue
        if not segment or segment[0].isupper() or "[" in segment or "-" in segment:
            continue
        if segment == "class_":
            segment = "class"
        path = join_path(path, segment)
    return path


def translate_validation_error(exc: PydanticValidationError, root: str) -> FHIRValidationError:
    """Translate a pydantic ValidationError into the error taxonomy.

    Args:
        exc: Error raised by pydantic
        root: Path root, normally the resource or datatype name

    Returns:
        The first translated error with every translated error in ``issues``
    """
    translated: List[FHIRValidationError] = []
    for detail in exc.errors(include_url=False):
        location = join_path(root, format_location(detail["loc"]))
        error_type = detail["type"]
        cause = (detail.get("ctx") or {}).get("error")

        if isinstance(cause, FHIRValidationError):
            for issue in cause.issues:
                translated.append(issue.with_path(location))
        elif error_type in _CARDINALITY_ERROR_TYPES:
            message = "unknown element" if error_type == "extra_forbidden" else detail["msg"]
            if error_type == "missing":
                message = "required element is missing"
            translated.append(CardinalityError(message, path=location))
        elif error_type in _BINDING_ERROR_TYPES:
            translated.append(BindingError(detail["msg"], path=location))
        else:
            translated.append(
                FormatError(error_type, detail.get("input"), path=location, message=detail["msg"])
            )

    primary = translated[0]
    primary.issues = translated
    return primary


def evaluate_binding(
    codings: Iterable[Tuple[Optional[str], Optional[str]]],
    binding: ValueSetBinding,
    path: str,
    registry: CodeSystemRegistry,
    strict_extensible: bool = False,
) -> Optional[ValidationIssue]:
    """Check coded values against a binding.

    Args:
        codings: ``(system, code)`` pairs carried by the element
        binding: Binding declared for the element
        path: Element location
        registry: Code system registry to consult
        strict_extensible: Report extensible misses as errors

    Returns:
        An issue when the binding is not met, else None
    """
    if binding.strength is BindingStrength.EXAMPLE or not registry.has_system(binding.system):
        return None

    coded = [(system, code) for system, code in codings if code]
    if not coded:
        if binding.strength is BindingStrength.REQUIRED:
            return ValidationIssue(
                ValidationSeverity.ERROR,
                ValidationType.VALUE_SET,
                path,
                f"a code from {binding.system} is required",
            )
        return None

    if any(system == binding.system and registry.contains_code(system, code) for system, code in coded):
        return None

    unknown = [code for system, code in coded if system == binding.system]
    if unknown:
        message = f"code {unknown[0]!r} is not defined in {binding.system}"
    else:
        message = f"no coding from {binding.system}"

    if binding.strength is BindingStrength.REQUIRED or (
        strict_extensible and binding.strength is BindingStrength.EXTENSIBLE
    ):
        severity = ValidationSeverity.ERROR
    else:
        severity = ValidationSeverity.WARNING
        logger.debug("binding_not_met", path=path, system=binding.system, strength=binding.strength.value)
    return ValidationIssue(severity, ValidationType.VALUE_SET, path, message)


def validate_resource(data: Any) -> ValidationOutcome:
    """Validate a resource dict or instance without raising.

    Args:
        data: FHIR JSON dict, or an already constructed resource

    Returns:
        ValidationOutcome with the resource (or None) and every issue found
    """
    # Imported here: the resource layer depends on this module
    from clinical_fhir.fhir_base import Resource, conformance_issues
    from clinical_fhir.fhir_converter import parse_resource

    if isinstance(data, Resource):
        resource = data
    else:
        try:
            resource = parse_resource(data)
        except FHIRValidationError as error:
            return ValidationOutcome(None, [ValidationIssue.from_error(issue) for issue in error.issues])
    return ValidationOutcome(resource, conformance_issues(resource))
