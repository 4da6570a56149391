"""Base FHIR Resource Classes.

This module provides ``Resource`` and ``DomainResource``, the registry that
maps ``resourceType`` to model classes, and the conformance walk that checks
terminology bindings and reference targets declared on every model class.
"""

from contextvars import ContextVar
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

from pydantic import SerializeAsAny, field_validator, model_validator

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.coding_systems.registry import BindingStrength, ValueSetBinding, get_registry
from clinical_fhir.config import get_settings
from clinical_fhir.core.exceptions import (
    BindingError,
    CardinalityError,
    FHIRValidationError,
    ReferenceShapeError,
    join_path,
)
from clinical_fhir.fhir_types import (
    CodeableConcept,
    Coding,
    Extension,
    FHIRModel,
    Meta,
    Narrative,
    Reference,
    isolated_validation,
)
from clinical_fhir.primitives import FhirCode, FhirId, FhirUri
from clinical_fhir.references import format_reference
from clinical_fhir.utils.logging import get_logger
from clinical_fhir.validation.fhir_validators import (
    ValidationIssue,
    ValidationSeverity,
    ValidationType,
    evaluate_binding,
)

logger = get_logger(__name__)

ResourceT = TypeVar("ResourceT", bound="Resource")

_RESOURCE_CLASSES: Dict[str, Type["Resource"]] = {}

# True while the entries of a ``contained`` list are being validated
_validating_contained: ContextVar[bool] = ContextVar("validating_contained", default=False)


def register_resource(cls: Type[ResourceT]) -> Type[ResourceT]:
    """Class decorator registering a resource model under its resourceType."""
    _RESOURCE_CLASSES[cls.resource_type_name()] = cls
    return cls


def get_resource_class(resource_type: Any) -> Type["Resource"]:
    """Return the model class registered for ``resource_type``.

    Raises:
        CardinalityError: If no resourceType is given
        BindingError: If the resourceType is not supported
    """
    if resource_type is None:
        raise CardinalityError("resourceType is required", path="resourceType")
    try:
        return _RESOURCE_CLASSES[resource_type]
    except (KeyError, TypeError):
        raise BindingError(f"unsupported resourceType {resource_type!r}", path="resourceType") from None


def registered_resource_types() -> Tuple[str, ...]:
    """Names of every registered resource type."""
    return tuple(sorted(_RESOURCE_CLASSES))


class Resource(FHIRModel):
    """Base for all FHIR resources."""

    __bindings__ = {"language": ValueSetBinding(hl7.LANGUAGES, BindingStrength.PREFERRED)}

    resourceType: str
    id: Optional[FhirId] = None
    meta: Optional[Meta] = None
    implicitRules: Optional[FhirUri] = None
    language: Optional[FhirCode] = None

    @classmethod
    def resource_type_name(cls) -> str:
        """resourceType value of this class."""
        default = cls.model_fields["resourceType"].default
        return default if isinstance(default, str) else cls.__name__

    @model_validator(mode="after")
    def _check_conformance(self) -> "Resource":
        check_local = not _validating_contained.get()
        errors = [issue for issue in conformance_issues(self, root="", check_local_references=check_local)
                  if issue.is_error]
        if errors:
            translated = [issue.to_error() for issue in errors]
            primary = translated[0]
            primary.issues = translated
            raise primary
        return self

    def to_reference(self, display: Optional[str] = None) -> Reference:
        """Build a relative Reference pointing at this resource.

        Raises:
            ReferenceShapeError: If the resource has no id
        """
        if self.id is None:
            raise ReferenceShapeError(f"{self.resourceType} without id cannot be referenced", path="id")
        data: Dict[str, Any] = {"reference": format_reference(self.resourceType, str(self.id))}
        if display:
            data["display"] = display
        return Reference(**data)

    def evolve(self: ResourceT, **changes: Any) -> ResourceT:
        """Return a fully re-validated copy with ``changes`` applied.

        Keys are FHIR element names; a value of None removes the element.
        """
        data = self.model_dump(by_alias=True, exclude_none=True)
        data.update(changes)
        return type(self).model_validate(data)


class DomainResource(Resource):
    """A resource with narrative, extensions and contained resources."""

    text: Optional[Narrative] = None
    contained: Optional[List[SerializeAsAny[Resource]]] = None
    extension: Optional[List[Extension]] = None
    modifierExtension: Optional[List[Extension]] = None

    @field_validator("contained", mode="before")
    @classmethod
    def _dispatch_contained(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        resources = []
        token = _validating_contained.set(True)
        try:
            for index, entry in enumerate(value):
                resources.append(_contained_entry(index, entry))
        finally:
            _validating_contained.reset(token)
        return resources

    @model_validator(mode="after")
    def _check_contained_rules(self) -> "DomainResource":
        for index, resource in enumerate(self.contained or []):
            # dom-2, dom-4
            if isinstance(resource, DomainResource) and resource.contained:
                raise CardinalityError("contained resources cannot contain resources",
                                       path=f"contained[{index}].contained")
            if resource.meta is not None and (resource.meta.versionId or resource.meta.lastUpdated):
                raise CardinalityError("contained resources cannot have meta.versionId or meta.lastUpdated",
                                       path=f"contained[{index}].meta")
            if resource.id is None:
                raise CardinalityError("contained resources require an id", path=f"contained[{index}].id")
        return self


def _contained_entry(index: int, entry: Any) -> Resource:
    if isinstance(entry, Resource):
        return entry
    if not isinstance(entry, dict):
        raise BindingError("contained entries must be resources", path=f"[{index}]")
    resource_type = entry.get("resourceType")
    try:
        resource_class = get_resource_class(resource_type)
        with isolated_validation():
            return resource_class.model_validate(entry)
    except FHIRValidationError as error:
        for issue in error.issues:
            issue.path = join_path(f"[{index}]", _strip_root(issue.path, resource_type))
        raise


def _strip_root(path: str, root: Any) -> str:
    if isinstance(root, str) and (path == root or path.startswith(f"{root}.") or path.startswith(f"{root}[")):
        return path[len(root):].lstrip(".")
    return path


def _iter_values(value: Any, path: str) -> Iterator[Tuple[Any, str]]:
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield item, f"{path}[{index}]"
    else:
        yield value, path


def _codings_of(value: Any, binding: ValueSetBinding) -> List[Tuple[Optional[str], Optional[str]]]:
    if isinstance(value, CodeableConcept):
        return [(_text(c.system), _text(c.code)) for c in value.coding or []]
    if isinstance(value, Coding):
        return [(_text(value.system), _text(value.code))]
    code = getattr(value, "value", value)
    return [(binding.system, str(code))]


def _text(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _walk(model: FHIRModel, path: str, issues: List[ValidationIssue], references: List[Tuple[Reference, str]],
          registry: Any, strict: bool) -> None:
    cls = type(model)
    for name, value in model.iter_set_fields():
        if name == "contained" and isinstance(model, DomainResource):
            continue
        element_path = join_path(path, cls.element_name(name))

        binding = cls.__bindings__.get(name)
        if binding is not None:
            for item, item_path in _iter_values(value, element_path):
                issue = evaluate_binding(_codings_of(item, binding), binding, item_path, registry, strict)
                if issue is not None:
                    issues.append(issue)

        targets = cls.__reference_targets__.get(name)
        for item, item_path in _iter_values(value, element_path):
            if isinstance(item, Reference):
                references.append((item, item_path))
                if targets:
                    _check_reference_target(item, targets, item_path, issues)
            if isinstance(item, FHIRModel):
                _walk(item, item_path, issues, references, registry, strict)


def _check_reference_target(reference: Reference, targets: Tuple[str, ...], path: str,
                            issues: List[ValidationIssue]) -> None:
    if "Resource" in targets:
        return
    resource_type = reference.resource_type
    if resource_type is not None and resource_type not in targets:
        issues.append(
            ValidationIssue(
                ValidationSeverity.ERROR,
                ValidationType.REFERENCE,
                path,
                f"reference to {resource_type} is not allowed here; expected {' | '.join(targets)}",
            )
        )


def _duplicate_identifier_issues(resource: Resource, root: str) -> List[ValidationIssue]:
    identifiers = getattr(resource, "identifier", None)
    if not isinstance(identifiers, list):
        return []
    seen = set()
    issues = []
    for index, identifier in enumerate(identifiers):
        key = (identifier.system, identifier.value)
        if identifier.value is not None and key in seen:
            issues.append(
                ValidationIssue(
                    ValidationSeverity.WARNING,
                    ValidationType.BEST_PRACTICE,
                    join_path(root, f"identifier[{index}]"),
                    f"identifier {identifier.value!s} is repeated for system {identifier.system!s}",
                )
            )
        seen.add(key)
    return issues


def _local_reference_issues(resource: Resource, references: List[Tuple[Reference, str]],
                            root: str) -> List[ValidationIssue]:
    contained = list(getattr(resource, "contained", None) or [])
    contained_ids = {str(entry.id) for entry in contained if entry.id is not None}
    issues = []
    used = set()

    # References made by contained resources point into the same container
    for index, entry in enumerate(contained):
        nested: List[Tuple[Reference, str]] = []
        _walk(entry, join_path(root, f"contained[{index}]"), [], nested, get_registry(), False)
        references = references + nested

    for reference, path in references:
        parts = reference.parts
        if parts is None or parts.kind != "contained" or not parts.id:
            continue
        used.add(parts.id)
        if parts.id not in contained_ids:
            issues.append(
                ValidationIssue(
                    ValidationSeverity.ERROR,
                    ValidationType.REFERENCE,
                    join_path(path, "reference"),
                    f"no contained resource with id {parts.id!r}",
                )
            )
    for index, entry in enumerate(contained):
        # dom-3
        if entry.id is not None and str(entry.id) not in used:
            issues.append(
                ValidationIssue(
                    ValidationSeverity.WARNING,
                    ValidationType.REFERENCE,
                    join_path(root, f"contained[{index}]"),
                    f"contained resource {str(entry.id)!r} is not referenced",
                )
            )
    return issues


def conformance_issues(
    resource: Resource,
    root: Optional[str] = None,
    check_local_references: bool = True,
) -> List[ValidationIssue]:
    """Check bindings, reference targets and identifier uniqueness.

    Args:
        resource: Resource to inspect
        root: Path prefix; defaults to the resourceType
        check_local_references: Also resolve ``#id`` references against ``contained``

    Returns:
        Every issue found, errors and warnings alike
    """
    root = resource.resourceType if root is None else root
    registry = get_registry()
    strict = get_settings().strict_extensible_bindings

    issues: List[ValidationIssue] = []
    references: List[Tuple[Reference, str]] = []
    _walk(resource, root, issues, references, registry, strict)
    issues.extend(_duplicate_identifier_issues(resource, root))
    if check_local_references:
        issues.extend(_local_reference_issues(resource, references, root))
    return issues
