"""FHIR R4 Complex Data Types.

Pydantic models for the general-purpose FHIR data types shared by every
resource. All models are frozen and reject unknown elements; constructing one
with invalid content raises an error from ``clinical_fhir.core.exceptions``
carrying the full element path.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic_core import ValidationError as PydanticValidationError

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.coding_systems.hl7_code_systems import UCUM_TIME_UNITS
from clinical_fhir.coding_systems.registry import BindingStrength, ValueSetBinding
from clinical_fhir.core.exceptions import CardinalityError, FormatError, ReferenceShapeError
from clinical_fhir.primitives import (
    FhirBase64Binary,
    FhirBoolean,
    FhirCanonical,
    FhirCode,
    FhirDate,
    FhirDateTime,
    FhirDecimal,
    FhirId,
    FhirInstant,
    FhirInteger,
    FhirMarkdown,
    FhirPositiveInt,
    FhirString,
    FhirUnsignedInt,
    FhirUri,
    FhirUrl,
)
from clinical_fhir.references import R4_RESOURCE_TYPES, ReferenceParts, parse_reference
from clinical_fhir.validation.fhir_validators import translate_validation_error


class AdministrativeGender(str, Enum):
    """Administrative gender of a person."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


class NameUse(str, Enum):
    """Purpose of a human name."""

    USUAL = "usual"
    OFFICIAL = "official"
    TEMP = "temp"
    NICKNAME = "nickname"
    ANONYMOUS = "anonymous"
    OLD = "old"
    MAIDEN = "maiden"


class ContactPointSystem(str, Enum):
    """Telecommunications form of a contact point."""

    PHONE = "phone"
    FAX = "fax"
    EMAIL = "email"
    PAGER = "pager"
    URL = "url"
    SMS = "sms"
    OTHER = "other"


class ContactPointUse(str, Enum):
    """Purpose of a contact point."""

    HOME = "home"
    WORK = "work"
    TEMP = "temp"
    OLD = "old"
    MOBILE = "mobile"


class AddressUse(str, Enum):
    """Purpose of an address."""

    HOME = "home"
    WORK = "work"
    TEMP = "temp"
    OLD = "old"
    BILLING = "billing"


class AddressType(str, Enum):
    """Distinguishes postal from physical addresses."""

    POSTAL = "postal"
    PHYSICAL = "physical"
    BOTH = "both"


class IdentifierUse(str, Enum):
    """Purpose of an identifier."""

    USUAL = "usual"
    OFFICIAL = "official"
    TEMP = "temp"
    SECONDARY = "secondary"
    OLD = "old"


class QuantityComparator(str, Enum):
    """How a quantity value should be understood."""

    LESS_THAN = "<"
    LESS_OR_EQUAL = "<="
    GREATER_OR_EQUAL = ">="
    GREATER_THAN = ">"


class NarrativeStatus(str, Enum):
    """Status of a narrative."""

    GENERATED = "generated"
    EXTENSIONS = "extensions"
    ADDITIONAL = "additional"
    EMPTY = "empty"


# Set while the outermost model is validating. Nested models leave their
# pydantic errors untranslated so pydantic reports them relative to the parent.
_translating: ContextVar[bool] = ContextVar("translating_validation_errors", default=False)


@contextmanager
def translated_errors(root: str) -> Iterator[None]:
    """Translate pydantic errors raised in the block, outermost call only.

    Args:
        root: Path root for the translated errors
    """
    if _translating.get():
        yield
        return
    token = _translating.set(True)
    try:
        yield
    except PydanticValidationError as exc:
        raise translate_validation_error(exc, root) from None
    finally:
        _translating.reset(token)


@contextmanager
def isolated_validation() -> Iterator[None]:
    """Run the block as a new outermost validation.

    Used where a validator builds a separate model and needs its errors
    already translated.
    """
    token = _translating.set(False)
    try:
        yield
    finally:
        _translating.reset(token)


class FHIRModel(BaseModel):
    """Base for every FHIR data type, backbone element and resource.

    Subclasses declare their FHIR-specific rules as class attributes:

    * ``__choice_groups__`` maps a ``name[x]`` group to its concrete
      attribute names and whether one of them is required.
    * ``__bindings__`` maps coded attributes to a ``ValueSetBinding``.
    * ``__reference_targets__`` maps Reference attributes to the resource
      types they may point at.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    __choice_groups__: ClassVar[Dict[str, Tuple[Tuple[str, ...], bool]]] = {}
    __bindings__: ClassVar[Dict[str, ValueSetBinding]] = {}
    __reference_targets__: ClassVar[Dict[str, Tuple[str, ...]]] = {}

    def __init__(self, **data: Any) -> None:
        """Validate ``data`` and translate failures into the error taxonomy."""
        with translated_errors(type(self).path_root()):
            super().__init__(**data)

    @classmethod
    def model_validate(cls, obj: Any, *args: Any, **kwargs: Any) -> Any:
        """Validate ``obj`` and translate failures into the error taxonomy."""
        with translated_errors(cls.path_root()):
            return super().model_validate(obj, *args, **kwargs)

    @classmethod
    def path_root(cls) -> str:
        """Root segment of error paths for this type."""
        return cls.__name__

    @model_validator(mode="before")
    @classmethod
    def _drop_absent(cls, data: Any) -> Any:
        # Absent, empty repeating and empty string elements are the same thing on the wire
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if not _is_empty(value)}
        return data

    @model_validator(mode="after")
    def _check_choice_groups(self) -> "FHIRModel":
        for group, (names, required) in type(self).__choice_groups__.items():
            present = [name for name in names if getattr(self, name) is not None]
            if len(present) > 1:
                raise CardinalityError(
                    f"only one of {group}[x] may be present, found {', '.join(present)}",
                    path=present[1],
                )
            if required and not present:
                raise CardinalityError(f"{group}[x] is required", path=f"{group}[x]")
        return self

    def iter_set_fields(self) -> Iterator[Tuple[str, Any]]:
        """Yield ``(attribute, value)`` for every populated attribute."""
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is not None:
                yield name, value

    def choice(self, group: str) -> Tuple[Optional[str], Any]:
        """Populated variant of a ``name[x]`` group as ``(attribute, value)``."""
        names, _ = type(self).__choice_groups__[group]
        for name in names:
            value = getattr(self, name)
            if value is not None:
                return name, value
        return None, None

    @classmethod
    def element_name(cls, attribute: str) -> str:
        """FHIR element name of a model attribute."""
        field = cls.model_fields[attribute]
        return field.alias or attribute


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return isinstance(value, str) and value == ""


class Element(FHIRModel):
    """Base for all elements: may carry an id and extensions."""

    id: Optional[FhirString] = None
    extension: Optional[List["Extension"]] = None

    @model_validator(mode="after")
    def _check_has_content(self) -> "Element":
        # ele-1
        if all(getattr(self, name) is None for name in type(self).model_fields if name != "id"):
            raise CardinalityError("element must have a value or children")
        return self


class BackboneElement(Element):
    """Element defined inline within a resource."""

    modifierExtension: Optional[List["Extension"]] = None


class Coding(Element):
    """A reference to a code defined by a terminology system."""

    system: Optional[FhirUri] = None
    version: Optional[FhirString] = None
    code: Optional[FhirCode] = None
    display: Optional[FhirString] = None
    userSelected: Optional[FhirBoolean] = None

    def matches(self, system: Optional[str], code: str) -> bool:
        """Return True when system and code are equal; a None system matches any."""
        return self.code == code and (system is None or self.system == system)


class CodeableConcept(Element):
    """A concept given by one or more codings and/or text."""

    coding: Optional[List[Coding]] = None
    text: Optional[FhirString] = None

    @model_validator(mode="after")
    def _check_coding_or_text(self) -> "CodeableConcept":
        if not self.coding and not self.text:
            raise CardinalityError("CodeableConcept requires at least one coding or text")
        return self

    def has_coding(self, system: Optional[str], code: str) -> bool:
        """Return True when any coding matches."""
        return any(coding.matches(system, code) for coding in self.coding or [])

    def first_coding(self, system: Optional[str] = None) -> Optional[Coding]:
        """Return the first coding, optionally restricted to ``system``."""
        for coding in self.coding or []:
            if system is None or coding.system == system:
                return coding
        return None

    @property
    def display_text(self) -> Optional[str]:
        """Text, falling back to the first coding display or code."""
        if self.text:
            return str(self.text)
        coding = self.first_coding()
        if coding is None:
            return None
        return str(coding.display or coding.code) if (coding.display or coding.code) else None


class Period(Element):
    """A time range defined by start and/or end."""

    start: Optional[FhirDateTime] = None
    end: Optional[FhirDateTime] = None

    @model_validator(mode="after")
    def _check_order(self) -> "Period":
        # per-1
        if self.start is not None and self.end is not None:
            if self.start.earliest() > self.end.latest():
                raise CardinalityError(
                    f"period end {str(self.end)!r} is before start {str(self.start)!r}",
                    path="end",
                )
        return self

    def contains(self, moment: FhirDateTime) -> bool:
        """Return True when ``moment`` may fall inside the period."""
        if self.start is not None and moment.latest() < self.start.earliest():
            return False
        if self.end is not None and moment.earliest() > self.end.latest():
            return False
        return True


class Quantity(Element):
    """A measured amount."""

    value: Optional[FhirDecimal] = None
    comparator: Optional[QuantityComparator] = None
    unit: Optional[FhirString] = None
    system: Optional[FhirUri] = None
    code: Optional[FhirCode] = None

    @model_validator(mode="after")
    def _check_system_for_code(self) -> "Quantity":
        # qty-3
        if self.code is not None and self.system is None:
            raise CardinalityError("a quantity with a code requires a system", path="system")
        return self


class Duration(Quantity):
    """A length of time, expressed in UCUM time units."""

    @model_validator(mode="after")
    def _check_time_unit(self) -> "Duration":
        # drt-1
        if self.value is not None and self.code is None:
            raise CardinalityError("a duration with a value requires a UCUM time code", path="code")
        if self.code is not None and str(self.code) not in UCUM_TIME_UNITS:
            raise FormatError("Duration.code", str(self.code), path="code",
                              message=f"{str(self.code)!r} is not a UCUM unit of time")
        if self.system is not None and self.system != hl7.UCUM:
            raise FormatError("Duration.system", str(self.system), path="system",
                              message=f"duration system must be {hl7.UCUM}")
        return self


class Range(Element):
    """A set of ordered quantities defined by a low and high limit."""

    low: Optional[Quantity] = None
    high: Optional[Quantity] = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "Range":
        # rng-2
        if self.low is not None and self.high is not None:
            if self.low.value is not None and self.high.value is not None and self.low.value > self.high.value:
                raise CardinalityError("range low is greater than high", path="low")
        return self


class Identifier(Element):
    """An identifier intended for computation."""

    __bindings__ = {"type": ValueSetBinding(hl7.IDENTIFIER_TYPE, BindingStrength.EXTENSIBLE)}
    __reference_targets__ = {"assigner": ("Organization",)}

    use: Optional[IdentifierUse] = None
    type: Optional[CodeableConcept] = None
    system: Optional[FhirUri] = None
    value: Optional[FhirString] = None
    period: Optional[Period] = None
    assigner: Optional["Reference"] = None


class Reference(Element):
    """A weak pointer from one resource to another.

    Shape is checked at construction; the target is never resolved.
    """

    reference: Optional[FhirString] = None
    type: Optional[FhirUri] = None
    identifier: Optional[Identifier] = None
    display: Optional[FhirString] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "Reference":
        if self.reference is None and self.identifier is None and self.display is None:
            raise CardinalityError("reference requires a reference, identifier or display")

        parts = None
        if self.reference is not None:
            try:
                parts = parse_reference(str(self.reference))
            except ReferenceShapeError as error:
                raise error.with_path("reference") from None

        if self.type is not None and "/" not in self.type and ":" not in self.type:
            if self.type not in R4_RESOURCE_TYPES:
                raise ReferenceShapeError(f"unknown resource type {str(self.type)!r}", path="type")
            if parts is not None and parts.resource_type and parts.resource_type != self.type:
                raise ReferenceShapeError(
                    f"reference {str(self.reference)!r} does not match type {str(self.type)!r}",
                    path="type",
                )
        return self

    @property
    def parts(self) -> Optional[ReferenceParts]:
        """Parsed literal reference, or None for logical references."""
        if self.reference is None:
            return None
        return parse_reference(str(self.reference))

    @property
    def resource_type(self) -> Optional[str]:
        """Resource type named by the literal reference or ``type``."""
        parts = self.parts
        if parts is not None and parts.resource_type:
            return parts.resource_type
        return str(self.type) if self.type is not None else None

    @property
    def resource_id(self) -> Optional[str]:
        """Id part of the literal reference."""
        parts = self.parts
        return parts.id if parts is not None else None


class HumanName(Element):
    """A name of a human with text, parts and usage information."""

    use: Optional[NameUse] = None
    text: Optional[FhirString] = None
    family: Optional[FhirString] = None
    given: Optional[List[FhirString]] = None
    prefix: Optional[List[FhirString]] = None
    suffix: Optional[List[FhirString]] = None
    period: Optional[Period] = None


class ContactPoint(Element):
    """Details for a technology-mediated contact point."""

    system: Optional[ContactPointSystem] = None
    value: Optional[FhirString] = None
    use: Optional[ContactPointUse] = None
    rank: Optional[FhirPositiveInt] = None
    period: Optional[Period] = None

    @model_validator(mode="after")
    def _check_system_for_value(self) -> "ContactPoint":
        # cpt-2
        if self.value is not None and self.system is None:
            raise CardinalityError("a contact point with a value requires a system", path="system")
        return self


class Address(Element):
    """A postal or physical address."""

    use: Optional[AddressUse] = None
    type: Optional[AddressType] = None
    text: Optional[FhirString] = None
    line: Optional[List[FhirString]] = None
    city: Optional[FhirString] = None
    district: Optional[FhirString] = None
    state: Optional[FhirString] = None
    postalCode: Optional[FhirString] = None
    country: Optional[FhirString] = None
    period: Optional[Period] = None


class Attachment(Element):
    """Content in a format defined elsewhere."""

    contentType: Optional[FhirCode] = None
    language: Optional[FhirCode] = None
    data: Optional[FhirBase64Binary] = None
    url: Optional[FhirUrl] = None
    size: Optional[FhirUnsignedInt] = None
    hash: Optional[FhirBase64Binary] = None
    title: Optional[FhirString] = None
    creation: Optional[FhirDateTime] = None

    @model_validator(mode="after")
    def _check_content_type(self) -> "Attachment":
        # att-1
        if self.data is not None and self.contentType is None:
            raise CardinalityError("an attachment with data requires a contentType", path="contentType")
        return self


class Annotation(Element):
    """A text note with author and time."""

    __choice_groups__ = {"author": (("authorReference", "authorString"), False)}
    __reference_targets__ = {"authorReference": ("Practitioner", "Patient", "RelatedPerson", "Organization")}

    authorReference: Optional[Reference] = None
    authorString: Optional[FhirString] = None
    time: Optional[FhirDateTime] = None
    text: FhirMarkdown


class Extension(Element):
    """Additional content defined by implementations."""

    __choice_groups__ = {
        "value": (
            (
                "valueBoolean",
                "valueCode",
                "valueDate",
                "valueDateTime",
                "valueDecimal",
                "valueInteger",
                "valueString",
                "valueUri",
                "valueCanonical",
                "valueCoding",
                "valueCodeableConcept",
                "valueIdentifier",
                "valuePeriod",
                "valueQuantity",
                "valueReference",
            ),
            False,
        )
    }

    url: FhirUri
    valueBoolean: Optional[FhirBoolean] = None
    valueCode: Optional[FhirCode] = None
    valueDate: Optional[FhirDate] = None
    valueDateTime: Optional[FhirDateTime] = None
    valueDecimal: Optional[FhirDecimal] = None
    valueInteger: Optional[FhirInteger] = None
    valueString: Optional[FhirString] = None
    valueUri: Optional[FhirUri] = None
    valueCanonical: Optional[FhirCanonical] = None
    valueCoding: Optional[Coding] = None
    valueCodeableConcept: Optional[CodeableConcept] = None
    valueIdentifier: Optional[Identifier] = None
    valuePeriod: Optional[Period] = None
    valueQuantity: Optional[Quantity] = None
    valueReference: Optional[Reference] = None

    @model_validator(mode="after")
    def _check_value_or_children(self) -> "Extension":
        # ext-1
        has_value = any(getattr(self, name) is not None for name in self.__choice_groups__["value"][0])
        if has_value and self.extension:
            raise CardinalityError("an extension has either a value or nested extensions, not both")
        if not has_value and not self.extension:
            raise CardinalityError("an extension requires a value or nested extensions")
        return self

    @property
    def value(self) -> Any:
        """The populated value[x], or None."""
        return self.choice("value")[1]


class Narrative(Element):
    """Human-readable summary of a resource."""

    status: NarrativeStatus
    div: str

    @model_validator(mode="after")
    def _check_div(self) -> "Narrative":
        text = self.div.strip()
        if not (text.startswith("<div") and text.endswith("</div>")):
            raise FormatError("xhtml", self.div, path="div", message="narrative must be a single XHTML <div>")
        return self


class Meta(Element):
    """Metadata about a resource."""

    versionId: Optional[FhirId] = None
    lastUpdated: Optional[FhirInstant] = None
    source: Optional[FhirUri] = None
    profile: Optional[List[FhirCanonical]] = None
    security: Optional[List[Coding]] = None
    tag: Optional[List[Coding]] = None


DATA_TYPES = (
    Element,
    BackboneElement,
    Coding,
    CodeableConcept,
    Period,
    Quantity,
    Duration,
    Range,
    Identifier,
    Reference,
    HumanName,
    ContactPoint,
    Address,
    Attachment,
    Annotation,
    Extension,
    Narrative,
    Meta,
)

for _model in DATA_TYPES:
    _model.model_rebuild()

__all__ = [
    "FHIRModel",
    "Element",
    "BackboneElement",
    "Coding",
    "CodeableConcept",
    "Period",
    "Quantity",
    "Duration",
    "Range",
    "Identifier",
    "Reference",
    "HumanName",
    "ContactPoint",
    "Address",
    "Attachment",
    "Annotation",
    "Extension",
    "Narrative",
    "Meta",
    "AdministrativeGender",
    "NameUse",
    "ContactPointSystem",
    "ContactPointUse",
    "AddressUse",
    "AddressType",
    "IdentifierUse",
    "QuantityComparator",
    "NarrativeStatus",
]
