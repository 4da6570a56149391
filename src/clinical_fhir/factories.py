"""Factories for common FHIR data types.

Pure builders: each applies the usual defaults and returns a validated,
immutable model, or raises an error from the taxonomy.
"""

from datetime import datetime
from typing import Any, Iterable, Optional, Union

from clinical_fhir.coding_systems.hl7_code_systems import HL7_CONCEPTS, UCUM
from clinical_fhir.core.exceptions import CardinalityError, ReferenceShapeError
from clinical_fhir.fhir_types import CodeableConcept, Coding, Duration, Period, Quantity, Reference
from clinical_fhir.primitives import ID_PATTERN, FhirDateTime, FhirDecimal
from clinical_fhir.references import format_reference

TemporalInput = Union[str, datetime, None]


def create_reference(resource_type: str, resource_id: str, display: Optional[str] = None) -> Reference:
    """Create a relative reference ``{resource_type}/{resource_id}``.

    Only ``reference`` is populated, plus ``display`` when one is given.

    Raises:
        ReferenceShapeError: If the type is not an R4 resource type or the id is malformed
    """
    data = {"reference": format_reference(resource_type, resource_id)}
    if display:
        data["display"] = display
    return Reference(**data)


def create_contained_reference(resource_id: str, display: Optional[str] = None) -> Reference:
    """Create a ``#id`` reference to a contained resource."""
    if not isinstance(resource_id, str) or not ID_PATTERN.fullmatch(resource_id):
        raise ReferenceShapeError(f"invalid contained resource id {resource_id!r}")
    data = {"reference": f"#{resource_id}"}
    if display:
        data["display"] = display
    return Reference(**data)


def create_coding(system: Optional[str], code: str, display: Optional[str] = None) -> Coding:
    """Create a Coding."""
    return Coding(system=system, code=code, display=display)


def create_codeable_concept(
    system: Optional[str],
    code: str,
    display: Optional[str] = None,
    text: Optional[str] = None,
) -> CodeableConcept:
    """Create a CodeableConcept holding one coding.

    ``text`` defaults to ``display``.
    """
    return CodeableConcept(coding=[create_coding(system, code, display)], text=text or display)


def codeable_concept(codings: Iterable[Union[Coding, dict]], text: Optional[str] = None) -> CodeableConcept:
    """Create a CodeableConcept from any number of codings.

    Raises:
        CardinalityError: If there is neither a coding nor text
    """
    coding_list = list(codings)
    if not coding_list and not text:
        raise CardinalityError("CodeableConcept requires at least one coding or text", path="CodeableConcept")
    return CodeableConcept(coding=coding_list, text=text)


def hl7_codeable_concept(system: str, code: str, text: Optional[str] = None) -> CodeableConcept:
    """Create a CodeableConcept whose display comes from a built-in HL7 table."""
    display = HL7_CONCEPTS.get(system, {}).get(code)
    return create_codeable_concept(system, code, display, text)


def to_fhir_datetime(value: TemporalInput) -> Optional[FhirDateTime]:
    """Convert a literal or ``datetime`` to a FHIR dateTime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return FhirDateTime.from_datetime(value)
    return FhirDateTime(value)


def create_period(start: TemporalInput = None, end: TemporalInput = None) -> Period:
    """Create a Period; either bound may be omitted but not both."""
    return Period(start=to_fhir_datetime(start), end=to_fhir_datetime(end))


def create_quantity(
    value: Any,
    unit: Optional[str] = None,
    code: Optional[str] = None,
    system: Optional[str] = UCUM,
) -> Quantity:
    """Create a Quantity; ``system`` is only set when a code is given."""
    return Quantity(
        value=FhirDecimal(value),
        unit=unit,
        code=code,
        system=system if code is not None else None,
    )


def create_duration(value: Any, unit_code: str) -> Duration:
    """Create a Duration in a UCUM unit of time (``min``, ``h``, ``d`` ...)."""
    unit = HL7_CONCEPTS[UCUM].get(unit_code, unit_code)
    return Duration(value=FhirDecimal(value), unit=unit, system=UCUM, code=unit_code)
