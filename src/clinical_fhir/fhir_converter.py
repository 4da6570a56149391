"""FHIR JSON wire format.

Encodes resources to FHIR JSON and parses FHIR JSON back into resources.
Decimals are read with ``parse_float=FhirDecimal`` and written back as their
original literal, so ``1.50`` stays ``1.50`` through a round trip.
"""

import json
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, Mapping, Type, Union

from pydantic import BaseModel, Field

from clinical_fhir.appointment_resource import Appointment
from clinical_fhir.core.exceptions import FormatError
from clinical_fhir.encounter_resource import Encounter
from clinical_fhir.fhir_base import Resource, get_resource_class
from clinical_fhir.patient_resource import Patient
from clinical_fhir.practitioner_resource import Organization, Practitioner, PractitionerRole
from clinical_fhir.primitives import FhirDecimal
from clinical_fhir.questionnaire_resource import Questionnaire, QuestionnaireResponse
from clinical_fhir.utils.logging import get_logger

logger = get_logger(__name__)


class FHIRResourceType(str, Enum):
    """Resource types this library models."""

    PATIENT = "Patient"
    ENCOUNTER = "Encounter"
    APPOINTMENT = "Appointment"
    QUESTIONNAIRE = "Questionnaire"
    QUESTIONNAIRE_RESPONSE = "QuestionnaireResponse"
    PRACTITIONER = "Practitioner"
    PRACTITIONER_ROLE = "PractitionerRole"
    ORGANIZATION = "Organization"


RESOURCE_TYPES: Dict[str, Type[Resource]] = {
    resource_type.value: get_resource_class(resource_type.value) for resource_type in FHIRResourceType
}

AnyResource = Annotated[
    Union[
        Patient,
        Encounter,
        Appointment,
        Questionnaire,
        QuestionnaireResponse,
        Practitioner,
        PractitionerRole,
        Organization,
    ],
    Field(discriminator="resourceType"),
]


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return _plain(value.model_dump(by_alias=True, exclude_none=True))
    if isinstance(value, Mapping):
        cleaned = {}
        for key, entry in value.items():
            entry = _plain(entry)
            if entry is None or entry == [] or entry == {}:
                continue
            cleaned[key] = entry
        return cleaned
    if isinstance(value, (list, tuple)):
        return [entry for entry in (_plain(item) for item in value) if entry is not None]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return int(value)
    if isinstance(value, FhirDecimal):
        return value
    if isinstance(value, Decimal):
        return FhirDecimal(value)
    if isinstance(value, str):
        return str(value)
    return value


def to_fhir_dict(resource: Resource) -> Dict[str, Any]:
    """Render a resource as its FHIR JSON object.

    Enum values become strings and decimals stay ``FhirDecimal`` so their
    literal survives. ``resourceType`` comes first.
    """
    data = _plain(resource)
    return {"resourceType": data.pop("resourceType"), **data}


def _encode(value: Any) -> str:
    if isinstance(value, dict):
        members = (f"{json.dumps(key, ensure_ascii=False)}:{_encode(entry)}" for key, entry in value.items())
        return "{" + ",".join(members) + "}"
    if isinstance(value, list):
        return "[" + ",".join(_encode(entry) for entry in value) + "]"
    if isinstance(value, FhirDecimal):
        return value.literal
    if isinstance(value, Decimal):
        return str(value)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def dumps(resource: Resource) -> str:
    """Serialize a resource to compact FHIR JSON.

    Absent elements, empty arrays and empty objects are omitted, decimals
    are written as their original literal and non-ASCII text is kept.
    """
    return _encode(to_fhir_dict(resource))


def parse_resource(data: Mapping[str, Any]) -> Resource:
    """Build the resource a FHIR JSON object describes.

    Raises:
        CardinalityError: If ``resourceType`` is missing
        BindingError: If ``resourceType`` is not supported
        FHIRValidationError: If the content is invalid for that resource
    """
    if not isinstance(data, Mapping):
        raise FormatError("resource", data, message=f"a resource must be a JSON object, got {type(data).__name__}")
    resource_class = get_resource_class(data.get("resourceType"))
    resource = resource_class.model_validate(dict(data))
    logger.debug("resource_parsed", resource_type=resource.resourceType, resource_id=resource.id)
    return resource


def loads(text: Union[str, bytes]) -> Resource:
    """Parse FHIR JSON text into a resource.

    Raises:
        FormatError: If ``text`` is not valid UTF-8 JSON
        FHIRValidationError: If the JSON is not a valid resource
    """
    try:
        data = json.loads(text, parse_float=FhirDecimal)
    except json.JSONDecodeError as exc:
        raise FormatError("json", exc.doc[:64], message=f"invalid JSON: {exc.msg} at position {exc.pos}") from None
    except UnicodeDecodeError as exc:
        raise FormatError("json", exc.object[:64], message=f"invalid UTF-8 at position {exc.start}") from None
    return parse_resource(data)
