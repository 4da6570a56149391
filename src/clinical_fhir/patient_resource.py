"""Patient FHIR Resource Implementation.

This module implements the FHIR R4 Patient resource together with a simple
input record for building patients from flat demographic data and for
reading them back.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import model_validator

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.coding_systems.registry import BindingStrength, ValueSetBinding
from clinical_fhir.contact_information import create_address, create_contact_point, get_primary_email, get_primary_phone
from clinical_fhir.core.exceptions import CardinalityError
from clinical_fhir.factories import create_codeable_concept, create_reference
from clinical_fhir.fhir_base import DomainResource, register_resource
from clinical_fhir.fhir_types import (
    Address,
    AdministrativeGender,
    Attachment,
    BackboneElement,
    CodeableConcept,
    ContactPoint,
    ContactPointSystem,
    ContactPointUse,
    HumanName,
    Identifier,
    NameUse,
    Period,
    Reference,
)
from clinical_fhir.identifier_systems import IdentifierTypeCode, create_mrn, get_identifier_value
from clinical_fhir.name_structures import create_human_name, get_display_name, select_name
from clinical_fhir.primitives import FhirBoolean, FhirDate, FhirDateTime, FhirInteger
from clinical_fhir.utils.logging import get_logger

logger = get_logger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Patient"


class LinkType(str, Enum):
    """Type of link between two patient records."""

    REPLACED_BY = "replaced-by"
    REPLACES = "replaces"
    REFER = "refer"
    SEEALSO = "seealso"


class PatientContact(BackboneElement):
    """A contact party (guardian, partner, friend) for the patient."""

    __bindings__ = {
        "relationship": ValueSetBinding(hl7.CONTACT_ROLE, BindingStrength.EXTENSIBLE),
        "gender": ValueSetBinding(hl7.ADMINISTRATIVE_GENDER),
    }
    __reference_targets__ = {"organization": ("Organization",)}

    relationship: Optional[List[CodeableConcept]] = None
    name: Optional[HumanName] = None
    telecom: Optional[List[ContactPoint]] = None
    address: Optional[Address] = None
    gender: Optional[AdministrativeGender] = None
    organization: Optional[Reference] = None
    period: Optional[Period] = None

    @model_validator(mode="after")
    def _check_has_details(self) -> "PatientContact":
        # pat-1
        if self.name is None and not self.telecom and self.address is None and self.organization is None:
            raise CardinalityError("a contact requires a name, telecom, address or organization")
        return self


class PatientCommunication(BackboneElement):
    """A language which may be used to communicate with the patient."""

    __bindings__ = {"language": ValueSetBinding(hl7.LANGUAGES, BindingStrength.PREFERRED)}

    language: CodeableConcept
    preferred: Optional[FhirBoolean] = None


class PatientLink(BackboneElement):
    """Link to another patient resource that concerns the same person."""

    __reference_targets__ = {"other": ("Patient", "RelatedPerson")}

    other: Reference
    type: LinkType


@register_resource
class Patient(DomainResource):
    """Demographics and administrative information about a person receiving care."""

    __choice_groups__ = {
        "deceased": (("deceasedBoolean", "deceasedDateTime"), False),
        "multipleBirth": (("multipleBirthBoolean", "multipleBirthInteger"), False),
    }
    __bindings__ = {
        **DomainResource.__bindings__,
        "gender": ValueSetBinding(hl7.ADMINISTRATIVE_GENDER),
        "maritalStatus": ValueSetBinding(hl7.MARITAL_STATUS, BindingStrength.EXTENSIBLE),
    }
    __reference_targets__ = {
        "generalPractitioner": ("Organization", "Practitioner", "PractitionerRole"),
        "managingOrganization": ("Organization",),
    }

    resourceType: Literal["Patient"] = "Patient"
    identifier: Optional[List[Identifier]] = None
    active: Optional[FhirBoolean] = None
    name: Optional[List[HumanName]] = None
    telecom: Optional[List[ContactPoint]] = None
    gender: Optional[AdministrativeGender] = None
    birthDate: Optional[FhirDate] = None
    deceasedBoolean: Optional[FhirBoolean] = None
    deceasedDateTime: Optional[FhirDateTime] = None
    address: Optional[List[Address]] = None
    maritalStatus: Optional[CodeableConcept] = None
    multipleBirthBoolean: Optional[FhirBoolean] = None
    multipleBirthInteger: Optional[FhirInteger] = None
    photo: Optional[List[Attachment]] = None
    contact: Optional[List[PatientContact]] = None
    communication: Optional[List[PatientCommunication]] = None
    generalPractitioner: Optional[List[Reference]] = None
    managingOrganization: Optional[Reference] = None
    link: Optional[List[PatientLink]] = None


# Contact relationship codes offered when registering emergency contacts
CONTACT_RELATIONSHIPS = {
    "EMERGENCY": {"code": "C", "display": "Emergency Contact"},
    "NEXT_OF_KIN": {"code": "N", "display": "Next of Kin"},
    "SPOUSE": {"code": "S", "display": "Spouse"},
    "PARENT": {"code": "P", "display": "Parent"},
    "GUARDIAN": {"code": "G", "display": "Guardian"},
    "SIBLING": {"code": "SB", "display": "Sibling"},
    "CHILD": {"code": "CH", "display": "Child"},
    "OTHER": {"code": "O", "display": "Other"},
}

MARITAL_STATUS = {
    "ANNULLED": {"code": "A", "display": "Annulled"},
    "DIVORCED": {"code": "D", "display": "Divorced"},
    "INTERLOCUTORY": {"code": "I", "display": "Interlocutory"},
    "LEGALLY_SEPARATED": {"code": "L", "display": "Legally Separated"},
    "MARRIED": {"code": "M", "display": "Married"},
    "POLYGAMOUS": {"code": "P", "display": "Polygamous"},
    "NEVER_MARRIED": {"code": "S", "display": "Never Married"},
    "DOMESTIC_PARTNER": {"code": "T", "display": "Domestic Partner"},
    "UNMARRIED": {"code": "U", "display": "Unmarried"},
    "WIDOWED": {"code": "W", "display": "Widowed"},
    "UNKNOWN": {"code": "UNK", "display": "Unknown"},
}

LANGUAGE_DISPLAY = {
    "en": "English",
    "en-US": "English (United States)",
    "es": "Spanish",
    "es-MX": "Spanish (Mexico)",
    "fr": "French",
    "de": "German",
    "zh": "Chinese",
    "vi": "Vietnamese",
    "ko": "Korean",
    "tl": "Tagalog",
    "ar": "Arabic",
    "ru": "Russian",
    "pt": "Portuguese",
    "ja": "Japanese",
}


def get_language_display(code: str) -> str:
    """Display name of a BCP-47 language tag, or the tag itself."""
    return LANGUAGE_DISPLAY.get(code, code)


@dataclass
class PatientInput:
    """Flat patient demographics used to build or summarise a Patient."""

    first_name: str
    last_name: str
    id: Optional[str] = None
    mrn: Optional[str] = None
    middle_name: Optional[str] = None
    preferred_name: Optional[str] = None
    gender: Optional[Union[AdministrativeGender, str]] = None
    birth_date: Optional[Union[str, date]] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    preferred_language: Optional[str] = None
    managing_organization_id: Optional[str] = None
    active: Optional[bool] = True


def _relationship_concept(relationship: Optional[str]) -> CodeableConcept:
    key = (relationship or "emergency").strip().upper().replace(" ", "_").replace("-", "_")
    entry = CONTACT_RELATIONSHIPS.get(key, CONTACT_RELATIONSHIPS["EMERGENCY"])
    return create_codeable_concept(
        hl7.CONTACT_ROLE, entry["code"], entry["display"], text=relationship or entry["display"]
    )


def _emergency_contact(data: PatientInput) -> PatientContact:
    *given, family = data.emergency_contact_name.split()
    return PatientContact(
        relationship=[_relationship_concept(data.emergency_contact_relationship)],
        name=create_human_name(family, given),
        telecom=[create_contact_point(ContactPointSystem.PHONE, data.emergency_contact_phone, ContactPointUse.MOBILE)],
    )


def create_patient(data: PatientInput) -> Patient:
    """Create a Patient resource from flat demographic input.

    Args:
        data: Patient demographics

    Returns:
        Validated Patient

    Raises:
        FHIRValidationError: If any part of the input is malformed
    """
    given = [data.first_name] + ([data.middle_name] if data.middle_name else [])
    names = [create_human_name(data.last_name, given, use=NameUse.OFFICIAL)]
    if data.preferred_name:
        names.append(HumanName(use=NameUse.NICKNAME, given=[data.preferred_name]))

    telecom = []
    if data.phone:
        telecom.append(create_contact_point(ContactPointSystem.PHONE, data.phone, ContactPointUse.MOBILE))
    if data.email:
        telecom.append(create_contact_point(ContactPointSystem.EMAIL, data.email, ContactPointUse.HOME))

    addresses = []
    if data.address_line1 and data.city and data.state and data.postal_code:
        lines = [data.address_line1] + ([data.address_line2] if data.address_line2 else [])
        addresses.append(create_address(lines, data.city, data.state, data.postal_code, data.country))

    contacts = []
    if data.emergency_contact_name and data.emergency_contact_name.strip() and data.emergency_contact_phone:
        contacts.append(_emergency_contact(data))

    communication = []
    if data.preferred_language:
        display = get_language_display(data.preferred_language)
        communication.append(
            PatientCommunication(
                language=create_codeable_concept(hl7.LANGUAGES, data.preferred_language, display),
                preferred=True,
            )
        )

    birth_date = data.birth_date
    if isinstance(birth_date, date):
        birth_date = FhirDate.from_date(birth_date)

    patient = Patient(
        id=data.id,
        active=data.active,
        identifier=[create_mrn(data.mrn)] if data.mrn else None,
        name=names,
        telecom=telecom,
        gender=data.gender,
        birthDate=birth_date,
        address=addresses,
        contact=contacts,
        communication=communication,
        managingOrganization=(
            create_reference("Organization", data.managing_organization_id)
            if data.managing_organization_id
            else None
        ),
    )
    logger.debug("patient_created", patient_id=patient.id)
    return patient


def extract_patient_data(patient: Patient) -> PatientInput:
    """Flatten a Patient back into a PatientInput."""
    official = select_name(patient.name)
    nickname = next((name for name in patient.name or [] if name.use == NameUse.NICKNAME), None)
    address = patient.address[0] if patient.address else None
    contact = patient.contact[0] if patient.contact else None
    communication = patient.communication[0] if patient.communication else None

    given = [str(name) for name in (official.given or [])] if official else []
    lines = [str(line) for line in (address.line or [])] if address else []
    language = communication.language.first_coding() if communication else None
    organization = patient.managingOrganization

    return PatientInput(
        id=str(patient.id) if patient.id else None,
        mrn=get_identifier_value(patient.identifier, type_code=IdentifierTypeCode.MEDICAL_RECORD),
        first_name=given[0] if given else "",
        last_name=str(official.family) if official and official.family else "",
        middle_name=given[1] if len(given) > 1 else None,
        preferred_name=str(nickname.given[0]) if nickname and nickname.given else None,
        gender=patient.gender,
        birth_date=str(patient.birthDate) if patient.birthDate else None,
        phone=get_primary_phone(patient.telecom),
        email=get_primary_email(patient.telecom),
        address_line1=lines[0] if lines else None,
        address_line2=lines[1] if len(lines) > 1 else None,
        city=_text(address.city) if address else None,
        state=_text(address.state) if address else None,
        postal_code=_text(address.postalCode) if address else None,
        country=_text(address.country) if address else None,
        emergency_contact_name=get_display_name(contact.name) if contact and contact.name else None,
        emergency_contact_phone=get_primary_phone(contact.telecom) if contact else None,
        emergency_contact_relationship=(
            contact.relationship[0].display_text if contact and contact.relationship else None
        ),
        preferred_language=_text(language.code) if language else None,
        managing_organization_id=organization.resource_id if organization else None,
        active=patient.active,
    )


def _text(value: Optional[str]) -> Optional[str]:
    return str(value) if value is not None else None


def get_patient_display_name(patient: Patient) -> str:
    """Display name of a patient, ``"Unknown Patient"`` when unnamed."""
    return get_display_name(patient.name) or "Unknown Patient"


def calculate_age(birth_date: Union[str, date, FhirDate], today: Optional[date] = None) -> int:
    """Age in whole years on ``today``.

    A partial birth date is taken at the latest day it may denote, so the
    age is never overstated.
    """
    if isinstance(birth_date, date):
        born = birth_date
    else:
        born = FhirDate(birth_date).latest().date()
    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age
