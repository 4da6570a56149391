"""Practitioner, PractitionerRole and Organization FHIR Resources.

Providers, the roles they hold at organizations, and the organizations
themselves, with builders from flat provider and organization records.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import model_validator

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.coding_systems.registry import BindingStrength, ValueSetBinding
from clinical_fhir.contact_information import create_address, create_contact_point
from clinical_fhir.core.exceptions import CardinalityError
from clinical_fhir.factories import create_codeable_concept, create_period, create_reference
from clinical_fhir.fhir_base import DomainResource, register_resource
from clinical_fhir.fhir_types import (
    Address,
    AddressUse,
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
from clinical_fhir.identifier_systems import IdentifierSystem, IdentifierTypeCode, create_identifier, create_npi
from clinical_fhir.name_structures import create_human_name, format_name, select_name
from clinical_fhir.primitives import FhirBoolean, FhirDate, FhirString, FhirTime
from clinical_fhir.utils.logging import get_logger

logger = get_logger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Practitioner"

TAXONOMY_CODE_SYSTEM = hl7.PROVIDER_TAXONOMY


class DaysOfWeek(str, Enum):
    """Day of the week a role is available."""

    MON = "mon"
    TUE = "tue"
    WED = "wed"
    THU = "thu"
    FRI = "fri"
    SAT = "sat"
    SUN = "sun"


class PractitionerQualification(BackboneElement):
    """A certification, licence or training the practitioner holds."""

    __bindings__ = {"code": ValueSetBinding(hl7.DEGREE_LICENSE, BindingStrength.PREFERRED)}
    __reference_targets__ = {"issuer": ("Organization",)}

    identifier: Optional[List[Identifier]] = None
    code: CodeableConcept
    period: Optional[Period] = None
    issuer: Optional[Reference] = None


@register_resource
class Practitioner(DomainResource):
    """A person directly or indirectly involved in the provision of care."""

    __bindings__ = {
        **DomainResource.__bindings__,
        "gender": ValueSetBinding(hl7.ADMINISTRATIVE_GENDER),
        "communication": ValueSetBinding(hl7.LANGUAGES, BindingStrength.PREFERRED),
    }

    resourceType: Literal["Practitioner"] = "Practitioner"
    identifier: Optional[List[Identifier]] = None
    active: Optional[FhirBoolean] = None
    name: Optional[List[HumanName]] = None
    telecom: Optional[List[ContactPoint]] = None
    address: Optional[List[Address]] = None
    gender: Optional[AdministrativeGender] = None
    birthDate: Optional[FhirDate] = None
    photo: Optional[List[Attachment]] = None
    qualification: Optional[List[PractitionerQualification]] = None
    communication: Optional[List[CodeableConcept]] = None


class PractitionerRoleAvailableTime(BackboneElement):
    """Recurring times the practitioner is available in this role."""

    __bindings__ = {"daysOfWeek": ValueSetBinding(hl7.DAYS_OF_WEEK)}

    daysOfWeek: Optional[List[DaysOfWeek]] = None
    allDay: Optional[FhirBoolean] = None
    availableStartTime: Optional[FhirTime] = None
    availableEndTime: Optional[FhirTime] = None

    @model_validator(mode="after")
    def _check_time_order(self) -> "PractitionerRoleAvailableTime":
        start, end = self.availableStartTime, self.availableEndTime
        if start is not None and end is not None and end.to_time() < start.to_time():
            raise CardinalityError("availableEndTime precedes availableStartTime", path="availableEndTime")
        return self


class PractitionerRoleNotAvailable(BackboneElement):
    """A period the practitioner is not available, with the reason."""

    description: FhirString
    during: Optional[Period] = None


@register_resource
class PractitionerRole(DomainResource):
    """Roles and services a practitioner offers at an organization."""

    __bindings__ = {
        **DomainResource.__bindings__,
        "code": ValueSetBinding(hl7.PRACTITIONER_ROLE, BindingStrength.PREFERRED),
        "specialty": ValueSetBinding(hl7.PROVIDER_TAXONOMY, BindingStrength.PREFERRED),
    }
    __reference_targets__ = {
        "practitioner": ("Practitioner",),
        "organization": ("Organization",),
        "location": ("Location",),
        "healthcareService": ("HealthcareService",),
        "endpoint": ("Endpoint",),
    }

    resourceType: Literal["PractitionerRole"] = "PractitionerRole"
    identifier: Optional[List[Identifier]] = None
    active: Optional[FhirBoolean] = None
    period: Optional[Period] = None
    practitioner: Optional[Reference] = None
    organization: Optional[Reference] = None
    code: Optional[List[CodeableConcept]] = None
    specialty: Optional[List[CodeableConcept]] = None
    location: Optional[List[Reference]] = None
    healthcareService: Optional[List[Reference]] = None
    telecom: Optional[List[ContactPoint]] = None
    availableTime: Optional[List[PractitionerRoleAvailableTime]] = None
    notAvailable: Optional[List[PractitionerRoleNotAvailable]] = None
    availabilityExceptions: Optional[FhirString] = None
    endpoint: Optional[List[Reference]] = None


class OrganizationContact(BackboneElement):
    """A person to contact at the organization for a given purpose."""

    __bindings__ = {"purpose": ValueSetBinding(hl7.CONTACT_ENTITY_TYPE, BindingStrength.EXTENSIBLE)}

    purpose: Optional[CodeableConcept] = None
    name: Optional[HumanName] = None
    telecom: Optional[List[ContactPoint]] = None
    address: Optional[Address] = None


@register_resource
class Organization(DomainResource):
    """A formally recognized grouping of people or organizations."""

    __bindings__ = {
        **DomainResource.__bindings__,
        "type": ValueSetBinding(hl7.ORGANIZATION_TYPE, BindingStrength.EXAMPLE),
    }
    __reference_targets__ = {"partOf": ("Organization",), "endpoint": ("Endpoint",)}

    resourceType: Literal["Organization"] = "Organization"
    identifier: Optional[List[Identifier]] = None
    active: Optional[FhirBoolean] = None
    type: Optional[List[CodeableConcept]] = None
    name: Optional[FhirString] = None
    alias: Optional[List[FhirString]] = None
    telecom: Optional[List[ContactPoint]] = None
    address: Optional[List[Address]] = None
    partOf: Optional[Reference] = None
    contact: Optional[List[OrganizationContact]] = None
    endpoint: Optional[List[Reference]] = None

    @model_validator(mode="after")
    def _check_organization_rules(self) -> "Organization":
        # org-1
        if self.name is None and not self.identifier:
            raise CardinalityError("an organization requires a name or an identifier", path="name")
        # org-2
        for index, address in enumerate(self.address or []):
            if address.use == AddressUse.HOME:
                raise CardinalityError("an organization address cannot have use home", path=f"address[{index}].use")
        return self


# NUCC taxonomy codes for common specialties
PRACTITIONER_SPECIALTIES = {
    # Primary care
    "FAMILY_MEDICINE": {"code": "207Q00000X", "display": "Family Medicine"},
    "INTERNAL_MEDICINE": {"code": "207R00000X", "display": "Internal Medicine"},
    "PEDIATRICS": {"code": "208000000X", "display": "Pediatrics"},
    # Surgical
    "GENERAL_SURGERY": {"code": "208600000X", "display": "Surgery"},
    "ORTHOPEDIC_SURGERY": {"code": "207X00000X", "display": "Orthopedic Surgery"},
    "NEUROSURGERY": {"code": "207T00000X", "display": "Neurological Surgery"},
    # Medical specialties
    "CARDIOLOGY": {"code": "207RC0000X", "display": "Cardiovascular Disease"},
    "NEUROLOGY": {"code": "2084N0400X", "display": "Neurology"},
    "PSYCHIATRY": {"code": "2084P0800X", "display": "Psychiatry"},
    "PHYSICAL_MEDICINE": {"code": "2081P2900X", "display": "Physical Medicine & Rehabilitation"},
    # Allied health
    "CHIROPRACTIC": {"code": "111N00000X", "display": "Chiropractor"},
    "PHYSICAL_THERAPY": {"code": "225100000X", "display": "Physical Therapist"},
    "OCCUPATIONAL_THERAPY": {"code": "225X00000X", "display": "Occupational Therapist"},
    "SPEECH_THERAPY": {"code": "235Z00000X", "display": "Speech-Language Pathologist"},
    # Nursing
    "NURSE_PRACTITIONER": {"code": "363L00000X", "display": "Nurse Practitioner"},
    "PHYSICIAN_ASSISTANT": {"code": "363A00000X", "display": "Physician Assistant"},
    "REGISTERED_NURSE": {"code": "163W00000X", "display": "Registered Nurse"},
    # Other
    "PSYCHOLOGIST": {"code": "103T00000X", "display": "Psychologist"},
    "SOCIAL_WORKER": {"code": "104100000X", "display": "Social Worker"},
    "MASSAGE_THERAPIST": {"code": "225700000X", "display": "Massage Therapist"},
    "ACUPUNCTURIST": {"code": "171100000X", "display": "Acupuncturist"},
}

PRACTITIONER_ROLE_CODES = {
    "DOCTOR": {"code": "doctor", "display": "Doctor"},
    "NURSE": {"code": "nurse", "display": "Nurse"},
    "PHARMACIST": {"code": "pharmacist", "display": "Pharmacist"},
    "RESEARCHER": {"code": "researcher", "display": "Researcher"},
    "TEACHER": {"code": "teacher", "display": "Teacher/Educator"},
    "ICT_PROFESSIONAL": {"code": "ict", "display": "ICT professional"},
}

# Qualification code used when only a specialty is known
OTHER_QUALIFICATION = "OTH"


@dataclass
class PractitionerInput:
    """Flat provider details used to build a Practitioner."""

    first_name: str
    last_name: str
    id: Optional[str] = None
    npi: Optional[str] = None
    middle_name: Optional[str] = None
    credentials: Optional[str] = None
    gender: Optional[Union[AdministrativeGender, str]] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    specialty: Optional[str] = None
    active: Optional[bool] = True


def create_practitioner(data: PractitionerInput) -> Practitioner:
    """Create a Practitioner from flat provider details.

    Credentials become both a name suffix and the qualification code; a
    specialty alone is recorded as an ``OTH`` qualification.

    Raises:
        FHIRValidationError: If any part of the input is malformed
    """
    given = [data.first_name] + ([data.middle_name] if data.middle_name else [])
    suffix = [data.credentials] if data.credentials else None
    name = create_human_name(data.last_name, given, use=NameUse.OFFICIAL, suffix=suffix)

    telecom = []
    if data.phone:
        telecom.append(create_contact_point(ContactPointSystem.PHONE, data.phone, ContactPointUse.WORK))
    if data.email:
        telecom.append(create_contact_point(ContactPointSystem.EMAIL, data.email, ContactPointUse.WORK))

    qualification = []
    if data.specialty or data.credentials:
        qualification.append(
            PractitionerQualification(
                code=create_codeable_concept(
                    hl7.DEGREE_LICENSE,
                    data.credentials or OTHER_QUALIFICATION,
                    data.specialty or data.credentials,
                )
            )
        )

    practitioner = Practitioner(
        id=data.id,
        active=data.active,
        identifier=[create_npi(data.npi)] if data.npi else None,
        name=[name],
        telecom=telecom,
        gender=data.gender,
        qualification=qualification,
    )
    logger.debug("practitioner_created", practitioner_id=practitioner.id)
    return practitioner


def get_practitioner_display_name(practitioner: Practitioner) -> str:
    """Name for display, credentials appended: ``"Jane Doe, MD"``."""
    name = select_name(practitioner.name)
    if name is None:
        return "Unknown Practitioner"
    display = format_name(name) or "Unknown Practitioner"
    if name.suffix:
        display += ", " + ", ".join(str(suffix) for suffix in name.suffix)
    return display


def _specialty_concept(specialty: str) -> CodeableConcept:
    entry = PRACTITIONER_SPECIALTIES.get(specialty.upper())
    if entry is None:
        display = hl7.HL7_CONCEPTS[hl7.PROVIDER_TAXONOMY].get(specialty)
        entry = {"code": specialty, "display": display}
    return create_codeable_concept(TAXONOMY_CODE_SYSTEM, entry["code"], entry["display"])


def _role_concept(role: str) -> CodeableConcept:
    entry = PRACTITIONER_ROLE_CODES.get(role.upper(), {"code": role, "display": None})
    return create_codeable_concept(hl7.PRACTITIONER_ROLE, entry["code"], entry["display"])


def create_practitioner_role(
    practitioner_id: str,
    organization_id: Optional[str] = None,
    role: Optional[str] = None,
    specialties: Optional[List[str]] = None,
    id: Optional[str] = None,
    practitioner_display: Optional[str] = None,
    organization_display: Optional[str] = None,
    period_start: Optional[str] = None,
    period_end: Optional[str] = None,
    available_time: Optional[List[PractitionerRoleAvailableTime]] = None,
    active: bool = True,
) -> PractitionerRole:
    """Create a PractitionerRole linking a practitioner to an organization.

    Args:
        practitioner_id: Practitioner holding the role
        organization_id: Organization the role is held at
        role: Key of ``PRACTITIONER_ROLE_CODES`` or a raw role code
        specialties: Keys of ``PRACTITIONER_SPECIALTIES`` or NUCC taxonomy codes
        id: Logical id of the role
        practitioner_display: Display text of the practitioner reference
        organization_display: Display text of the organization reference
        period_start: Start of the role
        period_end: End of the role
        available_time: Recurring availability
        active: Whether the role is in active use

    Returns:
        Validated PractitionerRole
    """
    period = create_period(period_start, period_end) if period_start or period_end else None
    return PractitionerRole(
        id=id,
        active=active,
        period=period,
        practitioner=create_reference("Practitioner", practitioner_id, practitioner_display),
        organization=(
            create_reference("Organization", organization_id, organization_display) if organization_id else None
        ),
        code=[_role_concept(role)] if role else None,
        specialty=[_specialty_concept(specialty) for specialty in specialties or []],
        availableTime=available_time,
    )


class OrganizationType(str, Enum):
    """Organization type codes."""

    PROVIDER = "prov"
    DEPARTMENT = "dept"
    TEAM = "team"
    GOVERNMENT = "govt"
    INSURANCE = "ins"
    PAYER = "pay"
    EDUCATIONAL = "edu"
    RELIGIOUS = "reli"
    RESEARCH_SPONSOR = "crs"
    COMMUNITY_GROUP = "cg"
    BUSINESS = "bus"
    OTHER = "other"


_ORGANIZATION_TYPE_DISPLAY = {
    "prov": "Healthcare Provider",
    "dept": "Hospital Department",
    "team": "Care Team",
    "govt": "Government",
    "ins": "Insurance Company",
    "pay": "Payer",
    "edu": "Educational Institution",
    "reli": "Religious Institution",
    "crs": "Clinical Research Sponsor",
    "cg": "Community Group",
    "bus": "Business",
    "other": "Other",
}


def get_organization_type_display(type_code: Union[OrganizationType, str]) -> str:
    """Display text of an organization type code."""
    code = getattr(type_code, "value", type_code)
    return _ORGANIZATION_TYPE_DISPLAY.get(code, code)


@dataclass
class OrganizationInput:
    """Flat organization details used to build an Organization."""

    name: str
    id: Optional[str] = None
    npi: Optional[str] = None
    ein: Optional[str] = None
    type: Optional[Union[OrganizationType, str]] = None
    phone: Optional[str] = None
    fax: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    parent_organization_id: Optional[str] = None
    aliases: List[str] = field(default_factory=list)
    active: Optional[bool] = True


def create_organization(data: OrganizationInput) -> Organization:
    """Create an Organization from flat details.

    Telecom entries and the address are recorded with use ``work``.

    Raises:
        FHIRValidationError: If any part of the input is malformed
    """
    identifiers = []
    if data.npi:
        identifiers.append(create_npi(data.npi))
    if data.ein:
        identifiers.append(create_identifier(IdentifierSystem.EIN, data.ein, type_code=IdentifierTypeCode.TAX_ID))

    telecom = []
    for system, value in (
        (ContactPointSystem.PHONE, data.phone),
        (ContactPointSystem.FAX, data.fax),
        (ContactPointSystem.EMAIL, data.email),
        (ContactPointSystem.URL, data.website),
    ):
        if value:
            telecom.append(create_contact_point(system, value, ContactPointUse.WORK))

    addresses = []
    if data.address_line1 and data.city and data.state and data.postal_code:
        lines = [data.address_line1] + ([data.address_line2] if data.address_line2 else [])
        addresses.append(
            create_address(lines, data.city, data.state, data.postal_code, data.country, use=AddressUse.WORK)
        )

    types = None
    if data.type:
        code = getattr(data.type, "value", data.type)
        types = [create_codeable_concept(hl7.ORGANIZATION_TYPE, code, get_organization_type_display(code))]

    organization = Organization(
        id=data.id,
        active=data.active,
        name=data.name,
        alias=data.aliases,
        identifier=identifiers,
        type=types,
        telecom=telecom,
        address=addresses,
        partOf=(
            create_reference("Organization", data.parent_organization_id) if data.parent_organization_id else None
        ),
    )
    logger.debug("organization_created", organization_id=organization.id)
    return organization
