"""Encounter FHIR Resource Implementation.

This module implements the FHIR R4 Encounter resource, its status workflow
and builders for creating encounters from scheduling data.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.coding_systems.registry import BindingStrength, ValueSetBinding
from clinical_fhir.core.exceptions import BindingError
from clinical_fhir.factories import TemporalInput, create_codeable_concept, create_period, create_reference
from clinical_fhir.fhir_base import DomainResource, register_resource
from clinical_fhir.fhir_types import (
    BackboneElement,
    CodeableConcept,
    Coding,
    Duration,
    Identifier,
    Period,
    Reference,
)
from clinical_fhir.primitives import FhirDateTime, FhirPositiveInt
from clinical_fhir.utils.logging import get_logger
from clinical_fhir.workflow import TransitionTable

logger = get_logger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Encounter"

ENCOUNTER_TYPE_SYSTEM = "http://terminology.hl7.org/CodeSystem/encounter-type"
ICD10_CM_SYSTEM = "http://hl7.org/fhir/sid/icd-10-cm"


class EncounterStatus(str, Enum):
    """Current state of an encounter."""

    PLANNED = "planned"
    ARRIVED = "arrived"
    TRIAGED = "triaged"
    IN_PROGRESS = "in-progress"
    ONLEAVE = "onleave"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    ENTERED_IN_ERROR = "entered-in-error"
    UNKNOWN = "unknown"


class EncounterClass(str, Enum):
    """Encounter classes from v3 ActCode."""

    AMBULATORY = "AMB"
    EMERGENCY = "EMER"
    FIELD = "FLD"
    HOME_HEALTH = "HH"
    INPATIENT = "IMP"
    INPATIENT_ACUTE = "ACUTE"
    INPATIENT_NON_ACUTE = "NONAC"
    OBSERVATION = "OBSENC"
    PRE_ADMISSION = "PRENC"
    SHORT_STAY = "SS"
    VIRTUAL = "VR"


class EncounterLocationStatus(str, Enum):
    """Status of the patient at a location."""

    PLANNED = "planned"
    ACTIVE = "active"
    RESERVED = "reserved"
    COMPLETED = "completed"


ENCOUNTER_TRANSITIONS = TransitionTable(
    "Encounter",
    EncounterStatus,
    {
        EncounterStatus.PLANNED: [
            EncounterStatus.ARRIVED,
            EncounterStatus.CANCELLED,
            EncounterStatus.ENTERED_IN_ERROR,
        ],
        EncounterStatus.ARRIVED: [
            EncounterStatus.TRIAGED,
            EncounterStatus.IN_PROGRESS,
            EncounterStatus.CANCELLED,
            EncounterStatus.ENTERED_IN_ERROR,
        ],
        EncounterStatus.TRIAGED: [
            EncounterStatus.IN_PROGRESS,
            EncounterStatus.CANCELLED,
            EncounterStatus.ENTERED_IN_ERROR,
        ],
        EncounterStatus.IN_PROGRESS: [
            EncounterStatus.ONLEAVE,
            EncounterStatus.FINISHED,
            EncounterStatus.CANCELLED,
            EncounterStatus.ENTERED_IN_ERROR,
        ],
        EncounterStatus.ONLEAVE: [
            EncounterStatus.IN_PROGRESS,
            EncounterStatus.FINISHED,
            EncounterStatus.CANCELLED,
            EncounterStatus.ENTERED_IN_ERROR,
        ],
        EncounterStatus.FINISHED: [EncounterStatus.ENTERED_IN_ERROR],
        EncounterStatus.CANCELLED: [EncounterStatus.ENTERED_IN_ERROR],
        EncounterStatus.ENTERED_IN_ERROR: [],
    },
    wildcard_states=[EncounterStatus.UNKNOWN],
)


class EncounterStatusHistory(BackboneElement):
    """A status the encounter held and when it held it."""

    status: EncounterStatus
    period: Period


class EncounterClassHistory(BackboneElement):
    """A class the encounter held and when it held it."""

    __bindings__ = {"class_": ValueSetBinding(hl7.ACT_CODE, BindingStrength.EXTENSIBLE)}

    class_: Coding = Field(alias="class")
    period: Period


class EncounterParticipant(BackboneElement):
    """A person involved in the encounter other than the patient."""

    __bindings__ = {"type": ValueSetBinding(hl7.PARTICIPATION_TYPE, BindingStrength.EXTENSIBLE)}
    __reference_targets__ = {"individual": ("Practitioner", "PractitionerRole", "RelatedPerson")}

    type: Optional[List[CodeableConcept]] = None
    period: Optional[Period] = None
    individual: Optional[Reference] = None


class EncounterDiagnosis(BackboneElement):
    """A diagnosis relevant to the encounter."""

    __bindings__ = {"use": ValueSetBinding(hl7.DIAGNOSIS_ROLE, BindingStrength.PREFERRED)}
    __reference_targets__ = {"condition": ("Condition", "Procedure")}

    condition: Reference
    use: Optional[CodeableConcept] = None
    rank: Optional[FhirPositiveInt] = None


class EncounterHospitalization(BackboneElement):
    """Details about the admission to a healthcare service."""

    __bindings__ = {
        "admitSource": ValueSetBinding(hl7.ADMIT_SOURCE, BindingStrength.PREFERRED),
        "dischargeDisposition": ValueSetBinding(hl7.DISCHARGE_DISPOSITION, BindingStrength.EXAMPLE),
    }
    __reference_targets__ = {
        "origin": ("Location", "Organization"),
        "destination": ("Location", "Organization"),
    }

    preAdmissionIdentifier: Optional[Identifier] = None
    origin: Optional[Reference] = None
    admitSource: Optional[CodeableConcept] = None
    reAdmission: Optional[CodeableConcept] = None
    dietPreference: Optional[List[CodeableConcept]] = None
    specialCourtesy: Optional[List[CodeableConcept]] = None
    specialArrangement: Optional[List[CodeableConcept]] = None
    destination: Optional[Reference] = None
    dischargeDisposition: Optional[CodeableConcept] = None


class EncounterLocation(BackboneElement):
    """A location where the patient was during the encounter."""

    __reference_targets__ = {"location": ("Location",)}

    location: Reference
    status: Optional[EncounterLocationStatus] = None
    physicalType: Optional[CodeableConcept] = None
    period: Optional[Period] = None


@register_resource
class Encounter(DomainResource):
    """An interaction between a patient and healthcare providers."""

    __bindings__ = {
        **DomainResource.__bindings__,
        "status": ValueSetBinding(hl7.ENCOUNTER_STATUS),
        "class_": ValueSetBinding(hl7.ACT_CODE, BindingStrength.EXTENSIBLE),
        "priority": ValueSetBinding(hl7.ACT_PRIORITY, BindingStrength.EXAMPLE),
    }
    __reference_targets__ = {
        "subject": ("Patient", "Group"),
        "episodeOfCare": ("EpisodeOfCare",),
        "basedOn": ("ServiceRequest",),
        "appointment": ("Appointment",),
        "reasonReference": ("Condition", "Procedure", "Observation", "ImmunizationRecommendation"),
        "account": ("Account",),
        "serviceProvider": ("Organization",),
        "partOf": ("Encounter",),
    }

    resourceType: Literal["Encounter"] = "Encounter"
    identifier: Optional[List[Identifier]] = None
    status: EncounterStatus
    statusHistory: Optional[List[EncounterStatusHistory]] = None
    class_: Coding = Field(alias="class")
    classHistory: Optional[List[EncounterClassHistory]] = None
    type: Optional[List[CodeableConcept]] = None
    serviceType: Optional[CodeableConcept] = None
    priority: Optional[CodeableConcept] = None
    subject: Optional[Reference] = None
    episodeOfCare: Optional[List[Reference]] = None
    basedOn: Optional[List[Reference]] = None
    participant: Optional[List[EncounterParticipant]] = None
    appointment: Optional[List[Reference]] = None
    period: Optional[Period] = None
    length: Optional[Duration] = None
    reasonCode: Optional[List[CodeableConcept]] = None
    reasonReference: Optional[List[Reference]] = None
    diagnosis: Optional[List[EncounterDiagnosis]] = None
    account: Optional[List[Reference]] = None
    hospitalization: Optional[EncounterHospitalization] = None
    location: Optional[List[EncounterLocation]] = None
    serviceProvider: Optional[Reference] = None
    partOf: Optional[Reference] = None


def transition_encounter(
    encounter: Encounter,
    new_status: Union[EncounterStatus, str],
    at: Optional[datetime] = None,
) -> Encounter:
    """Move an encounter to ``new_status``.

    The status being left is appended to ``statusHistory``. Entering
    ``in-progress`` opens ``period.start`` if unset; ``finished`` closes
    ``period.end``.

    Args:
        encounter: Encounter to transition
        new_status: Requested status
        at: Moment of the change, defaults to now (UTC)

    Returns:
        New Encounter with the same id

    Raises:
        TransitionError: If the table does not allow the change
    """
    target = ENCOUNTER_TRANSITIONS.check(encounter.status, new_status)
    moment = FhirDateTime.from_datetime(at or datetime.now(timezone.utc))

    history = list(encounter.statusHistory or [])
    if history:
        previous_start = history[-1].period.end
    else:
        # First change: the status being left began with the encounter
        previous_start = encounter.period.start if encounter.period is not None else None
        if previous_start is not None and previous_start.earliest() > moment.latest():
            previous_start = None
    history.append(EncounterStatusHistory(status=encounter.status, period=Period(start=previous_start, end=moment)))

    period: Dict[str, Any] = {}
    if encounter.period is not None:
        period = encounter.period.model_dump(by_alias=True, exclude_none=True)
    if target is EncounterStatus.IN_PROGRESS and "start" not in period:
        period["start"] = moment
    if target is EncounterStatus.FINISHED:
        period["end"] = moment

    return encounter.evolve(status=target, statusHistory=history, period=period or None)


def can_transition_to(current: Union[EncounterStatus, str], new_status: Union[EncounterStatus, str]) -> bool:
    """Return True when the encounter workflow allows the change.

    Unrecognised status codes are never allowed.
    """
    try:
        return ENCOUNTER_TRANSITIONS.allows(current, new_status)
    except BindingError:
        return False


_CLASS_DISPLAY = {
    "AMB": "Ambulatory",
    "EMER": "Emergency",
    "FLD": "Field",
    "HH": "Home Health",
    "IMP": "Inpatient",
    "ACUTE": "Inpatient Acute",
    "NONAC": "Inpatient Non-Acute",
    "OBSENC": "Observation",
    "PRENC": "Pre-Admission",
    "SS": "Short Stay",
    "VR": "Virtual",
}


def get_encounter_class_display(class_code: Union[EncounterClass, str]) -> str:
    """Display text of an encounter class code."""
    code = getattr(class_code, "value", class_code)
    return _CLASS_DISPLAY.get(code, code)


def get_encounter_status_display(status: Union[EncounterStatus, str]) -> str:
    """Display text of an encounter status code."""
    code = getattr(status, "value", status)
    return hl7.HL7_CONCEPTS[hl7.ENCOUNTER_STATUS].get(code, code)


ENCOUNTER_TYPES = {
    "INITIAL_VISIT": {"code": "INIT", "display": "Initial Visit"},
    "FOLLOW_UP": {"code": "FUP", "display": "Follow-up Visit"},
    "ROUTINE_CHECKUP": {"code": "CHECKUP", "display": "Routine Checkup"},
    "URGENT_VISIT": {"code": "URGENT", "display": "Urgent Visit"},
    "EMERGENCY": {"code": "EMER", "display": "Emergency Visit"},
    "PHYSICAL_THERAPY": {"code": "PT", "display": "Physical Therapy"},
    "CHIROPRACTIC": {"code": "CHIRO", "display": "Chiropractic Care"},
    "CONSULTATION": {"code": "CONSULT", "display": "Consultation"},
    "PROCEDURE": {"code": "PROC", "display": "Procedure"},
    "TELEHEALTH": {"code": "TELE", "display": "Telehealth Visit"},
    "ASSESSMENT": {"code": "ASSESS", "display": "Assessment"},
}

ADMIT_SOURCES = {
    "PHYSICIAN_REFERRAL": {"code": "gp", "display": "General Practitioner referral"},
    "TRANSFER": {"code": "hosp-trans", "display": "Transferred from other hospital"},
    "EMERGENCY": {"code": "emd", "display": "From accident/emergency department"},
    "BORN": {"code": "born", "display": "Born in hospital"},
    "OTHER": {"code": "other", "display": "Other"},
}

DISCHARGE_DISPOSITIONS = {
    "HOME": {"code": "home", "display": "Home"},
    "HOSPICE": {"code": "hosp", "display": "Hospice"},
    "SNF": {"code": "snf", "display": "Skilled nursing facility"},
    "REHAB": {"code": "rehab", "display": "Rehabilitation"},
    "LONG_TERM_CARE": {"code": "long", "display": "Long-term care"},
    "AMA": {"code": "aadvice", "display": "Left against advice"},
    "EXPIRED": {"code": "exp", "display": "Expired"},
    "OTHER": {"code": "oth", "display": "Other"},
}

ENCOUNTER_PRIORITIES = {
    "ASAP": {"code": "A", "display": "ASAP"},
    "CALLBACK": {"code": "CR", "display": "Callback Results"},
    "ELECTIVE": {"code": "EL", "display": "Elective"},
    "EMERGENCY": {"code": "EM", "display": "Emergency"},
    "PREOP": {"code": "P", "display": "Preoperative"},
    "ROUTINE": {"code": "R", "display": "Routine"},
    "STAT": {"code": "S", "display": "Stat"},
    "TIMING_CRITICAL": {"code": "T", "display": "Timing Critical"},
    "URGENT": {"code": "UR", "display": "Urgent"},
}


def _encounter_type(label: str) -> CodeableConcept:
    for entry in ENCOUNTER_TYPES.values():
        if label in (entry["code"], entry["display"]):
            return create_codeable_concept(ENCOUNTER_TYPE_SYSTEM, entry["code"], entry["display"])
    return CodeableConcept(text=label)


@dataclass
class EncounterInput:
    """Flat scheduling data used to build an Encounter."""

    status: Union[EncounterStatus, str]
    class_code: Union[EncounterClass, str]
    patient_id: str
    id: Optional[str] = None
    patient_display: Optional[str] = None
    practitioner_id: Optional[str] = None
    practitioner_display: Optional[str] = None
    organization_id: Optional[str] = None
    organization_display: Optional[str] = None
    appointment_id: Optional[str] = None
    start_time: TemporalInput = None
    end_time: TemporalInput = None
    type: Optional[str] = None
    reason_code: Optional[str] = None
    reason_display: Optional[str] = None
    location_id: Optional[str] = None
    location_display: Optional[str] = None


def create_encounter(data: EncounterInput) -> Encounter:
    """Create an Encounter resource from flat input.

    Args:
        data: Encounter details

    Returns:
        Validated Encounter
    """
    status = ENCOUNTER_TRANSITIONS.coerce(data.status)
    class_code = getattr(data.class_code, "value", data.class_code)
    period = create_period(data.start_time, data.end_time) if (data.start_time or data.end_time) else None

    participants = []
    if data.practitioner_id:
        participants.append(
            EncounterParticipant(
                type=[create_codeable_concept(hl7.PARTICIPATION_TYPE, "PPRF", "primary performer")],
                individual=create_reference("Practitioner", data.practitioner_id, data.practitioner_display),
                period=period,
            )
        )

    reasons = []
    if data.reason_code:
        reasons.append(create_codeable_concept(ICD10_CM_SYSTEM, data.reason_code, data.reason_display))
    elif data.reason_display:
        reasons.append(CodeableConcept(text=data.reason_display))

    locations = []
    if data.location_id:
        locations.append(
            EncounterLocation(
                location=create_reference("Location", data.location_id, data.location_display),
                status=(
                    EncounterLocationStatus.ACTIVE
                    if status is EncounterStatus.IN_PROGRESS
                    else EncounterLocationStatus.PLANNED
                ),
            )
        )

    encounter = Encounter(
        id=data.id,
        status=status,
        class_=Coding(system=hl7.ACT_CODE, code=class_code, display=get_encounter_class_display(class_code)),
        subject=create_reference("Patient", data.patient_id, data.patient_display),
        type=[_encounter_type(data.type)] if data.type else None,
        period=period,
        participant=participants,
        serviceProvider=(
            create_reference("Organization", data.organization_id, data.organization_display)
            if data.organization_id
            else None
        ),
        appointment=[create_reference("Appointment", data.appointment_id)] if data.appointment_id else None,
        reasonCode=reasons,
        location=locations,
    )
    logger.debug("encounter_created", encounter_id=encounter.id, status=status.value)
    return encounter
