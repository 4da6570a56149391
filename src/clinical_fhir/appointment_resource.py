"""Appointment FHIR Resource Implementation.

This module implements the FHIR R4 Appointment resource with its booking
workflow, and the hand-over from a booked appointment to an Encounter.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import model_validator

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.coding_systems.registry import BindingStrength, ValueSetBinding
from clinical_fhir.core.exceptions import BindingError, CardinalityError
from clinical_fhir.encounter_resource import ICD10_CM_SYSTEM, EncounterClass, EncounterInput, EncounterStatus
from clinical_fhir.factories import create_codeable_concept, create_reference
from clinical_fhir.fhir_base import DomainResource, register_resource
from clinical_fhir.fhir_types import BackboneElement, CodeableConcept, Identifier, Period, Reference
from clinical_fhir.primitives import (
    FhirDateTime,
    FhirInstant,
    FhirPositiveInt,
    FhirString,
    FhirUnsignedInt,
)
from clinical_fhir.utils.logging import get_logger
from clinical_fhir.workflow import TransitionTable

logger = get_logger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Appointment"


class AppointmentStatus(str, Enum):
    """Overall booking state of an appointment."""

    PROPOSED = "proposed"
    PENDING = "pending"
    BOOKED = "booked"
    ARRIVED = "arrived"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    NOSHOW = "noshow"
    ENTERED_IN_ERROR = "entered-in-error"
    CHECKED_IN = "checked-in"
    WAITLIST = "waitlist"


class ParticipationStatus(str, Enum):
    """A participant's response to the appointment."""

    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"
    NEEDS_ACTION = "needs-action"


class ParticipantRequired(str, Enum):
    """Whether a participant must attend."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    INFORMATION_ONLY = "information-only"


# Statuses in which an appointment may lack start and end
UNSCHEDULED_STATUSES = frozenset({AppointmentStatus.PROPOSED, AppointmentStatus.CANCELLED, AppointmentStatus.WAITLIST})

_CANCEL_OR_ERROR = [AppointmentStatus.CANCELLED, AppointmentStatus.NOSHOW, AppointmentStatus.ENTERED_IN_ERROR]

APPOINTMENT_TRANSITIONS = TransitionTable(
    "Appointment",
    AppointmentStatus,
    {
        AppointmentStatus.PROPOSED: [AppointmentStatus.PENDING, AppointmentStatus.BOOKED, *_CANCEL_OR_ERROR],
        AppointmentStatus.PENDING: [AppointmentStatus.BOOKED, AppointmentStatus.WAITLIST, *_CANCEL_OR_ERROR],
        AppointmentStatus.WAITLIST: [AppointmentStatus.PENDING, AppointmentStatus.BOOKED, *_CANCEL_OR_ERROR],
        AppointmentStatus.BOOKED: [AppointmentStatus.ARRIVED, AppointmentStatus.CHECKED_IN, *_CANCEL_OR_ERROR],
        AppointmentStatus.CHECKED_IN: [AppointmentStatus.ARRIVED, *_CANCEL_OR_ERROR],
        AppointmentStatus.ARRIVED: [AppointmentStatus.FULFILLED, *_CANCEL_OR_ERROR],
        AppointmentStatus.NOSHOW: [AppointmentStatus.BOOKED, AppointmentStatus.ENTERED_IN_ERROR],
        AppointmentStatus.FULFILLED: [AppointmentStatus.ENTERED_IN_ERROR],
        AppointmentStatus.CANCELLED: [AppointmentStatus.ENTERED_IN_ERROR],
        AppointmentStatus.ENTERED_IN_ERROR: [],
    },
)


class AppointmentParticipant(BackboneElement):
    """A person, location or device taking part in the appointment."""

    __bindings__ = {
        "type": ValueSetBinding(hl7.PARTICIPATION_TYPE, BindingStrength.EXTENSIBLE),
        "required": ValueSetBinding(hl7.PARTICIPANT_REQUIRED),
        "status": ValueSetBinding(hl7.PARTICIPATION_STATUS),
    }
    __reference_targets__ = {
        "actor": (
            "Patient",
            "Practitioner",
            "PractitionerRole",
            "RelatedPerson",
            "Device",
            "HealthcareService",
            "Location",
        )
    }

    type: Optional[List[CodeableConcept]] = None
    actor: Optional[Reference] = None
    required: Optional[ParticipantRequired] = None
    status: ParticipationStatus
    period: Optional[Period] = None

    @model_validator(mode="after")
    def _check_type_or_actor(self) -> "AppointmentParticipant":
        # app-1
        if not self.type and self.actor is None:
            raise CardinalityError("a participant requires a type or an actor", path="actor")
        return self


@register_resource
class Appointment(DomainResource):
    """A booking of a healthcare event for a patient at a specific time."""

    __bindings__ = {
        **DomainResource.__bindings__,
        "status": ValueSetBinding(hl7.APPOINTMENT_STATUS),
        "cancelationReason": ValueSetBinding(hl7.APPOINTMENT_CANCELLATION_REASON, BindingStrength.EXAMPLE),
        "appointmentType": ValueSetBinding(hl7.APPOINTMENT_REASON, BindingStrength.PREFERRED),
    }
    __reference_targets__ = {
        "reasonReference": ("Condition", "Procedure", "Observation", "ImmunizationRecommendation"),
        "supportingInformation": ("Resource",),
        "slot": ("Slot",),
        "basedOn": ("ServiceRequest",),
    }

    resourceType: Literal["Appointment"] = "Appointment"
    identifier: Optional[List[Identifier]] = None
    status: AppointmentStatus
    cancelationReason: Optional[CodeableConcept] = None
    serviceCategory: Optional[List[CodeableConcept]] = None
    serviceType: Optional[List[CodeableConcept]] = None
    specialty: Optional[List[CodeableConcept]] = None
    appointmentType: Optional[CodeableConcept] = None
    reasonCode: Optional[List[CodeableConcept]] = None
    reasonReference: Optional[List[Reference]] = None
    priority: Optional[FhirUnsignedInt] = None
    description: Optional[FhirString] = None
    supportingInformation: Optional[List[Reference]] = None
    start: Optional[FhirInstant] = None
    end: Optional[FhirInstant] = None
    minutesDuration: Optional[FhirPositiveInt] = None
    slot: Optional[List[Reference]] = None
    created: Optional[FhirDateTime] = None
    comment: Optional[FhirString] = None
    patientInstruction: Optional[FhirString] = None
    basedOn: Optional[List[Reference]] = None
    participant: List[AppointmentParticipant]
    requestedPeriod: Optional[List[Period]] = None

    @model_validator(mode="after")
    def _check_schedule(self) -> "Appointment":
        # app-2
        if (self.start is None) != (self.end is None):
            missing = "end" if self.end is None else "start"
            raise CardinalityError("start and end must both be present or both absent", path=missing)
        # app-3
        if self.start is None and self.status not in UNSCHEDULED_STATUSES:
            raise CardinalityError(
                f"a {self.status.value} appointment requires start and end", path="start"
            )
        if self.start is not None:
            start, end = self.start.to_datetime(), self.end.to_datetime()
            if end <= start:
                raise CardinalityError("appointment end must be after start", path="end")
            available = (end - start).total_seconds() / 60
            if self.minutesDuration is not None and self.minutesDuration > available:
                raise CardinalityError(
                    f"minutesDuration {int(self.minutesDuration)} exceeds the {int(available)} minutes booked",
                    path="minutesDuration",
                )
        return self

    @property
    def scheduled_minutes(self) -> Optional[int]:
        """Whole minutes between start and end, None when unscheduled."""
        if self.start is None or self.end is None:
            return None
        return int((self.end.to_datetime() - self.start.to_datetime()).total_seconds() // 60)

    def participant_reference(self, resource_type: str) -> Optional[Reference]:
        """Actor reference of the first participant of ``resource_type``."""
        for participant in self.participant:
            if participant.actor is not None and participant.actor.resource_type == resource_type:
                return participant.actor
        return None


APPOINTMENT_TYPES = {
    "CHECKUP": {"code": "CHECKUP", "display": "A routine check-up"},
    "EMERGENCY": {"code": "EMERGENCY", "display": "Emergency appointment"},
    "FOLLOWUP": {"code": "FOLLOWUP", "display": "A follow up visit"},
    "ROUTINE": {"code": "ROUTINE", "display": "Routine appointment"},
    "WALKIN": {"code": "WALKIN", "display": "A walk in visit"},
    "INITIAL": {"code": "INIT", "display": "Initial visit"},
    "PROCEDURE": {"code": "PROC", "display": "Procedure appointment"},
    "PHYSICAL_THERAPY": {"code": "PT", "display": "Physical therapy session"},
    "CHIROPRACTIC": {"code": "CHIRO", "display": "Chiropractic adjustment"},
    "CONSULTATION": {"code": "CONSULT", "display": "Consultation"},
    "TELEHEALTH": {"code": "TELEHEALTH", "display": "Telehealth/virtual visit"},
}

CANCELLATION_REASONS = {
    "PATIENT_REQUEST": {"code": "pat", "display": "Patient request"},
    "PROVIDER_REQUEST": {"code": "prov", "display": "Provider request"},
    "EQUIPMENT": {"code": "equip", "display": "Equipment failure"},
    "OTHER": {"code": "other", "display": "Other"},
    "NO_LONGER_REQUIRED": {"code": "nlr", "display": "No longer required"},
    "SCHEDULE_CONFLICT": {"code": "conflict", "display": "Schedule conflict"},
    "EMERGENCY": {"code": "emer", "display": "Emergency"},
}

APPOINTMENT_PARTICIPANT_TYPES = {
    "ADMITTER": {"code": "ADM", "display": "Admitter"},
    "ATTENDER": {"code": "ATND", "display": "Attender"},
    "CALLBACK": {"code": "CALLBCK", "display": "Callback Contact"},
    "CONSULTANT": {"code": "CON", "display": "Consultant"},
    "DISCHARGER": {"code": "DIS", "display": "Discharger"},
    "ESCORT": {"code": "ESC", "display": "Escort"},
    "REFERRER": {"code": "REF", "display": "Referrer"},
    "SECONDARY_PERFORMER": {"code": "SPRF", "display": "Secondary Performer"},
    "PRIMARY_PERFORMER": {"code": "PPRF", "display": "Primary Performer"},
    "PARTICIPANT": {"code": "PART", "display": "Participant"},
    "TRANSLATOR": {"code": "TRANS", "display": "Translator"},
    "LOCATION": {"code": "LOC", "display": "Location"},
}

_TYPE_DISPLAY = {
    "CHECKUP": "Routine Checkup",
    "EMERGENCY": "Emergency",
    "FOLLOWUP": "Follow-up",
    "ROUTINE": "Routine Visit",
    "WALKIN": "Walk-in",
    "URGENT": "Urgent Visit",
    "INIT": "Initial Visit",
    "PT": "Physical Therapy",
    "CHIRO": "Chiropractic",
    "CONSULT": "Consultation",
    "TELEHEALTH": "Telehealth",
}


def get_appointment_status_display(status: Union[AppointmentStatus, str]) -> str:
    """Display text of an appointment status code."""
    code = getattr(status, "value", status)
    return hl7.HL7_CONCEPTS[hl7.APPOINTMENT_STATUS].get(code, code)


def get_appointment_type_display(type_code: str) -> str:
    """Display text of an appointment type code."""
    return _TYPE_DISPLAY.get(type_code, type_code)


def can_transition_appointment_to(
    current: Union[AppointmentStatus, str], new_status: Union[AppointmentStatus, str]
) -> bool:
    """Return True when the booking workflow allows the change."""
    try:
        return APPOINTMENT_TRANSITIONS.allows(current, new_status)
    except BindingError:
        return False


def cancellation_reason(code: str) -> CodeableConcept:
    """Build a cancelation reason concept from a known or free code."""
    for entry in CANCELLATION_REASONS.values():
        if entry["code"] == code:
            return create_codeable_concept(hl7.APPOINTMENT_CANCELLATION_REASON, code, entry["display"])
    display = hl7.HL7_CONCEPTS[hl7.APPOINTMENT_CANCELLATION_REASON].get(code)
    return create_codeable_concept(hl7.APPOINTMENT_CANCELLATION_REASON, code, display)


def transition_appointment(
    appointment: Appointment,
    new_status: Union[AppointmentStatus, str],
    cancelation_reason: Union[CodeableConcept, str, None] = None,
) -> Appointment:
    """Move an appointment to ``new_status``.

    Args:
        appointment: Appointment to transition
        new_status: Requested status
        cancelation_reason: Reason recorded when cancelling, as a concept or code

    Returns:
        New Appointment with the same id

    Raises:
        TransitionError: If the table does not allow the change
        CardinalityError: If a reason is given for anything but a cancellation,
            or the new status needs a start and end the appointment lacks
    """
    target = APPOINTMENT_TRANSITIONS.check(appointment.status, new_status)
    changes = {"status": target}
    if cancelation_reason is not None:
        if target is not AppointmentStatus.CANCELLED:
            raise CardinalityError("a cancelation reason only applies when cancelling", path="cancelationReason")
        if isinstance(cancelation_reason, str):
            cancelation_reason = cancellation_reason(cancelation_reason)
        changes["cancelationReason"] = cancelation_reason
    return appointment.evolve(**changes)


def _to_instant(value: Union[str, datetime, None]) -> Optional[FhirInstant]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return FhirInstant.from_datetime(value)
    return FhirInstant(value)


@dataclass
class AppointmentInput:
    """Flat booking data used to build an Appointment."""

    status: Union[AppointmentStatus, str]
    patient_id: str
    id: Optional[str] = None
    patient_display: Optional[str] = None
    practitioner_id: Optional[str] = None
    practitioner_display: Optional[str] = None
    location_id: Optional[str] = None
    location_display: Optional[str] = None
    start: Union[str, datetime, None] = None
    end: Union[str, datetime, None] = None
    minutes_duration: Optional[int] = None
    appointment_type: Optional[str] = None
    service_type: Optional[str] = None
    reason_code: Optional[str] = None
    reason_display: Optional[str] = None
    description: Optional[str] = None
    comment: Optional[str] = None
    patient_instruction: Optional[str] = None
    created: Optional[datetime] = None


def create_appointment(data: AppointmentInput) -> Appointment:
    """Create an Appointment resource from flat input.

    ``minutesDuration`` is derived from start and end when not given.
    """
    status = APPOINTMENT_TRANSITIONS.coerce(data.status)
    start, end = _to_instant(data.start), _to_instant(data.end)

    minutes = data.minutes_duration
    if minutes is None and start is not None and end is not None:
        minutes = int((end.to_datetime() - start.to_datetime()).total_seconds() // 60) or None

    participants = [
        AppointmentParticipant(
            actor=create_reference("Patient", data.patient_id, data.patient_display),
            required=ParticipantRequired.REQUIRED,
            status=(
                ParticipationStatus.NEEDS_ACTION
                if status is AppointmentStatus.PROPOSED
                else ParticipationStatus.ACCEPTED
            ),
        )
    ]
    if data.practitioner_id:
        participants.append(
            AppointmentParticipant(
                type=[create_codeable_concept(hl7.PARTICIPATION_TYPE, "PPRF", "primary performer")],
                actor=create_reference("Practitioner", data.practitioner_id, data.practitioner_display),
                required=ParticipantRequired.REQUIRED,
                status=ParticipationStatus.ACCEPTED,
            )
        )
    if data.location_id:
        participants.append(
            AppointmentParticipant(
                actor=create_reference("Location", data.location_id, data.location_display),
                required=ParticipantRequired.REQUIRED,
                status=ParticipationStatus.ACCEPTED,
            )
        )

    reasons = []
    if data.reason_code:
        reasons.append(create_codeable_concept(ICD10_CM_SYSTEM, data.reason_code, data.reason_display))
    elif data.reason_display:
        reasons.append(CodeableConcept(text=data.reason_display))

    appointment = Appointment(
        id=data.id,
        status=status,
        created=FhirDateTime.from_datetime(data.created or datetime.now(timezone.utc)),
        start=start,
        end=end,
        minutesDuration=minutes,
        appointmentType=(
            create_codeable_concept(
                hl7.APPOINTMENT_REASON, data.appointment_type, get_appointment_type_display(data.appointment_type)
            )
            if data.appointment_type
            else None
        ),
        serviceType=[CodeableConcept(text=data.service_type)] if data.service_type else None,
        reasonCode=reasons,
        description=data.description,
        comment=data.comment,
        patientInstruction=data.patient_instruction,
        participant=participants,
    )
    logger.debug("appointment_created", appointment_id=appointment.id, status=status.value)
    return appointment


def appointment_to_encounter_input(
    appointment: Appointment,
    status: Union[EncounterStatus, str] = EncounterStatus.ARRIVED,
    class_code: Union[EncounterClass, str] = EncounterClass.AMBULATORY,
) -> EncounterInput:
    """Encounter input for a patient arriving for ``appointment``.

    Raises:
        CardinalityError: If the appointment has no id or no patient participant
    """
    if appointment.id is None:
        raise CardinalityError("appointment must have an id to start an encounter", path="Appointment.id")
    patient = appointment.participant_reference("Patient")
    if patient is None or patient.resource_id is None:
        raise CardinalityError("appointment has no patient participant", path="Appointment.participant")
    practitioner = appointment.participant_reference("Practitioner")
    location = appointment.participant_reference("Location")
    reason = appointment.reasonCode[0] if appointment.reasonCode else None
    reason_coding = reason.first_coding() if reason else None

    return EncounterInput(
        status=status,
        class_code=class_code,
        patient_id=patient.resource_id,
        patient_display=str(patient.display) if patient.display else None,
        practitioner_id=practitioner.resource_id if practitioner else None,
        practitioner_display=str(practitioner.display) if practitioner and practitioner.display else None,
        location_id=location.resource_id if location else None,
        location_display=str(location.display) if location and location.display else None,
        appointment_id=str(appointment.id),
        start_time=str(appointment.start) if appointment.start else None,
        reason_code=str(reason_coding.code) if reason_coding and reason_coding.code else None,
        reason_display=reason.display_text if reason else None,
    )
